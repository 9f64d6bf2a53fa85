# cache.py — Session-scoped caching for market data, projections and wallet lookups
#
# Everything lives in st.session_state. Market data refreshes on a timer; the
# projection cache is keyed by the full parameter tuple; wallet lookups are
# per-user and wiped on sign-in/out.

import time
import streamlit as st
from typing import Optional, Dict, Any, List, Callable

from market_data import MarketSnapshot
from projection import SimulationParameters, ProjectionPoint, project


MARKET_REFRESH_SECONDS = 5 * 60
PROJECTION_CACHE_MAX = 16


# ============================================================
#  MARKET SNAPSHOT (rates + BTC price)
# ============================================================

def get_cached_market_snapshot(
    loader_fn: Callable[[], MarketSnapshot],
    now: Optional[float] = None,
) -> MarketSnapshot:
    """
    Rates shown on the Future and Data pages. Reloads when older than
    MARKET_REFRESH_SECONDS.

    Usage:
        from cache import get_cached_market_snapshot
        snap = get_cached_market_snapshot(load_market_snapshot)
    """
    now = time.time() if now is None else now
    entry = st.session_state.get("_cache_market_snapshot")

    if entry is not None and (now - entry["fetched_at"]) < MARKET_REFRESH_SECONDS:
        return entry["snapshot"]

    try:
        snap = loader_fn()
    except Exception as e:
        print(f"[cache] market snapshot loader error: {e!r}")
        # keep serving the stale one rather than nothing
        if entry is not None:
            return entry["snapshot"]
        return MarketSnapshot()

    st.session_state["_cache_market_snapshot"] = {"fetched_at": now, "snapshot": snap}
    return snap


def invalidate_market_snapshot() -> None:
    st.session_state.pop("_cache_market_snapshot", None)


# ============================================================
#  PROJECTIONS
# ============================================================

def get_cached_projection(
    params: SimulationParameters,
    runner: Callable[[SimulationParameters], List[ProjectionPoint]] = project,
) -> List[ProjectionPoint]:
    """
    Sliders rerun the page on every tweak; identical inputs reuse the last run.
    """
    cache: Dict[tuple, List[ProjectionPoint]] = st.session_state.setdefault("_cache_projections", {})
    key = params.cache_key()

    if key in cache:
        return cache[key]

    points = runner(params)
    if len(cache) >= PROJECTION_CACHE_MAX:
        # oldest insertion first
        cache.pop(next(iter(cache)))
    cache[key] = points
    return points


# ============================================================
#  WALLET ADDRESS (per user)
# ============================================================

def get_cached_wallet(user_id: str, loader_fn: Callable[[str], Optional[str]]) -> Optional[str]:
    """
    Cache the wallet address for this user. A failed lookup isn't cached.
    """
    if not user_id:
        return None

    cache_key = f"_cache_wallet_{user_id}"

    if cache_key not in st.session_state:
        try:
            addr = loader_fn(user_id)
        except Exception as e:
            print(f"[cache] get_cached_wallet loader error: {e!r}")
            return None
        if not addr:
            return None
        st.session_state[cache_key] = addr

    return st.session_state[cache_key]


def set_cached_wallet(user_id: str, address: str) -> None:
    if not user_id or not address:
        return
    st.session_state[f"_cache_wallet_{user_id}"] = address


# ============================================================
#  CONVENIENCE
# ============================================================

def clear_all_user_caches() -> None:
    """
    Clear ALL user-specific caches regardless of user_id.
    Call on logout/login to ensure no data bleeds between users.
    """
    prefixes = (
        "_cache_wallet_",
    )
    keys_to_delete = [k for k in list(st.session_state.keys()) if any(k.startswith(p) for p in prefixes)]
    for k in keys_to_delete:
        del st.session_state[k]
    print(f"[cache] cleared {len(keys_to_delete)} user cache entries")
