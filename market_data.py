# market_data.py — live strand APYs + BTC price, with static fallbacks
#
# Strand 1: Spark USDC (Ethereum)
# Strand 2: Aave v3 USDC (Polygon)
# Strand 3: QuickSwap ETH/USDC (Polygon)
#
# Every fetch is fallible. Failures never reach the projection engine: each
# field falls back to its documented default and the snapshot says so.
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Callable

import httpx

from projection import SimulationParameters

YIELDS_URL = "https://yields.llama.fi/pools"
BTC_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd"

FALLBACK_APY_STRAND1: float = 3.5
FALLBACK_APY_STRAND2: float = 7.5
FALLBACK_APY_STRAND3: float = 12.5
FALLBACK_BTC_PRICE: float = 95000.0

# upper bounds of the APY inputs on the Future page
APY_INPUT_MAX: float = 100.0
STRAND3_APY_INPUT_MAX: float = 200.0


def _timeout() -> float:
    try:
        return float(os.getenv("MARKET_DATA_TIMEOUT", "20"))
    except ValueError:
        return 20.0


@dataclass(frozen=True)
class MarketSnapshot:
    apy_strand1: float = FALLBACK_APY_STRAND1
    apy_strand2: float = FALLBACK_APY_STRAND2
    apy_strand3: float = FALLBACK_APY_STRAND3
    btc_price: float = FALLBACK_BTC_PRICE
    used_fallback: bool = True

    def to_parameters(self, **overrides: Any) -> SimulationParameters:
        """SimulationParameters seeded with these rates; overrides win."""
        kwargs: Dict[str, Any] = {
            "apy_strand1": self.apy_strand1,
            "apy_strand2": self.apy_strand2,
            "apy_strand3": self.apy_strand3,
            "btc_price": self.btc_price,
        }
        kwargs.update(overrides)
        return SimulationParameters(**kwargs)

    def clamped(self) -> "MarketSnapshot":
        """Same snapshot with each APY pulled into its input range."""
        return replace(
            self,
            apy_strand1=_clamp(self.apy_strand1, APY_INPUT_MAX),
            apy_strand2=_clamp(self.apy_strand2, APY_INPUT_MAX),
            apy_strand3=_clamp(self.apy_strand3, STRAND3_APY_INPUT_MAX),
        )


def _clamp(value: float, upper: float) -> float:
    return min(max(float(value), 0.0), upper)


# ============================================================
# POOL MATCHERS
# ============================================================
def _is_spark_usdc(pool: Dict[str, Any]) -> bool:
    return (
        pool.get("project") == "spark"
        and pool.get("chain") == "Ethereum"
        and "USDC" in str(pool.get("symbol", ""))
    )


def _is_aave_polygon_usdc(pool: Dict[str, Any]) -> bool:
    return (
        pool.get("project") == "aave-v3"
        and pool.get("chain") == "Polygon"
        and "USDC" in str(pool.get("symbol", ""))
    )


def _is_quickswap_eth_usdc(pool: Dict[str, Any]) -> bool:
    symbol = str(pool.get("symbol", ""))
    return (
        pool.get("project") == "quickswap-dex"
        and pool.get("chain") == "Polygon"
        and "ETH" in symbol
        and "USDC" in symbol
    )


def _pool_apy(pools: List[Dict[str, Any]], match: Callable[[Dict[str, Any]], bool]) -> Optional[float]:
    """First matching pool's APY, or None when there is no usable match."""
    for pool in pools:
        if not isinstance(pool, dict) or not match(pool):
            continue
        try:
            apy = float(pool.get("apy"))
        except (TypeError, ValueError):
            return None
        if apy < 0 or apy != apy:  # NaN check
            return None
        return apy
    return None


# ============================================================
# FETCHERS
# ============================================================
def _get_json(client: Optional[httpx.Client], url: str) -> Any:
    if client is not None:
        r = client.get(url, timeout=_timeout())
    else:
        r = httpx.get(url, timeout=_timeout())
    r.raise_for_status()
    return r.json()


def fetch_pools(client: Optional[httpx.Client] = None) -> List[Dict[str, Any]]:
    """Raw DefiLlama pool list. Raises on transport/HTTP/payload errors."""
    data = _get_json(client, YIELDS_URL)
    pools = data.get("data") if isinstance(data, dict) else None
    if not isinstance(pools, list):
        raise ValueError("yields payload missing 'data' list")
    return pools


def fetch_strand_apys(client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Returns {"apy_strand1", "apy_strand2", "apy_strand3", "used_fallback"}.
    Never raises.
    """
    defaults = {
        "apy_strand1": FALLBACK_APY_STRAND1,
        "apy_strand2": FALLBACK_APY_STRAND2,
        "apy_strand3": FALLBACK_APY_STRAND3,
    }
    try:
        pools = fetch_pools(client)
    except Exception as e:
        print(f"[market_data] lending rates fetch error: {e!r}")
        return {**defaults, "used_fallback": True}

    matchers = {
        "apy_strand1": _is_spark_usdc,
        "apy_strand2": _is_aave_polygon_usdc,
        "apy_strand3": _is_quickswap_eth_usdc,
    }

    out: Dict[str, Any] = {}
    used_fallback = False
    for key, match in matchers.items():
        apy = _pool_apy(pools, match)
        if apy is None:
            print(f"[market_data] no pool for {key}; using {defaults[key]}")
            apy = defaults[key]
            used_fallback = True
        out[key] = apy
    out["used_fallback"] = used_fallback
    return out


def fetch_btc_price(client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Returns {"btc_price", "used_fallback"}. Never raises."""
    try:
        data = _get_json(client, BTC_PRICE_URL)
        price = float(data["bitcoin"]["usd"])
        if price <= 0 or price != price:
            raise ValueError(f"implausible BTC price {price!r}")
        return {"btc_price": price, "used_fallback": False}
    except Exception as e:
        print(f"[market_data] bitcoin price fetch error: {e!r}")
        return {"btc_price": FALLBACK_BTC_PRICE, "used_fallback": True}


def load_market_snapshot(client: Optional[httpx.Client] = None) -> MarketSnapshot:
    """All market inputs for a projection in one call. Never raises."""
    apys = fetch_strand_apys(client)
    btc = fetch_btc_price(client)
    return MarketSnapshot(
        apy_strand1=apys["apy_strand1"],
        apy_strand2=apys["apy_strand2"],
        apy_strand3=apys["apy_strand3"],
        btc_price=btc["btc_price"],
        used_fallback=bool(apys["used_fallback"] or btc["used_fallback"]),
    )
