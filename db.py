# db.py — persistence helpers for profiles + user_wallets

from __future__ import annotations

from typing import Any, Optional

import time
import httpx

from supabase_client import get_supabase


def _sid(x: Any) -> str:
    """Safe id normalize (uuid.UUID -> str, None -> '')."""
    if x is None:
        return ""
    try:
        return str(x)
    except Exception:
        return ""


def _execute_with_retry(q, *, tries: int = 3, base_sleep: float = 0.2):
    """
    Retry wrapper for transient PostgREST/httpx read/connect hiccups (common on Streamlit Cloud).
    q must be a PostgREST query object that supports .execute().
    """
    last_err = None
    for attempt in range(tries):
        try:
            return q.execute()
        except (httpx.ReadError, httpx.ConnectError, httpx.TimeoutException) as e:
            last_err = e
            print(f"[db] transient error (attempt {attempt + 1}/{tries}): {e!r}")
            time.sleep(base_sleep * (2 ** attempt))  # 0.2, 0.4, 0.8
    raise last_err  # bubble after retries


def _rows(res) -> list:
    # maybe_single() returns None instead of an APIResponse when nothing matches
    if res is None:
        return []
    data = getattr(res, "data", None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


# ---------- WALLETS (user_wallets) ----------

def fetch_existing_wallet(user_id: str, sb=None) -> Optional[str]:
    """
    Wallet address already provisioned for this auth user, or None.
    Raises on query failure; callers decide whether that's fatal.
    """
    uid = _sid(user_id)
    if not uid:
        return None

    sb = sb or get_supabase()
    res = _execute_with_retry(
        sb.table("user_wallets")
        .select("wallet_address")
        .eq("user_id", uid)
        .maybe_single()
    )
    rows = _rows(res)
    if not rows:
        print(f"[db] no wallet for user {uid}")
        return None

    addr = rows[0].get("wallet_address")
    return str(addr) if addr else None


# ---------- USERS (profiles) ----------

def ensure_profile_exists(user_id: str, email: str, sb=None) -> bool:
    """
    Insert a profiles row if the auth trigger didn't. Returns True when a row
    was created here. A duplicate-key race with the trigger counts as existing.
    """
    uid = _sid(user_id)
    if not uid:
        raise RuntimeError("Missing user_id (supabase user id). Refusing to create profile.")

    email = (email or "").strip().lower()
    sb = sb or get_supabase()

    res = _execute_with_retry(
        sb.table("profiles")
        .select("id")
        .eq("user_id", uid)
        .maybe_single()
    )
    if _rows(res):
        return False

    payload = {
        "user_id": uid,
        "email": email,
        "name": email.split("@")[0] if email else "",
    }
    try:
        _execute_with_retry(sb.table("profiles").insert(payload))
    except Exception as e:
        if "duplicate" in str(e).lower():
            return False
        raise

    print(f"[db] created profile for user {uid}")
    return True
