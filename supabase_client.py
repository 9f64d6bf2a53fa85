# supabase_client.py — Supabase config + the anon client behind profiles/user_wallets
#
# Two consumers:
#   - auth.py reads (env, url, anon key) via _cfg() and talks to GoTrue and the
#     create-turnkey-wallet edge function over plain httpx
#   - db.py queries the profiles and user_wallets tables through get_supabase()
#
# Credentials come from the environment first, then .streamlit/secrets.toml.
# APP_ENV=dev switches every lookup to the *_DEV names.
from __future__ import annotations

import os
import streamlit as st

from supabase import create_client, Client, ClientOptions

SESSION_CLIENT_KEY = "supabase_client_anon"


class SupabaseConfigError(RuntimeError):
    """URL or anon key missing for the active APP_ENV."""


def _get_secret(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value:
        return value
    try:
        if name in st.secrets:
            secret = st.secrets[name]
            if secret:
                return str(secret)
    except Exception:
        # st.secrets raises when there's no secrets.toml
        pass
    return default


def _env() -> str:
    return (_get_secret("APP_ENV", "prod") or "prod").lower().strip()


def _cfg():
    """(env, project url, anon key) for the wallet/profile backend."""
    env = _env()
    suffix = "DEV" if env == "dev" else "PROD"
    url = _get_secret(f"SUPABASE_URL_{suffix}")
    anon = _get_secret(f"SUPABASE_ANON_KEY_{suffix}")

    if not url or not anon:
        raise SupabaseConfigError(
            f"Supabase is not configured for APP_ENV={env}: "
            f"set SUPABASE_URL_{suffix} and SUPABASE_ANON_KEY_{suffix}."
        )
    return env, url, anon


def _make_client(url: str, key: str) -> Client:
    # the member's tokens are kept in st.session_state by auth.py and bound with
    # set_session(); the SDK must not store or refresh its own copy
    return create_client(
        url,
        key,
        options=ClientOptions(persist_session=False, auto_refresh_token=False),
    )


def get_supabase() -> Client:
    """
    This browser session's anon client. Row-level security on profiles and
    user_wallets limits it to the signed-in member's own rows.
    """
    client = st.session_state.get(SESSION_CLIENT_KEY)
    if client is not None:
        return client

    env, url, anon = _cfg()
    print(f"[supabase] new anon client for wallet/profile queries (APP_ENV={env})")
    client = _make_client(url, anon)
    st.session_state[SESSION_CLIENT_KEY] = client
    return client


def reset_supabase_client():
    """Drop the client so the next member's wallet lookups start unauthenticated."""
    st.session_state.pop(SESSION_CLIENT_KEY, None)
