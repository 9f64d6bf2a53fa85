# auth.py — Session-state only auth (no cookies, no refresh persistence)
# Streamlit Cloud compatible. Hard refresh = re-login.
#
# Account creation provisions a non-custodial wallet through the
# create-turnkey-wallet edge function. The auth calls at the top never raise;
# failures come back inside AuthResult / WalletResult.
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import streamlit as st
import httpx

import db
from supabase_client import _cfg, get_supabase, reset_supabase_client
from tos import ToSAgreement, ToSNotAccepted, AFFIRMATIONS

WALLET_FUNCTION = "create-turnkey-wallet"
AUTH_TIMEOUT = 20.0


@dataclass
class AuthResult:
    success: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    wallet_address: Optional[str] = None
    requires_email_confirmation: bool = False
    error: Optional[str] = None


@dataclass
class WalletResult:
    success: bool
    wallet_address: Optional[str] = None
    is_new: bool = False
    error: Optional[str] = None


# ---------------- GoTrue / Functions REST ----------------
def _headers(anon: str, token: Optional[str] = None) -> dict:
    return {
        "apikey": anon,
        "Authorization": f"Bearer {token or anon}",
        "Content-Type": "application/json",
    }


def _error_detail(r: httpx.Response) -> str:
    try:
        j = r.json()
    except Exception:
        return r.text
    if isinstance(j, dict):
        return str(j.get("error_description") or j.get("msg") or j.get("message") or j.get("error") or r.text)
    return r.text


def _post(client: Optional[httpx.Client], url: str, **kwargs) -> httpx.Response:
    if client is not None:
        return client.post(url, timeout=AUTH_TIMEOUT, **kwargs)
    return httpx.post(url, timeout=AUTH_TIMEOUT, **kwargs)


def _user_fields(data: dict) -> tuple:
    """(user_id, email) from a GoTrue session or bare user payload."""
    user = data.get("user") if isinstance(data.get("user"), dict) else data
    uid = user.get("id")
    email = (user.get("email") or "").strip().lower()
    return (str(uid) if uid else None), email


def trigger_wallet_creation(access_token: str, client: Optional[httpx.Client] = None) -> WalletResult:
    """Ask the edge function for this user's wallet. Idempotent server-side."""
    print("[auth] triggering wallet creation")
    try:
        _, url, anon = _cfg()
        r = _post(
            client,
            f"{url.rstrip('/')}/functions/v1/{WALLET_FUNCTION}",
            headers=_headers(anon, access_token),
            json={},
        )
        if r.status_code >= 400:
            detail = _error_detail(r)
            print(f"[auth] wallet creation error: {detail}")
            return WalletResult(success=False, error=detail or "Failed to create wallet")

        data = r.json() or {}
        addr = data.get("wallet_address")
        if data.get("success") is False or not addr:
            err = data.get("error") or "Wallet creation response missing address"
            print(f"[auth] wallet creation failed: {err}")
            return WalletResult(success=False, error=str(err))

        print(f"[auth] wallet ready: {addr} (new={bool(data.get('is_new'))})")
        return WalletResult(success=True, wallet_address=str(addr), is_new=bool(data.get("is_new")))
    except Exception as e:
        print(f"[auth] wallet creation exception: {e!r}")
        return WalletResult(success=False, error=str(e) or "Unexpected error during wallet creation")


def register_user(
    email: str,
    password: str,
    client: Optional[httpx.Client] = None,
    sb: Any = None,
) -> AuthResult:
    """
    Flow:
    1. sign up with GoTrue
    2. make sure a profiles row exists (in case the DB trigger is missing)
    3. no session back -> email confirmation pending, stop here
    4. otherwise provision the wallet straight away
    """
    email = (email or "").strip().lower()
    print(f"[auth] registering {email}")
    try:
        _, url, anon = _cfg()
        r = _post(
            client,
            f"{url.rstrip('/')}/auth/v1/signup",
            headers=_headers(anon),
            json={"email": email, "password": password},
        )
        if r.status_code >= 400:
            detail = _error_detail(r)
            print(f"[auth] registration error: {detail}")
            return AuthResult(success=False, error=detail)

        data = r.json() or {}
        user_id, user_email = _user_fields(data)
        if not user_id:
            return AuthResult(success=False, error="Registration failed - no user returned")

        try:
            db.ensure_profile_exists(user_id, user_email or email, sb=sb)
        except Exception as e:
            # the wallet function creates the profile too
            print(f"[auth] ensure_profile_exists error: {e!r}")

        access_token = data.get("access_token")
        if not access_token:
            print("[auth] email confirmation required")
            return AuthResult(
                success=True,
                user_id=user_id,
                email=user_email or email,
                requires_email_confirmation=True,
            )

        wallet = trigger_wallet_creation(access_token, client=client)
        return AuthResult(
            success=True,
            user_id=user_id,
            email=user_email or email,
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            wallet_address=wallet.wallet_address,
        )
    except Exception as e:
        print(f"[auth] registration exception: {e!r}")
        return AuthResult(success=False, error=str(e) or "Registration failed")


def sign_in_user(
    email: str,
    password: str,
    client: Optional[httpx.Client] = None,
    sb: Any = None,
) -> AuthResult:
    """Password sign-in; provisions the wallet if this user doesn't have one yet."""
    email = (email or "").strip().lower()
    print(f"[auth] signing in {email}")
    try:
        _, url, anon = _cfg()
        r = _post(
            client,
            f"{url.rstrip('/')}/auth/v1/token?grant_type=password",
            headers=_headers(anon),
            json={"email": email, "password": password},
        )
        if r.status_code >= 400:
            detail = _error_detail(r)
            print(f"[auth] sign in error: {detail}")
            return AuthResult(success=False, error=f"Login failed: {detail}")

        data = r.json() or {}
        access_token = data.get("access_token")
        user_id, user_email = _user_fields(data)
        if not access_token or not user_id:
            return AuthResult(success=False, error="Sign in failed - no session returned")

        wallet_address = None
        try:
            wallet_address = db.fetch_existing_wallet(user_id, sb=sb)
        except Exception as e:
            print(f"[auth] fetch_existing_wallet error: {e!r}")

        if not wallet_address:
            wallet_address = trigger_wallet_creation(access_token, client=client).wallet_address

        return AuthResult(
            success=True,
            user_id=user_id,
            email=user_email or email,
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            wallet_address=wallet_address,
        )
    except Exception as e:
        print(f"[auth] sign in exception: {e!r}")
        return AuthResult(success=False, error=str(e) or "Sign in failed")


def sign_out_user(access_token: Optional[str], client: Optional[httpx.Client] = None) -> AuthResult:
    """Revoke the session server-side. Local state is the caller's to clear."""
    if not access_token:
        return AuthResult(success=True)
    try:
        _, url, anon = _cfg()
        r = _post(client, f"{url.rstrip('/')}/auth/v1/logout", headers=_headers(anon, access_token))
        if r.status_code >= 400:
            detail = _error_detail(r)
            print(f"[auth] sign out error: {detail}")
            return AuthResult(success=False, error=detail)
        print("[auth] signed out")
        return AuthResult(success=True)
    except Exception as e:
        print(f"[auth] sign out exception: {e!r}")
        return AuthResult(success=False, error=str(e))


# ---------------- Session state helpers ----------------
_AUTH_DEFAULTS = {
    "authenticated": False,
    "access_token": None,
    "refresh_token": None,
    "user_id": None,
    "email": None,
    "auth_modal_open": False,
}


def _init_session_state():
    """Initialize all auth-related session state with defaults."""
    for key, value in _AUTH_DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _clear_auth_state():
    """Clear all auth-related session state."""
    for key, value in _AUTH_DEFAULTS.items():
        st.session_state[key] = value

    # fresh client + no cached lookups for whoever signs in next
    reset_supabase_client()
    from cache import clear_all_user_caches
    clear_all_user_caches()


def _store_session(result: AuthResult):
    from cache import clear_all_user_caches, set_cached_wallet

    clear_all_user_caches()
    reset_supabase_client()

    st.session_state["authenticated"] = True
    st.session_state["access_token"] = result.access_token
    st.session_state["refresh_token"] = result.refresh_token
    st.session_state["user_id"] = result.user_id
    st.session_state["email"] = result.email
    set_cached_wallet(result.user_id or "", result.wallet_address or "")

    # Bind session to the fresh client for RLS
    try:
        get_supabase().auth.set_session(result.access_token, result.refresh_token or "")
    except Exception as e:
        print(f"[auth] set_session failed (non-fatal): {e!r}")


def is_authenticated() -> bool:
    _init_session_state()
    return bool(st.session_state.get("authenticated"))


def current_wallet() -> Optional[str]:
    """
    Wallet for the signed-in user. Sign-in seeds the cache; while the wallet
    is still pending each rerun asks user_wallets again.
    """
    _init_session_state()
    if not st.session_state.get("authenticated"):
        return None
    from cache import get_cached_wallet
    return get_cached_wallet(st.session_state.get("user_id") or "", db.fetch_existing_wallet)


# ---------------- Logout ----------------
def sign_out(controller=None):
    """Revoke, clear session, tell the tutorial, and re-render."""
    sign_out_user(st.session_state.get("access_token"))
    _clear_auth_state()
    if controller is not None:
        controller.set_wallet_connected(False)
    st.rerun()


# ---------------- Auth modal ----------------
def _set_modal(controller, open_: bool):
    st.session_state["auth_modal_open"] = open_
    if controller is not None:
        controller.set_auth_modal_open(open_)


def _on_success(controller, result: AuthResult):
    _store_session(result)
    _set_modal(controller, False)
    st.session_state.pop("_tos_agreement", None)
    if controller is not None:
        controller.set_wallet_connected(True)
    st.rerun()


def _login_tab(controller):
    email = st.text_input("Email", key="login_email_input")
    password = st.text_input("Password", type="password", key="login_password_input")

    if st.button("Sign In", type="primary", use_container_width=True, key="login_submit"):
        if not email or not password:
            st.error("Please enter both email and password.")
            return
        with st.spinner("Signing in..."):
            result = sign_in_user(email, password)
        if not result.success:
            st.error(result.error or "Sign in failed")
            return
        _on_success(controller, result)


def _tos_ui(agreement: ToSAgreement) -> None:
    st.markdown("#### Terms of Service")
    st.progress(agreement.progress, text=f"{agreement.revealed}/{agreement.total_sections} sections")

    for section in agreement.visible_sections:
        with st.container(border=True):
            st.markdown(f"**{section.id}. {section.heading}**")
            st.markdown(section.content)

    if not agreement.all_sections_revealed:
        if st.button(
            f"Continue Reading ({agreement.remaining_sections} sections remaining)",
            use_container_width=True,
            key="tos_continue",
        ):
            agreement.reveal_next()
            st.rerun()
        return

    st.markdown("**Final Affirmations**")
    for key, label in AFFIRMATIONS.items():
        checked = st.checkbox(label, value=agreement.checked[key], key=f"tos_{key}")
        agreement.toggle(key, checked)


def _signup_tab(controller):
    agreement: ToSAgreement = st.session_state.setdefault("_tos_agreement", ToSAgreement())

    email = st.text_input("Email", key="signup_email_input")
    password = st.text_input("Password", type="password", key="signup_password_input")

    _tos_ui(agreement)

    hint = agreement.hint()
    if hint:
        st.caption(hint)

    if st.button(
        "Accept & Create Account",
        type="primary",
        use_container_width=True,
        disabled=not agreement.can_accept,
        key="signup_submit",
    ):
        if not email or not password:
            st.error("Please enter both email and password.")
            return
        try:
            acceptance = agreement.accept()
        except ToSNotAccepted as e:
            st.error(str(e))
            return
        print(f"[auth] ToS v{acceptance.version} accepted for {email.strip().lower()}")

        with st.spinner("Creating account..."):
            result = register_user(email, password)
        if not result.success:
            st.error(result.error or "Registration failed")
            return
        if result.requires_email_confirmation:
            st.success("Check your email to confirm your account, then sign in.")
            return
        _on_success(controller, result)


def auth_modal(controller=None):
    """
    Connect-account panel. While it is open the tutorial hides its bubble;
    a successful sign-in/up connects the wallet and moves the tutorial on.
    """
    _init_session_state()

    if not st.session_state.get("auth_modal_open"):
        if st.button("🔐 Connect Account", type="primary", use_container_width=True, key="connect-account"):
            _set_modal(controller, True)
            st.rerun()
        return

    with st.container(border=True):
        head_l, head_r = st.columns([5, 1])
        with head_l:
            st.markdown("### Connect Your Account")
        with head_r:
            if st.button("✕", key="auth_modal_close"):
                _set_modal(controller, False)
                agreement = st.session_state.get("_tos_agreement")
                if agreement is not None:
                    agreement.reset()
                st.rerun()

        sign_in, sign_up = st.tabs(["Sign In", "Create Account"])
        with sign_in:
            _login_tab(controller)
        with sign_up:
            _signup_tab(controller)


# ---------------- Main auth gate ----------------
def require_auth(controller=None) -> str:
    """
    Gate for actions that need a wallet. Returns the wallet address, or
    shows the connect panel and stops the page.
    """
    _init_session_state()

    wallet = current_wallet()
    if wallet:
        return wallet

    if st.session_state.get("authenticated"):
        st.warning("Your wallet is still being set up.")
        if st.button("Retry wallet setup", key="retry_wallet"):
            res = trigger_wallet_creation(st.session_state.get("access_token") or "")
            if res.success:
                from cache import set_cached_wallet
                set_cached_wallet(st.session_state.get("user_id") or "", res.wallet_address or "")
                st.rerun()
            st.error(res.error or "Wallet setup failed")
        st.stop()

    st.info("Connect your account to continue.")
    auth_modal(controller)
    st.stop()
