# sidebar.py — Navigation sidebar + tutorial bubble for The Vault Club

import streamlit as st

from auth import is_authenticated, current_wallet, sign_out
from contracts import ContractRegistry
from storage import SessionStateStore
from tutorial import TutorialController

# page id -> (label, script, tutorial target)
NAV_PAGES = {
    "home": ("🏠 Home", "app.py", "nav-home"),
    "personal": ("👛 Wallet", "pages/01_Wallet.py", "nav-wallet"),
    "simulation": ("📈 Future", "pages/02_Future.py", "nav-future"),
    "dataset": ("📊 Data", "pages/03_Data.py", "nav-data"),
    "group": ("🤝 Contracts", "pages/04_Contracts.py", "nav-contracts"),
}


@st.cache_resource
def get_registry() -> ContractRegistry:
    """Contracts deployed in this server process, visible to every session."""
    return ContractRegistry()


def get_tutorial() -> TutorialController:
    """The session's tutorial controller, created on first use."""
    if st.session_state.get("_tutorial") is None:
        st.session_state["_tutorial"] = TutorialController(
            SessionStateStore(),
            authenticated=is_authenticated(),
        )
    return st.session_state["_tutorial"]


def page_setup(page: str) -> TutorialController:
    """
    Call at the top of every page (after set_page_config).
    Feeds navigation + auth status into the tutorial, then draws the sidebar.
    """
    controller = get_tutorial()

    # auth can change underneath us (sign-out on another page, expired token)
    controller.set_wallet_connected(is_authenticated())
    controller.set_auth_modal_open(bool(st.session_state.get("auth_modal_open")))

    arrived = page != controller.current_page
    controller.set_page(page)
    if arrived:
        controller.advance("navigation", page)

    render_sidebar(controller)
    return controller


def _render_bubble(controller: TutorialController):
    step = controller.visible_step()
    if step is None:
        return

    with st.container(border=True):
        st.caption(f"Tutorial {step.display_step}")
        st.markdown(f"**{step.title}**")
        st.markdown(step.message)

        target = NAV_PAGES.get(step.advance_value or "", (None, None, None))[0]
        if step.advance_on == "navigation" and target:
            st.caption(f"👉 Open **{target}** to continue")

        col1, col2 = st.columns(2)
        with col1:
            label = "Got it" if step.advance_on == "dismiss" else "Dismiss"
            if st.button(label, use_container_width=True, key=f"tutorial_dismiss_{step.id}"):
                controller.dismiss()
                st.rerun()
        with col2:
            if st.button("Skip tutorial", use_container_width=True, key=f"tutorial_skip_{step.id}"):
                controller.skip()
                st.rerun()


def render_sidebar(controller: TutorialController):
    """
    Render the sidebar with navigation, wallet status, and the tutorial.
    """

    with st.sidebar:
        # ---------- Branding ----------
        st.markdown("## 🔒 The Vault Club")
        st.caption("by Sequence Theory, Inc.")

        # ---------- Wallet ----------
        wallet = current_wallet()
        if is_authenticated():
            email = st.session_state.get("email", "")
            st.caption(f"👤 {email}")
            if wallet:
                st.caption(f"👛 {wallet[:6]}…{wallet[-4:]}")
            else:
                st.caption("👛 Wallet pending")
        else:
            st.caption("Not connected")

        st.markdown("---")

        # ---------- Tutorial ----------
        _render_bubble(controller)

        # ---------- Navigation ----------
        st.markdown("### Navigation")

        for page_id, (label, script, target) in NAV_PAGES.items():
            current = page_id == controller.current_page
            if st.button(label, use_container_width=True, key=target, disabled=current):
                st.switch_page(script)

        st.markdown("---")

        # ---------- Tutorial controls ----------
        with st.expander("Tutorial", expanded=False):
            s = controller.state
            if s.is_active:
                st.caption(f"Step {s.current_step_id} of {len(controller.steps)}")
            elif s.has_completed:
                st.caption("Completed")
            elif s.has_skipped:
                st.caption("Skipped")
            if st.button("↺ Restart tutorial", use_container_width=True, key="tutorial_restart"):
                controller.reset()
                controller.set_page(controller.current_page)
                st.rerun()

        # ---------- Sign Out ----------
        if is_authenticated():
            if st.button("🚪 Sign Out", use_container_width=True, key="sign_out"):
                sign_out(controller)
