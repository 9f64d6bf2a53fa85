# pages/01_Wallet.py — account connection, wallet address, weekly deposit

from datetime import datetime, timezone

import streamlit as st
st.set_page_config(page_title="Wallet", page_icon="👛", layout="wide")  # set first

from sidebar import page_setup, get_registry
controller = page_setup("personal")

from auth import auth_modal, is_authenticated, current_wallet
from contracts import ContractError, can_deposit, days_until_next_deposit

st.title("👛 Wallet")

if not is_authenticated():
    st.markdown(
        "Create an account to get a secure, non-custodial wallet. "
        "Only you can sign transactions from it."
    )
    auth_modal(controller)
    st.stop()

wallet = current_wallet()
st.markdown(f"**Signed in as** {st.session_state.get('email') or ''}")

if not wallet:
    st.warning("Your wallet is still being set up. Try again in a moment.")
    st.stop()

st.code(wallet, language=None)

# ---------- Weekly deposit ----------
st.markdown("---")
st.markdown("### Weekly Deposit")

registry = get_registry()
now = datetime.now(timezone.utc)
mine = registry.contracts_for(wallet)
due = registry.weekly_deposit_due(wallet, now)
last = registry.last_deposit_at.get(wallet)

if not mine:
    st.caption("Join or create a contract to start depositing.")
    st.stop()

st.metric("Due this week", f"${due:,.2f}", help="Sum across every contract you belong to.")

if can_deposit(last, now):
    if st.button("💸 Deposit", type="primary"):
        try:
            paid = registry.record_deposit(wallet, now)
            st.success(f"Deposited ${paid:,.2f} across {len(mine)} contract(s).")
        except ContractError as e:
            st.error(str(e))
else:
    days = days_until_next_deposit(last, now)
    st.info(f"Next deposit available in {days} day{'' if days == 1 else 's'}.")
