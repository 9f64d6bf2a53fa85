# pages/04_Contracts.py — club directory: create a contract or join one

import streamlit as st
st.set_page_config(page_title="Contracts", page_icon="🤝", layout="wide")  # set first

from sidebar import page_setup, get_registry
controller = page_setup("group")

from auth import current_wallet, require_auth
from contracts import (
    ContractError,
    JoinError,
    SchedulePeriod,
    MIN_MEMBERS,
    MAX_MEMBERS,
)
from projection import RIGOR_LEVELS

st.title("🤝 Club Directory")
st.markdown("Create your own contract or browse existing ones to join.")

registry = get_registry()
wallet = current_wallet()

create_tab, browse_tab, mine_tab = st.tabs(["Create", "Browse", "My Contracts"])

# ---------- Create ----------
with create_tab:
    c1, c2, c3 = st.columns(3)
    max_members = c1.number_input("Max members", min_value=MIN_MEMBERS, max_value=MAX_MEMBERS, value=4, step=1)
    is_charged = c2.toggle("Charged (under 1 year)", value=False)
    if is_charged:
        lockup = c3.number_input("Lockup (months)", min_value=1, max_value=11, value=6, step=1)
    else:
        lockup = c3.number_input("Lockup (years)", min_value=1, max_value=40, value=5, step=1)

    c4, c5 = st.columns(2)
    rigor = c4.selectbox("Rigor", RIGOR_LEVELS, index=RIGOR_LEVELS.index("medium"))
    is_private = c5.toggle("Private (invite only)", value=False)

    custom_amount = 75.0
    schedule = []
    if rigor == "custom":
        custom_amount = st.number_input("Custom weekly amount ($)", min_value=0.0, value=75.0, step=5.0)
        with st.expander("Optional schedule by contract year", expanded=False):
            for i in range(3):
                s1, s2, s3 = st.columns(3)
                y0 = s1.number_input("From year", min_value=1, value=1 + 3 * i, key=f"sched_from_{i}")
                y1 = s2.number_input("To year", min_value=1, value=3 + 3 * i, key=f"sched_to_{i}")
                amt = s3.number_input("Weekly ($)", min_value=0.0, value=0.0, key=f"sched_amt_{i}")
                if amt > 0 and y1 >= y0:
                    schedule.append(SchedulePeriod(int(y0), int(y1), float(amt)))

    if st.button("🚀 Deploy contract", type="primary"):
        creator = require_auth(controller)
        try:
            c = registry.create(
                creator,
                max_members=int(max_members),
                lockup_period=int(lockup),
                rigor=rigor,
                is_private=is_private,
                is_charged=is_charged,
                custom_weekly_amount=float(custom_amount),
                custom_schedule=schedule,
            )
            st.success(f"Contract deployed at `{c.contract_address}`. Share the address to invite members.")
        except ContractError as e:
            st.error(str(e))

# ---------- Browse ----------
with browse_tab:
    addr = st.text_input("Join by contract address", placeholder="0x…").strip()
    if st.button("Join", key="join_by_address", disabled=not addr):
        member = require_auth(controller)
        try:
            registry.join(addr, member)
            st.success("You joined the contract.")
        except JoinError as e:
            print(f"[contracts] join rejected ({e.reason}) for {addr[:10]}")
            st.error(str(e))
        except ContractError as e:
            st.error(str(e))

    public = registry.public()
    if not public:
        st.caption("No public contracts yet. Be the first to create one.")
    for c in public:
        with st.container(border=True):
            left, right = st.columns([4, 1])
            with left:
                st.markdown(f"**{c.contract_address[:10]}…{c.contract_address[-4:]}**")
                st.caption(c.describe())
            with right:
                joined = bool(wallet) and wallet in c.members
                if st.button(
                    "Joined" if joined else ("Full" if c.is_full else "Join"),
                    key=f"join_{c.contract_address}",
                    disabled=joined or c.is_full,
                    use_container_width=True,
                ):
                    member = require_auth(controller)
                    try:
                        registry.join(c.contract_address, member)
                        st.rerun()
                    except ContractError as e:
                        st.error(str(e))

# ---------- Mine ----------
with mine_tab:
    mine = registry.contracts_for(wallet) if wallet else []
    if not wallet:
        st.caption("Connect your account to see your contracts.")
    elif not mine:
        st.caption("You're not in any contracts yet.")
    for c in mine:
        with st.container(border=True):
            st.markdown(f"**{c.contract_address}**")
            st.caption(c.describe())
            st.caption(
                f"Due this week: ${c.weekly_amount():,.2f} · "
                f"Utility fee ${c.utility_fee_per_member:.2f}/member/week · "
                f"Concludes {c.concludes_at():%b %d, %Y}"
            )
