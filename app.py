# app.py — home: hero, Sequence Theory link, contract overview for the connected wallet

import os
from datetime import datetime, timezone
import streamlit as st

# ---- Environment flag ----
APP_ENV = os.getenv("APP_ENV", "prod")

# ---- Page meta (run first) ----
env_suffix = " (DEV)" if APP_ENV == "dev" else ""
st.set_page_config(
    page_title=f"The Vault Club{env_suffix}",
    page_icon="🔒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ---- Shared sidebar + tutorial ----
from sidebar import page_setup, get_registry
controller = page_setup("home")

from auth import current_wallet, is_authenticated
from contracts import DEPOSIT_SPLIT_STRAND1, DEPOSIT_SPLIT_STRAND2, DEPOSIT_SPLIT_STRAND3

SEQUENCE_THEORY_URL = "https://sequencetheoryinc.com"

# ---------- Hero ----------
st.title("🔒 The Vault Club")
if APP_ENV == "dev":
    st.caption("🔧 Development Environment")

st.markdown(
    "Pool weekly deposits with people you trust. Three yield **Strands** compound your savings, "
    "and once the vault crosses its growth threshold it shifts into wBTC for the long haul."
)

hero_l, hero_r = st.columns([3, 1])
with hero_l:
    if not is_authenticated():
        st.info("👛 Open the **Wallet** tab to create your account and get started.")
with hero_r:
    st.link_button("Sequence Theory ↗", SEQUENCE_THEORY_URL, use_container_width=True)

st.markdown("---")

# ---------- Contract overview ----------
st.markdown("### Your Overview")

wallet = current_wallet()
registry = get_registry()
mine = registry.contracts_for(wallet) if wallet else []

if not wallet:
    st.caption("Connect your account to see your contracts here.")
elif not mine:
    st.caption("You're not in any contracts yet. Create or join one from the **Contracts** tab.")
    if st.button("🤝 Browse contracts"):
        st.switch_page("pages/04_Contracts.py")
else:
    now = datetime.now(timezone.utc)
    total_value = sum(c.total_balance for c in mine)
    due = registry.weekly_deposit_due(wallet, now)

    c1, c2, c3 = st.columns(3)
    c1.metric("Contract value", f"${total_value:,.2f}")
    c2.metric("Contracts", len(mine))
    c3.metric("Due this week", f"${due:,.2f}")

    for c in mine:
        with st.container(border=True):
            st.markdown(f"**{c.contract_address[:10]}…{c.contract_address[-4:]}**")
            st.caption(c.describe())

            span = (c.concludes_at() - c.created_at).total_seconds()
            elapsed = (now - c.created_at).total_seconds()
            progress = min(1.0, max(0.0, elapsed / span)) if span > 0 else 1.0
            st.progress(progress, text=f"{progress * 100:.1f}% of lockup")

            s1, s2, s3 = st.columns(3)
            s1.metric(f"Strand 1 ({DEPOSIT_SPLIT_STRAND1:.0%})", f"${c.strand1_balance:,.2f}")
            s2.metric(f"Strand 2 ({DEPOSIT_SPLIT_STRAND2:.0%})", f"${c.strand2_balance:,.2f}")
            s3.metric(f"Strand 3 ({DEPOSIT_SPLIT_STRAND3:.0%})", f"${c.strand3_balance:,.2f}")
