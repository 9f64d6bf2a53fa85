# pages/03_Data.py — transparency: live rates, fund distribution, fee breakdown, terms

import streamlit as st
st.set_page_config(page_title="Data", page_icon="📊", layout="wide")  # set first

import pandas as pd
import altair as alt

from sidebar import page_setup
controller = page_setup("dataset")

from cache import get_cached_market_snapshot, invalidate_market_snapshot
from market_data import load_market_snapshot
from projection import StrandProjection, dca_cap, weekly_contribution, RIGOR_LEVELS
from contracts import UTILITY_FEE_STANDARD, UTILITY_FEE_CHARGED
from tos import ToSAgreement, TOS_VERSION, TOS_LAST_UPDATED

st.title("📊 Data & Transparency")

# ---------- Live rates ----------
snap = get_cached_market_snapshot(load_market_snapshot)

st.markdown("### Live Rates")
r1, r2, r3, r4 = st.columns(4)
r1.metric("Strand 1 · Spark USDC", f"{snap.apy_strand1:.2f}%")
r2.metric("Strand 2 · Aave v3 USDC (Polygon)", f"{snap.apy_strand2:.2f}%")
r3.metric("Strand 3 · QuickSwap ETH/USDC", f"{snap.apy_strand3:.2f}%")
r4.metric("BTC", f"${snap.btc_price:,.0f}")

if snap.used_fallback:
    st.caption("⚠️ One or more sources were unavailable; defaults shown where needed.")
if st.button("↻ Refresh rates"):
    invalidate_market_snapshot()
    st.rerun()

# ---------- Distribution ----------
st.markdown("---")
st.markdown("### Fund Distribution (Phase 1)")

split = pd.DataFrame({
    "Strand": ["Strand 1", "Strand 2", "Strand 3"],
    "Share (%)": [
        StrandProjection.SPLIT_STRAND1 * 100,
        StrandProjection.SPLIT_STRAND2 * 100,
        StrandProjection.SPLIT_STRAND3 * 100,
    ],
})
bar = (
    alt.Chart(split)
    .mark_bar()
    .encode(
        x=alt.X("Share (%):Q", scale=alt.Scale(domain=[0, 100])),
        y=alt.Y("Strand:N", title=None),
        color=alt.Color("Strand:N", legend=None),
        tooltip=["Strand:N", alt.Tooltip("Share (%):Q", format=".0f")],
    )
    .properties(height=140)
)
st.altair_chart(bar, use_container_width=True)
st.caption(
    f"Phase 2 starts at {StrandProjection.PHASE2_PROGRESS_TRIGGER:.0%} of the term or once the vault reaches "
    f"${StrandProjection.PHASE2_VAULT_TRIGGER:,.0f}. Strands 2 and 3 then move "
    f"{StrandProjection.MIGRATION_RATE:.0%}/week into Strand 1, which buys wBTC each week."
)

# ---------- Schedules ----------
st.markdown("### Weekly Contribution Schedules")
sched = pd.DataFrame(
    [
        {
            "Rigor": r.capitalize(),
            "Years 1-3": weekly_contribution(r, 1),
            "Years 4-6": weekly_contribution(r, 4),
            "Years 7-10": weekly_contribution(r, 7),
            "Years 11+": weekly_contribution(r, 11),
            "wBTC buy cap": dca_cap(r),
        }
        for r in RIGOR_LEVELS
        if r != "custom"
    ]
).set_index("Rigor")
st.dataframe(sched.style.format("${:,.2f}"), use_container_width=True)

# ---------- Fees ----------
st.markdown("### Fees (per week)")
fees = pd.DataFrame({
    "Item": [
        "Harvest yield (gas)",
        "RRL cycle (gas)",
        "Upkeep (gas)",
        "Utility fee per member",
        "Utility fee per member (charged contracts)",
    ],
    "Amount ($)": [
        StrandProjection.GAS_HARVEST_YIELD,
        StrandProjection.GAS_RRL_CYCLE,
        StrandProjection.GAS_UPKEEP,
        UTILITY_FEE_STANDARD,
        UTILITY_FEE_CHARGED,
    ],
})
st.dataframe(fees.set_index("Item").style.format("${:,.3f}"), use_container_width=True)

# ---------- Terms ----------
st.markdown("---")
with st.expander("📜 Terms of Service", expanded=False):
    viewer = ToSAgreement()
    viewer.reveal_all()
    for section in viewer.visible_sections:
        st.markdown(f"**{section.id}. {section.heading}**")
        st.markdown(section.content)
    st.caption(f"Last Updated: {TOS_LAST_UPDATED} | Version: {TOS_VERSION} | Sequence Theory, Inc.")
