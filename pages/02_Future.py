# pages/02_Future.py — projections: three strands + wBTC over time

import streamlit as st
st.set_page_config(page_title="Future", page_icon="📈", layout="wide")  # set first

import pandas as pd
import altair as alt

from sidebar import page_setup
controller = page_setup("simulation")

from cache import get_cached_market_snapshot, get_cached_projection
from market_data import APY_INPUT_MAX, STRAND3_APY_INPUT_MAX, load_market_snapshot
from projection import (
    RIGOR_LEVELS,
    SimulationParameterError,
    points_to_frame,
    summarize,
)

st.title("📈 Future Projections")
st.markdown(
    'Your deposits are split across three investment **"Strands,"** each with its own earnings rate. '
    "Adjust the numbers below to see how different scenarios play out."
)

snap = get_cached_market_snapshot(load_market_snapshot)
seed = snap.clamped()
if snap.used_fallback:
    st.caption("⚠️ Live rates unavailable for some inputs; showing default values.")

# ---------- Inputs ----------
with st.container(border=True):
    c1, c2, c3, c4 = st.columns(4)
    apy1 = c1.number_input("Strand 1 APY (%)", min_value=0.0, max_value=APY_INPUT_MAX, value=seed.apy_strand1, step=0.1)
    apy2 = c2.number_input("Strand 2 APY (%)", min_value=0.0, max_value=APY_INPUT_MAX, value=seed.apy_strand2, step=0.1)
    apy3 = c3.number_input("Strand 3 APY (%)", min_value=0.0, max_value=STRAND3_APY_INPUT_MAX, value=seed.apy_strand3, step=0.1)
    btc = c4.number_input("BTC price ($)", min_value=0.0, value=max(float(snap.btc_price), 0.0), step=1000.0)

    c5, c6, c7, c8 = st.columns(4)
    years = c5.slider("Years", min_value=1, max_value=40, value=15)
    rigor = c6.selectbox("Rigor", RIGOR_LEVELS, index=RIGOR_LEVELS.index("heavy"))
    custom = c7.number_input(
        "Custom weekly ($)",
        min_value=0.0,
        value=75.0,
        step=5.0,
        disabled=rigor != "custom",
    )
    members = c8.number_input("Members", min_value=1, max_value=8, value=1, step=1)

try:
    params = snap.to_parameters(
        apy_strand1=apy1,
        apy_strand2=apy2,
        apy_strand3=apy3,
        btc_price=btc,
        simulation_years=years,
        rigor=rigor,
        custom_weekly_amount=custom,
        member_count=int(members),
    )
except SimulationParameterError as e:
    st.error(str(e))
    st.stop()

points = get_cached_projection(params)
summary = summarize(points)

# ---------- Summary ----------
m1, m2, m3, m4 = st.columns(4)
m1.metric("Final value", f"${summary['final_value']:,}")
m2.metric("Total deposited", f"${summary['total_deposited']:,}")
m3.metric("Net gain", f"${summary['net_gain']:,}")
m4.metric("Fees paid", f"${summary['total_fees']:,}")

if summary["phase2_year"] is not None:
    st.caption(f"🔁 Phase 2 (wBTC accumulation) begins around year {summary['phase2_year']}.")
else:
    st.caption("Phase 2 is not reached within this horizon.")

# ---------- Chart ----------
df = points_to_frame(points)
long = df.melt(
    id_vars=["year"],
    value_vars=["strand1", "strand2", "strand3", "wbtc"],
    var_name="Holding",
    value_name="Value",
)
long["Holding"] = long["Holding"].map(
    {"strand1": "Strand 1", "strand2": "Strand 2", "strand3": "Strand 3", "wbtc": "wBTC"}
)

color_scale = alt.Scale(
    domain=["Strand 1", "Strand 2", "Strand 3", "wBTC"],
    range=["#3b82f6", "#22c55e", "#a855f7", "#f59e0b"],
)

area = (
    alt.Chart(long)
    .mark_area(opacity=0.85)
    .encode(
        x=alt.X("year:Q", title="Year", axis=alt.Axis(tickMinStep=1)),
        y=alt.Y("Value:Q", stack="zero", title="Value ($)"),
        color=alt.Color("Holding:N", scale=color_scale, legend=alt.Legend(title=None)),
        tooltip=["year:Q", "Holding:N", alt.Tooltip("Value:Q", format="$,.0f")],
    )
    .properties(height=380)
)

deposits = (
    alt.Chart(df)
    .mark_line(strokeDash=[6, 4], color="#e5e7eb")
    .encode(
        x="year:Q",
        y="cumulative_deposited:Q",
        tooltip=[alt.Tooltip("cumulative_deposited:Q", title="Deposited", format="$,.0f")],
    )
)

st.altair_chart(area + deposits, use_container_width=True)

# ---------- Table ----------
with st.expander("Year by year", expanded=False):
    table = pd.DataFrame([p.to_dict() for p in points]).set_index("year")
    st.dataframe(table, use_container_width=True)
