# projection.py — Vault Club Projection Engine
#
# Weekly time-step model of a club contract:
# - Three yield strands, each compounding at its own weekly rate
# - Phase 1: contributions split 15% / 50% / 25% across strands 1/2/3
# - Phase 2 (50% of term OR $1M vault): contributions to strand 1, strands 2/3
#   bleed 5%/week into strand 1, strand 1 funds a weekly wBTC DCA buy
# - Gas + utility fees deducted proportionally from every bucket each week
# - One sample per contract year; final sample liquidated fully into wBTC
#
# Pure: no I/O, no logging, deterministic for identical parameters.

from __future__ import annotations

import math
from dataclasses import dataclass, asdict, replace
from typing import Literal, Optional, List, Dict, Any

Rigor = Literal["light", "medium", "heavy", "custom"]

RIGOR_LEVELS = ("light", "medium", "heavy", "custom")

WEEKS_PER_YEAR: int = 52
WEEKS_PER_MONTH: float = 4.33


class SimulationParameterError(ValueError):
    pass


# ============================================================
# NUMERIC HELPERS
# ============================================================
def weekly_rate(apy_percent: float) -> float:
    """Convert an annual percentage yield into the equivalent weekly compounding rate."""
    return math.pow(1.0 + apy_percent / 100.0, 1.0 / WEEKS_PER_YEAR) - 1.0


def monthly_to_weekly(amount: float) -> float:
    return amount / WEEKS_PER_MONTH


# Year bands are inclusive upper bounds; the last band is open-ended.
_SCHEDULES: Dict[str, List[tuple]] = {
    # light is quoted per month: $100 / $150 / $200 / $250
    "light": [
        (1, monthly_to_weekly(100)),
        (2, monthly_to_weekly(150)),
        (3, monthly_to_weekly(200)),
        (None, monthly_to_weekly(250)),
    ],
    "medium": [(3, 50.0), (6, 100.0), (10, 200.0), (None, 250.0)],
    "heavy": [(3, 100.0), (6, 200.0), (10, 300.0), (None, 400.0)],
}

_DCA_CAPS: Dict[str, float] = {
    "light": 1000.0,
    "medium": 5000.0,
    "heavy": 10000.0,
    "custom": 2000.0,
}


def weekly_contribution(rigor: str, year_index: int, custom_amount: float = 0.0) -> float:
    """
    Weekly contribution owed in contract-year `year_index` (1-based).

    This is the single source of truth for the rigor schedule: the projection
    engine and the "deposit due now" calculation in contracts.py both call it.

    - light:  $100/mo (yr 1), $150/mo (yr 2), $200/mo (yr 3), $250/mo after
    - medium: $50/wk (yrs 1-3), $100 (4-6), $200 (7-10), $250 after
    - heavy:  $100/wk (yrs 1-3), $200 (4-6), $300 (7-10), $400 after
    - custom: flat `custom_amount`
    """
    if rigor == "custom":
        return float(custom_amount)

    bands = _SCHEDULES.get(rigor)
    if bands is None:
        raise SimulationParameterError(f"Unknown rigor level: {rigor!r}")

    for upper, amount in bands:
        if upper is None or year_index <= upper:
            return amount
    return bands[-1][1]


def dca_cap(rigor: str) -> float:
    """Weekly ceiling on the phase-2 wBTC purchase for a rigor tier."""
    return _DCA_CAPS.get(rigor, _DCA_CAPS["custom"])


# ============================================================
# DATA MODEL
# ============================================================
def _require_non_negative(name: str, value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise SimulationParameterError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(v) or v < 0:
        raise SimulationParameterError(f"{name} must be a finite, non-negative number, got {value!r}")
    return v


@dataclass(frozen=True)
class SimulationParameters:
    """Inputs for one projection run. Validated on construction."""
    apy_strand1: float = 3.5
    apy_strand2: float = 7.5
    apy_strand3: float = 12.5
    btc_price: float = 95000.0
    simulation_years: float = 15.0
    rigor: Rigor = "heavy"
    custom_weekly_amount: float = 75.0
    member_count: int = 1

    def __post_init__(self) -> None:
        for name in (
            "apy_strand1",
            "apy_strand2",
            "apy_strand3",
            "btc_price",
            "simulation_years",
            "custom_weekly_amount",
            "member_count",
        ):
            object.__setattr__(self, name, _require_non_negative(name, getattr(self, name)))

        if not float(self.member_count).is_integer():
            raise SimulationParameterError(
                f"member_count must be a whole number, got {self.member_count!r}"
            )
        object.__setattr__(self, "member_count", int(self.member_count))

        rigor = str(self.rigor or "").strip().lower()
        if rigor not in RIGOR_LEVELS:
            raise SimulationParameterError(
                f"rigor must be one of {', '.join(RIGOR_LEVELS)}; got {self.rigor!r}"
            )
        object.__setattr__(self, "rigor", rigor)

    # camelCase option names used by the UI layer
    _OPTION_KEYS = {
        "apyStrand1": "apy_strand1",
        "apyStrand2": "apy_strand2",
        "apyStrand3": "apy_strand3",
        "btcPrice": "btc_price",
        "simulationYears": "simulation_years",
        "rigor": "rigor",
        "customWeeklyAmount": "custom_weekly_amount",
        "memberCount": "member_count",
    }

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "SimulationParameters":
        """Build from a camelCase options dict. Unknown keys are ignored."""
        if not isinstance(options, dict):
            raise SimulationParameterError("options must be a dict")
        kwargs = {
            field_name: options[key]
            for key, field_name in cls._OPTION_KEYS.items()
            if key in options and options[key] is not None
        }
        return cls(**kwargs)

    def cache_key(self) -> tuple:
        return (
            self.apy_strand1,
            self.apy_strand2,
            self.apy_strand3,
            self.btc_price,
            self.simulation_years,
            self.rigor,
            self.custom_weekly_amount,
            self.member_count,
        )


@dataclass
class StrandBalances:
    strand1: float = 0.0
    strand2: float = 0.0
    strand3: float = 0.0
    wbtc: float = 0.0

    def total(self) -> float:
        return self.strand1 + self.strand2 + self.strand3 + self.wbtc


@dataclass(frozen=True)
class ProjectionPoint:
    """One yearly sample. Monetary fields are whole dollars."""
    year: int
    total: int
    strand1: int
    strand2: int
    strand3: int
    wbtc: int
    phase: int
    cumulative_deposited: int
    cumulative_gas_fees: int
    cumulative_utility_fees: int

    def to_dict(self) -> Dict[str, Any]:
        """camelCase dict for chart/summary consumers."""
        return {
            "year": self.year,
            "total": self.total,
            "strand1": self.strand1,
            "strand2": self.strand2,
            "strand3": self.strand3,
            "wbtc": self.wbtc,
            "phase": self.phase,
            "cumulativeDeposited": self.cumulative_deposited,
            "cumulativeGasFees": self.cumulative_gas_fees,
            "cumulativeUtilityFees": self.cumulative_utility_fees,
        }


def _round(x: float) -> int:
    # half-up like the chart layer expects; Python's round() is banker's rounding
    return int(math.floor(x + 0.5))


# ============================================================
# ENGINE
# ============================================================
class StrandProjection:
    """
    Weekly projection of a single club contract.

    LOCKED PARAMETERS:
    - Phase 1 split: 15% / 50% / 25% (strand 1 / 2 / 3)
    - Phase 2 trigger: 50% of term elapsed OR vault >= $1,000,000
    - Phase 2 migration: 5%/week from strands 2 and 3 into strand 1
    - Phase 2 DCA: min(10% of strand 1, rigor cap) per week into wBTC
    - Gas: $0.575/week (harvest 0.175 + RRL cycle 0.315 + upkeep 0.085)
    - Utility: $1/member/week
    """

    # ============================================================
    # ALLOCATION
    # ============================================================
    SPLIT_STRAND1: float = 0.15
    SPLIT_STRAND2: float = 0.50
    SPLIT_STRAND3: float = 0.25

    # ============================================================
    # PHASE 2
    # ============================================================
    PHASE2_PROGRESS_TRIGGER: float = 0.5
    PHASE2_VAULT_TRIGGER: float = 1_000_000.0
    MIGRATION_RATE: float = 0.05
    DCA_FRACTION: float = 0.10

    # ============================================================
    # FEES
    # ============================================================
    GAS_HARVEST_YIELD: float = 0.175
    GAS_RRL_CYCLE: float = 0.315
    GAS_UPKEEP: float = 0.085
    GAS_WEEKLY_TOTAL: float = 0.575
    UTILITY_FEE_PER_MEMBER: float = 1.0

    def __init__(self, params: SimulationParameters):
        self.params = params

        self.r1: float = weekly_rate(params.apy_strand1)
        self.r2: float = weekly_rate(params.apy_strand2)
        self.r3: float = weekly_rate(params.apy_strand3)

        self.total_weeks: int = int(math.floor(params.simulation_years * WEEKS_PER_YEAR))
        self.weekly_gas: float = self.GAS_WEEKLY_TOTAL
        # an empty club still pays for one seat
        self.weekly_utility: float = self.UTILITY_FEE_PER_MEMBER * (params.member_count or 1)

        self.balances = StrandBalances()
        self.phase: int = 1
        self.deposited: float = 0.0

    # ============================================================
    # SCHEDULE
    # ============================================================
    def contribution_for_week(self, week: int) -> float:
        year_index = week // WEEKS_PER_YEAR + 1
        return weekly_contribution(self.params.rigor, year_index, self.params.custom_weekly_amount)

    # ============================================================
    # PHASE
    # ============================================================
    def _update_phase(self, week: int) -> None:
        """
        Evaluated at the top of each week against last week's balances.
        Phase 2 latches: once entered it is never left within a run.
        """
        if self.phase == 2:
            return
        progress = week / self.total_weeks if self.total_weeks > 0 else 0.0
        if (
            progress >= self.PHASE2_PROGRESS_TRIGGER
            or self.balances.total() >= self.PHASE2_VAULT_TRIGGER
        ):
            self.phase = 2

    # ============================================================
    # WEEKLY UPDATES
    # ============================================================
    def _seed(self, deposit: float) -> None:
        """Week 0: pure split, nothing to compound yet."""
        b = self.balances
        b.strand1 = deposit * self.SPLIT_STRAND1
        b.strand2 = deposit * self.SPLIT_STRAND2
        b.strand3 = deposit * self.SPLIT_STRAND3

    def _phase1_step(self, deposit: float) -> None:
        b = self.balances
        b.strand1 = b.strand1 * (1 + self.r1) + deposit * self.SPLIT_STRAND1
        b.strand2 = b.strand2 * (1 + self.r2) + deposit * self.SPLIT_STRAND2
        b.strand3 = b.strand3 * (1 + self.r3) + deposit * self.SPLIT_STRAND3

    def _phase2_step(self, deposit: float) -> None:
        b = self.balances
        b.strand1 = b.strand1 * (1 + self.r1) + deposit
        b.strand2 = b.strand2 * (1 + self.r2)
        b.strand3 = b.strand3 * (1 + self.r3)

        from_s2 = b.strand2 * self.MIGRATION_RATE
        from_s3 = b.strand3 * self.MIGRATION_RATE
        b.strand2 -= from_s2
        b.strand3 -= from_s3
        b.strand1 += from_s2 + from_s3

        dca = min(b.strand1 * self.DCA_FRACTION, dca_cap(self.params.rigor))
        b.strand1 -= dca
        b.wbtc += dca

    def _deduct_fees(self) -> None:
        """
        Deduct gas + utility proportionally: every bucket shrinks by the same
        fraction. Fees at or above the vault total zero every bucket.
        """
        b = self.balances
        total_before = b.total()
        if total_before <= 0:
            return

        ratio = (self.weekly_gas + self.weekly_utility) / total_before
        if ratio >= 1.0:
            b.strand1 = b.strand2 = b.strand3 = b.wbtc = 0.0
            return

        keep = 1.0 - ratio
        b.strand1 *= keep
        b.strand2 *= keep
        b.strand3 *= keep
        b.wbtc *= keep

    # ============================================================
    # SAMPLING
    # ============================================================
    def _sample(self, week: int) -> ProjectionPoint:
        b = self.balances
        return ProjectionPoint(
            year=week // WEEKS_PER_YEAR,
            total=_round(b.total()),
            strand1=_round(b.strand1),
            strand2=_round(b.strand2),
            strand3=_round(b.strand3),
            wbtc=_round(b.wbtc),
            phase=self.phase,
            cumulative_deposited=_round(self.deposited),
            cumulative_gas_fees=_round(self.weekly_gas * week),
            cumulative_utility_fees=_round(self.weekly_utility * week),
        )

    @staticmethod
    def _liquidate(point: ProjectionPoint) -> ProjectionPoint:
        """Contract conclusion: everything left in the strands is swapped into wBTC."""
        wbtc = point.wbtc + point.strand1 + point.strand2 + point.strand3
        return replace(point, strand1=0, strand2=0, strand3=0, wbtc=wbtc, total=wbtc)

    # ============================================================
    # RUN
    # ============================================================
    def run(self) -> List[ProjectionPoint]:
        """
        Run the full term and return one ProjectionPoint per contract year
        (year 0 included). Safe to call repeatedly; state resets each call.
        """
        self.balances = StrandBalances()
        self.phase = 1
        self.deposited = 0.0

        points: List[ProjectionPoint] = []

        for week in range(self.total_weeks + 1):
            self._update_phase(week)
            deposit = self.contribution_for_week(week)

            if week == 0:
                self._seed(deposit)
            elif self.phase == 1:
                self._phase1_step(deposit)
                self._deduct_fees()
            else:
                self._phase2_step(deposit)
                self._deduct_fees()

            # cumulative_deposited counts completed weeks only: the payment
            # made on a year boundary opens the next contract year
            if week % WEEKS_PER_YEAR == 0:
                points.append(self._sample(week))

            self.deposited += deposit

        if points:
            points[-1] = self._liquidate(points[-1])

        return points


# ============================================================
# PUBLIC API
# ============================================================
def project(params: SimulationParameters) -> List[ProjectionPoint]:
    """Run a projection. Deterministic and side-effect free."""
    return StrandProjection(params).run()


def project_options(options: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Convenience for the UI: camelCase options in, camelCase dicts out."""
    return [p.to_dict() for p in project(SimulationParameters.from_options(options))]


def summarize(points: List[ProjectionPoint]) -> Dict[str, Any]:
    """Headline numbers for the summary cards."""
    if not points:
        return {
            "final_value": 0,
            "total_deposited": 0,
            "total_fees": 0,
            "net_gain": 0,
            "phase2_year": None,
            "years": 0,
        }

    last = points[-1]
    phase2_year: Optional[int] = next((p.year for p in points if p.phase == 2), None)
    total_fees = last.cumulative_gas_fees + last.cumulative_utility_fees

    return {
        "final_value": last.total,
        "total_deposited": last.cumulative_deposited,
        "total_fees": total_fees,
        "net_gain": last.total - last.cumulative_deposited,
        "phase2_year": phase2_year,
        "years": last.year,
    }


def points_to_frame(points: List[ProjectionPoint]):
    """DataFrame (one row per year) for the chart layer."""
    import pandas as pd

    return pd.DataFrame([asdict(p) for p in points])
