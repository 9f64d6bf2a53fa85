# contracts.py — club contracts ("subclubs"): create, join, deposits due
#
# In-memory only: one registry per server process, shared by every browser
# session (see sidebar.get_registry). Rigor schedules come from
# projection.weekly_contribution so the "due now" amount never drifts from the
# projection chart.
from __future__ import annotations

import hashlib
import threading
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from projection import RIGOR_LEVELS, weekly_contribution

SECONDS_PER_YEAR: float = 365.25 * 24 * 60 * 60
DEPOSIT_COOLDOWN_DAYS: int = 5

MIN_MEMBERS: int = 1
MAX_MEMBERS: int = 8

# Deposits credited to a contract's on-chain strands
DEPOSIT_SPLIT_STRAND1: float = 0.10
DEPOSIT_SPLIT_STRAND2: float = 0.60
DEPOSIT_SPLIT_STRAND3: float = 0.30

UTILITY_FEE_STANDARD: float = 1.00
UTILITY_FEE_CHARGED: float = 1.25

class ContractError(ValueError):
    pass


class JoinError(ContractError):
    """reason: not_found | private | full | already_member"""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SchedulePeriod:
    """Custom-rigor band: contract years year_start..year_end pay `amount` per week."""
    year_start: int
    year_end: int
    amount: float

    def covers(self, years_elapsed: float) -> bool:
        return (self.year_start - 1) <= years_elapsed < self.year_end


@dataclass
class ClubContract:
    contract_address: str
    creator: str
    max_members: int
    lockup_period: int
    rigor: str
    is_private: bool = False
    is_charged: bool = False
    custom_weekly_amount: float = 0.0
    custom_schedule: List[SchedulePeriod] = field(default_factory=list)
    members: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    strand1_balance: float = 0.0
    strand2_balance: float = 0.0
    strand3_balance: float = 0.0
    total_balance: float = 0.0

    @property
    def current_members(self) -> int:
        return len(self.members)

    @property
    def is_full(self) -> bool:
        return self.current_members >= self.max_members

    @property
    def lockup_unit(self) -> str:
        return "month" if self.is_charged else "year"

    @property
    def utility_fee_per_member(self) -> float:
        return UTILITY_FEE_CHARGED if self.is_charged else UTILITY_FEE_STANDARD

    def concludes_at(self) -> datetime:
        if self.is_charged:
            return self.created_at + timedelta(days=30 * self.lockup_period)
        return self.created_at + timedelta(days=365 * self.lockup_period)

    def years_elapsed(self, now: Optional[datetime] = None) -> float:
        now = now or _utcnow()
        return max(0.0, (now - self.created_at).total_seconds() / SECONDS_PER_YEAR)

    def weekly_amount(self, now: Optional[datetime] = None) -> float:
        """Contribution currently owed per member per week."""
        elapsed = self.years_elapsed(now)
        if self.rigor == "custom":
            for period in self.custom_schedule:
                if period.covers(elapsed):
                    return float(period.amount)
            return float(self.custom_weekly_amount or 0.0)
        year_index = int(math.floor(elapsed)) + 1
        return weekly_contribution(self.rigor, year_index)

    def describe(self) -> str:
        plural = "" if self.lockup_period == 1 else "s"
        return (
            f"{self.lockup_period} {self.lockup_unit}{plural} lockup • "
            f"{self.rigor.capitalize()} rigor • {self.current_members}/{self.max_members} members"
        )


# ============================================================
#  DEPOSIT CADENCE
# ============================================================
def can_deposit(last_deposit: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if last_deposit is None:
        return True
    now = now or _utcnow()
    return (now - last_deposit) >= timedelta(days=DEPOSIT_COOLDOWN_DAYS)


def days_until_next_deposit(last_deposit: Optional[datetime], now: Optional[datetime] = None) -> int:
    if last_deposit is None:
        return 0
    now = now or _utcnow()
    days_since = (now - last_deposit).total_seconds() / 86400.0
    return max(0, math.ceil(DEPOSIT_COOLDOWN_DAYS - days_since))


# ============================================================
#  REGISTRY
# ============================================================
class ContractRegistry:
    """All deployed contracts. Every read and write goes through _lock."""

    def __init__(self):
        self._contracts: Dict[str, ClubContract] = {}
        self._seq: int = 0
        self.last_deposit_at: Dict[str, datetime] = {}
        # one registry is shared by every browser session
        self._lock = threading.RLock()

    def _address_for(self, creator: str) -> str:
        self._seq += 1
        digest = hashlib.sha256(f"{creator}:{self._seq}".encode("utf-8")).hexdigest()
        return "0x" + digest[:40]

    def all(self) -> List[ClubContract]:
        with self._lock:
            return list(self._contracts.values())

    def public(self) -> List[ClubContract]:
        with self._lock:
            return [c for c in self._contracts.values() if not c.is_private]

    def get(self, address: str) -> Optional[ClubContract]:
        with self._lock:
            return self._contracts.get(address)

    def contracts_for(self, wallet: str) -> List[ClubContract]:
        if not wallet:
            return []
        with self._lock:
            return [c for c in self._contracts.values() if wallet in c.members]

    def create(
        self,
        creator: str,
        *,
        max_members: int = 4,
        lockup_period: int = 5,
        rigor: str = "medium",
        is_private: bool = False,
        is_charged: bool = False,
        custom_weekly_amount: float = 75.0,
        custom_schedule: Optional[List[SchedulePeriod]] = None,
        now: Optional[datetime] = None,
    ) -> ClubContract:
        """Deploy a new contract with the creator as its first member."""
        if not creator:
            raise ContractError("Connect your wallet before creating a contract.")
        if rigor not in RIGOR_LEVELS:
            raise ContractError(f"Unknown rigor level: {rigor!r}")
        if not (MIN_MEMBERS <= int(max_members) <= MAX_MEMBERS):
            raise ContractError(f"Max members must be between {MIN_MEMBERS} and {MAX_MEMBERS}.")
        if int(lockup_period) < 1:
            raise ContractError("Lockup period must be at least 1.")
        if is_charged and int(lockup_period) >= 12:
            raise ContractError("Charged contracts must run for less than a year (1-11 months).")
        if rigor == "custom" and float(custom_weekly_amount) < 0:
            raise ContractError("Custom weekly amount cannot be negative.")

        with self._lock:
            address = self._address_for(creator)
            contract = ClubContract(
                contract_address=address,
                creator=creator,
                max_members=int(max_members),
                lockup_period=int(lockup_period),
                rigor=rigor,
                is_private=bool(is_private),
                is_charged=bool(is_charged),
                custom_weekly_amount=float(custom_weekly_amount) if rigor == "custom" else 0.0,
                custom_schedule=list(custom_schedule or []) if rigor == "custom" else [],
                members=[creator],
                created_at=now or _utcnow(),
            )
            self._contracts[address] = contract
        print(f"[contracts] deployed {address[:10]} rigor={rigor} max={max_members} private={is_private}")
        return contract

    def join(self, address: str, wallet: str) -> ClubContract:
        """
        Join a public contract by address (share link). Raises JoinError with
        a reason the UI can turn into a message.
        """
        if not wallet:
            raise ContractError("Connect your wallet before joining a contract.")

        with self._lock:
            contract = self._contracts.get(address)
            if contract is None:
                raise JoinError(
                    "not_found",
                    "Contract not found. The link may be invalid or the contract may not be deployed yet.",
                )
            if wallet in contract.members:
                raise JoinError("already_member", "You are already a member of this contract.")
            if contract.is_private:
                raise JoinError(
                    "private",
                    "This is a private contract. You need a direct invitation from the contract owner.",
                )
            if contract.is_full:
                raise JoinError("full", "This contract is full. No more members can join.")

            updated = replace(contract, members=contract.members + [wallet])
            self._contracts[address] = updated
        print(f"[contracts] {wallet[:10]} joined {address[:10]}")
        return updated

    # ============================================================
    #  DEPOSITS
    # ============================================================
    def weekly_deposit_due(self, wallet: str, now: Optional[datetime] = None) -> float:
        """Sum of this week's contribution across every contract the wallet belongs to."""
        return sum(c.weekly_amount(now) for c in self.contracts_for(wallet))

    def record_deposit(self, wallet: str, now: Optional[datetime] = None) -> float:
        """
        Pay this week's deposit. Each member contract is credited its own
        weekly amount, split 10/60/30 across its strands. Returns the total.
        """
        now = now or _utcnow()
        with self._lock:
            contracts = self.contracts_for(wallet)
            if not contracts:
                raise ContractError("You must join at least one contract before depositing.")

            last = self.last_deposit_at.get(wallet)
            if not can_deposit(last, now):
                days = days_until_next_deposit(last, now)
                raise ContractError(f"You can deposit again in {days} day{'' if days == 1 else 's'}.")

            total = 0.0
            for c in contracts:
                amount = c.weekly_amount(now)
                c.strand1_balance += amount * DEPOSIT_SPLIT_STRAND1
                c.strand2_balance += amount * DEPOSIT_SPLIT_STRAND2
                c.strand3_balance += amount * DEPOSIT_SPLIT_STRAND3
                c.total_balance += amount
                total += amount

            self.last_deposit_at[wallet] = now
        print(f"[contracts] deposit {total:.2f} from {wallet[:10]} across {len(contracts)} contract(s)")
        return total
