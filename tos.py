# tos.py — Terms of Service text + the read-then-affirm gate used at sign-up
#
# Sections are revealed one at a time. The affirmation checkboxes only appear
# once every section has been revealed, and acceptance needs all of them.
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Tuple, Optional

TOS_VERSION = "2.0"
TOS_LAST_UPDATED = "January 18, 2026"


class ToSNotAccepted(RuntimeError):
    pass


@dataclass(frozen=True)
class ToSSection:
    id: int
    title: str
    content: str

    @property
    def heading(self) -> str:
        """Title without its leading "N. " number."""
        return re.sub(r"^\d+\.\s*", "", self.title)


TOS_SECTIONS: Tuple[ToSSection, ...] = (
    ToSSection(
        1,
        "1. Introduction: The Software Provider Framework",
        "Welcome to TVC: The Vault Club, a non-custodial software coordination platform developed by "
        "Sequence Theory, Inc. Sequence Theory is a software developer, not a financial advisor, custodian, "
        "or broker-dealer. By interacting with the platform, you are utilizing our proprietary smart contract "
        "templates to deploy your own private investment agreements. You acknowledge that you are initiating "
        "these actions autonomously and that Sequence Theory does not exercise discretionary control over "
        "your funds or investment outcomes.",
    ),
    ToSSection(
        2,
        "2. Eligibility & Non-Custodial Ownership",
        "To use this software, you must be 18+ years old and reside in a jurisdiction where DeFi protocol "
        "interaction is permitted. Your account is powered by Turnkey infrastructure, while ensuring you, and "
        "only you, retain the ability to sign transactions. Sequence Theory does not store, see, or have the "
        "power to recover your private keys. You accept full responsibility for maintaining access to your "
        "recovery email and passkey device.",
    ),
    ToSSection(
        3,
        "3. Service Description: User-Deployed Templates",
        'The Vault Club provides a suite of "Investment Templates" that users can deploy into private or '
        "public Safe{Core} Multisig Vaults (1-8 participants). These templates use Routed Reinvestment Logic "
        "(RRL) to automate yield compounding across established DeFi protocols (Aave, Spark, QuickSwap). Once "
        'your chosen template reaches its "Phase 2" trigger (determined by your selection of growth or '
        "timeline thresholds), the logic automatically transitions into wBTC accumulation and wealth "
        "preservation.",
    ),
    ToSSection(
        4,
        "4. Deposit Obligations & The 7-Day Grace Period",
        "Participating in TVC's contract is a social and financial commitment. Users are expected to meet the "
        "deposit frequency defined in their selected template. However, to account for real world emergencies "
        "or banking delays, every contract includes a 7-Day Grace Period. A deposit is only flagged as "
        '"Missed" if it remains unpaid after 7 full days from the due date. Late deposits within the grace '
        "period do not trigger penalties but may temporarily reduce the compounding efficiency for that cycle.",
    ),
    ToSSection(
        5,
        "5. Risk Disclosure: Leverage vs. Equity",
        "You acknowledge that DeFi involves inherent risks, including protocol exploits and market volatility.\n\n"
        "• Liquidation Risk (High Risk): Templates utilizing Subscription-Backed Borrowing (SBB) involve "
        "leverage. While protected by proprietary market-health indices, extreme market downturn events can "
        "result in loss of funds. Our metrics act as shields, not bulletproof.\n\n"
        '• Capital Preservation (Low Risk): Templates without SBB function like "Equity Shares" and carry zero '
        "liquidation risk, though they still remain subject to market price fluctuations.\n\n"
        "• Principal Protection: Your principal is protected by a third-party smart contract insurance "
        "provider against technical exploits only (hacks/bugs), not against market movements or price "
        "depreciations.",
    ),
    ToSSection(
        6,
        '6. Behavioral Enforcement: The "Kick" & Penalties',
        "To maintain group integrity, the system enforces a 3% ownership redistribution penalty for every "
        "three missed deposits (post-grace period).\n\n"
        '• The Kick Feature: A group may unanimously vote to "Kick" an inactive member. The kicked member\'s '
        "principal remains locked until the contract's Phase 2 trigger or original completion date to prevent "
        'users from "gaming" the lock-up period to exit early.\n\n'
        "• Lock-up Integrity: Users may not edit the parameters of a live contract more than once every 60 "
        'days to prevent impulsive "trading-like" behavior.',
    ),
    ToSSection(
        7,
        "7. Emergency Withdrawal & Unanimous Governance",
        "All structural changes to a live contract, including early termination, member removal, or switching "
        "RRL Strands, require a Unanimous Multisig Vote via the Safe{Core} interface.\n\n"
        "• Individual Exit: An individual may initiate an emergency exit, but they will receive Principal "
        'Only; all accrued yield and profits are forfeited as a "Disruption Fee."\n\n'
        "• Group Termination: If the entire group votes to end a contract early, 100% of the principal is "
        "returned, but 35% of total yield is retained by the protocol reserve to ensure long-term system "
        "sustainability.",
    ),
    ToSSection(
        8,
        "8. Weekly Engine Mechanics (RRL & SBB)",
        "The TVC engine operates on a deterministic weekly cycle:\n\n"
        "• Monday (Front-Loading): For leveraged templates, capital is front-loaded via Aave to maximize the "
        "time-value of money.\n\n"
        "• Friday (The Harvest): Profits are collected and redistributed according to your template's specific "
        'Routed Reinvestment Logic. Sequence Theory provides "Indexes" that monitors market health, but the '
        "execution is performed by autonomous smart contracts on the Polygon network.",
    ),
    ToSSection(
        9,
        "9. Utility Fees & Gas Optimization",
        "The Vault Club operates on a flat-fee utility model to ensure our incentives are aligned with your "
        "growth, not your losses:\n\n"
        "• System Utility Fee: $1.00 per user/week.\n\n"
        "• Charged Contracts: $1.25 per user/week (for contracts under 1-year duration). These serve as a "
        '"short term test" and yield is typically never substantial in these short periods.',
    ),
    ToSSection(
        10,
        "10. Regulatory & Legal: No Managerial Efforts",
        'Sequence Theory affirms that TVC is a software, that is a "tool for self-direction."\n\n'
        '• We do not offer "Investment Advice."\n\n'
        '• We do not exercise "Managerial Efforts" over your funds; the profit you earn is a result of the '
        "decentralized protocols you chose via your template.\n\n"
        "• We comply with Massachusetts Uniform Securities Act (Chapter 110A) by providing full transparency "
        "of logic and risk.\n\n"
        "• OFAC Compliance: We reserve the right to blacklist frontend access to flagged IPs & wallets by "
        "global AML/Sanctions lists, or wallets engaging in suspicious, spammy activity.",
    ),
    ToSSection(
        11,
        "11. Final Consent & Affirmation",
        'By clicking "Accept & Create Account" below, you affirm the four statements that follow.\n\n'
        f"Last Updated: {TOS_LAST_UPDATED} | Version: {TOS_VERSION}\n"
        "Sequence Theory, Inc. – The Vault Club",
    ),
)

# checkbox key -> label
AFFIRMATIONS: Dict[str, str] = {
    "non_custodial": (
        "I am using a non-custodial tool and am responsible for my own access (Account & Wallet Details)."
    ),
    "leverage_risk": (
        'I understand that "High Rigor" templates involve leverage and real, potential loss risk.'
    ),
    "penalty_accept": "I accept the 3% penalty for missed deposits after the 7-day grace period.",
    "software_provider": (
        "I acknowledge that Sequence Theory is a software provider, not a custodian, bank, advisor, or manager."
    ),
}


@dataclass(frozen=True)
class ToSAcceptance:
    version: str
    accepted_at: datetime
    affirmations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "tos_version": self.version,
            "tos_accepted_at": self.accepted_at.isoformat(),
            "affirmations": list(self.affirmations),
        }


@dataclass
class ToSAgreement:
    sections: Tuple[ToSSection, ...] = TOS_SECTIONS
    revealed: int = 1
    checked: Dict[str, bool] = field(default_factory=lambda: {k: False for k in AFFIRMATIONS})

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def remaining_sections(self) -> int:
        return max(0, self.total_sections - self.revealed)

    @property
    def visible_sections(self) -> Tuple[ToSSection, ...]:
        return self.sections[: self.revealed]

    @property
    def progress(self) -> float:
        return self.revealed / self.total_sections if self.total_sections else 1.0

    @property
    def all_sections_revealed(self) -> bool:
        return self.revealed >= self.total_sections

    @property
    def all_checked(self) -> bool:
        return all(self.checked.values())

    @property
    def can_accept(self) -> bool:
        return self.all_sections_revealed and self.all_checked

    def reveal_next(self) -> int:
        if self.revealed < self.total_sections:
            self.revealed += 1
        return self.revealed

    def reveal_all(self) -> None:
        self.revealed = self.total_sections

    def toggle(self, key: str, value: Optional[bool] = None) -> bool:
        """Flip (or set) one affirmation. Ignored until every section is revealed."""
        if key not in self.checked:
            raise KeyError(f"Unknown affirmation: {key!r}")
        if not self.all_sections_revealed:
            return self.checked[key]
        self.checked[key] = (not self.checked[key]) if value is None else bool(value)
        return self.checked[key]

    def reset(self) -> None:
        """Closing the dialog starts the reading over."""
        self.revealed = 1
        self.checked = {k: False for k in AFFIRMATIONS}

    def hint(self) -> str:
        if not self.all_sections_revealed:
            return "Please read all sections to enable account creation"
        if not self.all_checked:
            return "Please check all boxes to confirm your understanding"
        return ""

    def accept(self, now: Optional[datetime] = None) -> ToSAcceptance:
        if not self.can_accept:
            raise ToSNotAccepted(self.hint())
        return ToSAcceptance(
            version=TOS_VERSION,
            accepted_at=now or datetime.now(timezone.utc),
            affirmations=tuple(k for k, v in self.checked.items() if v),
        )
