# tutorial_steps.py — onboarding step catalog (static, validated at import)
#
# Six bubbles ("1/6" .. "6/6") spread over ten steps. Each step is gated by:
# - required_page: the page that must be showing
# - prerequisite: a page already visited, or a step already completed
# - advance_on: what moves it forward (navigation / action / dismiss)
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple, Union, Dict

__all__ = [
    "AdvanceOn",
    "Position",
    "VisitedPage",
    "CompletedStep",
    "Prerequisite",
    "TutorialStep",
    "TUTORIAL_STEPS",
    "PAGES",
    "CONNECT_ACCOUNT_TARGET",
    "StepTableError",
    "validate_steps",
    "step_by_id",
]

AdvanceOn = Literal["navigation", "action", "dismiss"]
Position = Literal["top", "bottom", "left", "right"]

# Page ids used by navigation events
PAGES = ("home", "personal", "simulation", "dataset", "group")

# The step parked on this target is force-advanced by a wallet connection
CONNECT_ACCOUNT_TARGET = "connect-account"


@dataclass(frozen=True)
class VisitedPage:
    page: str


@dataclass(frozen=True)
class CompletedStep:
    step_id: int


Prerequisite = Union[VisitedPage, CompletedStep]


@dataclass(frozen=True)
class TutorialStep:
    id: int
    display_step: str
    target: str
    title: str
    message: str
    position: Position
    advance_on: AdvanceOn
    advance_value: Optional[str] = None
    required_page: Optional[str] = None
    prerequisite: Optional[Prerequisite] = None


class StepTableError(ValueError):
    pass


TUTORIAL_STEPS: Tuple[TutorialStep, ...] = (
    # ---------- 1/6: Welcome & Wallet ----------
    TutorialStep(
        id=1,
        display_step="1/6",
        target="nav-wallet",
        title="Welcome",
        message="Good to have you here. The Wallet tab is where you can set up your account and get started.",
        position="top",
        advance_on="navigation",
        advance_value="personal",
        required_page="home",
    ),
    TutorialStep(
        id=2,
        display_step="1/6",
        target=CONNECT_ACCOUNT_TARGET,
        title="Connect Your Account",
        message="This is where you create your account. Once connected, you'll have a secure wallet ready to go.",
        position="top",
        advance_on="action",
        required_page="personal",
        prerequisite=VisitedPage("personal"),
    ),
    # ---------- 2/6: Future page ----------
    TutorialStep(
        id=3,
        display_step="2/6",
        target="nav-future",
        title="View Projections",
        message="The Future tab lets you explore how your deposits could grow over time. Worth a look.",
        position="top",
        advance_on="navigation",
        advance_value="simulation",
        required_page="personal",
        prerequisite=CompletedStep(2),
    ),
    TutorialStep(
        id=4,
        display_step="2/6",
        target="future-page-intro",
        title="Future Projections",
        message=(
            'Here you\'ll find three investment "Strands," each with its own earnings rate. '
            "Feel free to adjust the numbers and see how different scenarios play out."
        ),
        position="bottom",
        advance_on="dismiss",
        required_page="simulation",
        prerequisite=VisitedPage("simulation"),
    ),
    # ---------- 3/6: Data page ----------
    TutorialStep(
        id=5,
        display_step="3/6",
        target="nav-data",
        title="Transparency",
        message=(
            "If you're interested in the details, the Data page shows fund distributions and live rates. "
            "It's there whenever you want a closer look."
        ),
        position="top",
        advance_on="navigation",
        advance_value="dataset",
        required_page="simulation",
        prerequisite=CompletedStep(4),
    ),
    # ---------- 4/6: Contracts page ----------
    TutorialStep(
        id=6,
        display_step="4/6",
        target="nav-contracts",
        title="Contracts",
        message="The Contracts tab is where you can see what's available and find the right fit.",
        position="top",
        advance_on="navigation",
        advance_value="group",
        required_page="dataset",
        prerequisite=CompletedStep(5),
    ),
    TutorialStep(
        id=7,
        display_step="4/6",
        target="contracts-directory",
        title="Club Directory",
        message=(
            "From here, you can either create your own contract or browse existing ones to join. "
            "Either path works, it's up to you."
        ),
        position="bottom",
        advance_on="dismiss",
        required_page="group",
        prerequisite=VisitedPage("group"),
    ),
    # ---------- 5/6: Homepage & Sequence Theory ----------
    TutorialStep(
        id=8,
        display_step="5/6",
        target="nav-home",
        title="Back to Home",
        message="A couple more things to show you on the Homepage.",
        position="top",
        advance_on="navigation",
        advance_value="home",
        required_page="group",
        prerequisite=CompletedStep(7),
    ),
    TutorialStep(
        id=9,
        display_step="5/6",
        target="sequence-theory-btn",
        title="About Us",
        message=(
            "If you'd like to learn more about the company and team behind this, "
            "the Sequence Theory link has all the details."
        ),
        position="bottom",
        advance_on="dismiss",
        required_page="home",
        prerequisite=VisitedPage("home"),
    ),
    # ---------- 6/6: Contract overview on Homepage ----------
    TutorialStep(
        id=10,
        display_step="6/6",
        target="home-contract-section",
        title="Your Overview",
        message=(
            "This is your home base: contract value, progress, and how your deposits are distributed. "
            "You're all set to explore."
        ),
        position="top",
        advance_on="dismiss",
        required_page="home",
        prerequisite=CompletedStep(9),
    ),
)


def validate_steps(steps: Tuple[TutorialStep, ...]) -> Tuple[TutorialStep, ...]:
    """
    Check the table once at startup:
    - ids run 1..N in order
    - navigation steps name the page they wait for
    - CompletedStep prerequisites point at an earlier step
    - VisitedPage prerequisites and required pages name known pages
    """
    if not steps:
        raise StepTableError("Tutorial step table is empty.")

    for index, step in enumerate(steps, start=1):
        if step.id != index:
            raise StepTableError(f"Step ids must run 1..N in order; position {index} has id {step.id}.")

        if step.advance_on not in ("navigation", "action", "dismiss"):
            raise StepTableError(f"Step {step.id}: unknown advance_on {step.advance_on!r}.")

        if step.advance_on == "navigation" and not step.advance_value:
            raise StepTableError(f"Step {step.id}: navigation step needs an advance_value.")

        for page in (step.advance_value, step.required_page):
            if page is not None and page not in PAGES:
                raise StepTableError(f"Step {step.id}: unknown page {page!r}.")

        prereq = step.prerequisite
        if isinstance(prereq, CompletedStep):
            if not (1 <= prereq.step_id < step.id):
                raise StepTableError(
                    f"Step {step.id}: completed-step prerequisite {prereq.step_id} must be an earlier step."
                )
        elif isinstance(prereq, VisitedPage):
            if prereq.page not in PAGES:
                raise StepTableError(f"Step {step.id}: unknown prerequisite page {prereq.page!r}.")
        elif prereq is not None:
            raise StepTableError(f"Step {step.id}: unsupported prerequisite {prereq!r}.")

    return steps


validate_steps(TUTORIAL_STEPS)

_BY_ID: Dict[int, TutorialStep] = {s.id: s for s in TUTORIAL_STEPS}


def step_by_id(step_id: int) -> Optional[TutorialStep]:
    return _BY_ID.get(step_id)
