# tutorial.py — onboarding tutorial state machine
#
# One controller per user session. It owns a TutorialRuntimeState and writes
# through an injected KeyValueStore, so the app backs it with session state and
# tests back it with MemoryStore.
#
#   inactive (step 0) --activate--> active (step 1..N) --> skipped | completed
#
# At most one step is visible at a time; see visible_step().
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional, Set, Dict, Tuple

from storage import KeyValueStore
from tutorial_steps import (
    TUTORIAL_STEPS,
    CONNECT_ACCOUNT_TARGET,
    CompletedStep,
    TutorialStep,
    VisitedPage,
    validate_steps,
)

STORAGE_KEYS: Dict[str, str] = {
    "skipped": "tvc_tutorial_skipped",
    "completed": "tvc_tutorial_completed",
    "step": "tvc_tutorial_step",
    "visited_pages": "tvc_tutorial_visited_pages",
    "completed_steps": "tvc_tutorial_completed_steps",
}

TRIGGERS = ("navigation", "action", "dismiss")


@dataclass
class TutorialRuntimeState:
    current_step_id: int = 0
    is_active: bool = False
    has_skipped: bool = False
    has_completed: bool = False
    visited_pages: Set[str] = field(default_factory=set)
    completed_step_ids: Set[int] = field(default_factory=set)


class TutorialController:
    """
    Tutorial step advancement.

    Inputs (all supplied by the surrounding app):
    - set_page(page): the page now showing
    - advance("navigation", page) / advance("action"): user did something
    - dismiss(): the X on the bubble
    - set_auth_modal_open(bool): login/sign-up modal visibility
    - set_wallet_connected(bool): authenticated / signed out

    Output:
    - visible_step(): the TutorialStep to draw, or None
    """

    def __init__(
        self,
        store: KeyValueStore,
        authenticated: bool = False,
        steps: Tuple[TutorialStep, ...] = TUTORIAL_STEPS,
        current_page: str = "home",
    ):
        self._store = store
        self._steps: Tuple[TutorialStep, ...] = validate_steps(tuple(steps))
        self._by_id: Dict[int, TutorialStep] = {s.id: s for s in self._steps}
        self._last_id: int = self._steps[-1].id

        self._page: str = current_page
        self._auth_modal_open: bool = False
        self._wallet_connected: bool = bool(authenticated)
        # step id whose bubble was closed without advancing
        self._hidden_step_id: int = 0

        self._state = self._load()

        if not self._state.has_skipped and not self._state.has_completed:
            if not self._wallet_connected:
                if self._state.current_step_id == 0:
                    self._state.current_step_id = 1
                self._state.is_active = True
                self._persist_progress()
            else:
                # returning user who is already signed in
                self._state.current_step_id = 0
                self.on_wallet_connected()

    # ============================================================
    # PERSISTENCE
    # ============================================================
    def _load(self) -> TutorialRuntimeState:
        """Read persisted state. Anything unreadable falls back to its default."""
        state = TutorialRuntimeState()
        state.has_skipped = self._read_flag("skipped")
        state.has_completed = self._read_flag("completed")
        state.current_step_id = self._read_step()
        state.visited_pages = self._read_visited_pages()
        state.completed_step_ids = self._read_completed_steps()
        return state

    def _read_flag(self, name: str) -> bool:
        raw = self._store.get(STORAGE_KEYS[name])
        if raw is None or raw == "false":
            return False
        if raw == "true":
            return True
        print(f"[tutorial] ignoring malformed {STORAGE_KEYS[name]}={raw!r}")
        return False

    def _read_step(self) -> int:
        raw = self._store.get(STORAGE_KEYS["step"])
        if raw is None:
            return 0
        try:
            step_id = int(raw)
        except (TypeError, ValueError):
            print(f"[tutorial] ignoring malformed {STORAGE_KEYS['step']}={raw!r}")
            return 0
        if step_id not in self._by_id:
            print(f"[tutorial] ignoring unknown step id {step_id}")
            return 0
        return step_id

    def _read_json_list(self, name: str) -> Optional[list]:
        raw = self._store.get(STORAGE_KEYS[name])
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            data = None
        if not isinstance(data, list):
            print(f"[tutorial] ignoring malformed {STORAGE_KEYS[name]}={raw!r}")
            return None
        return data

    def _read_visited_pages(self) -> Set[str]:
        data = self._read_json_list("visited_pages")
        if data is None:
            return set()
        if not all(isinstance(p, str) for p in data):
            print(f"[tutorial] ignoring malformed {STORAGE_KEYS['visited_pages']}")
            return set()
        return set(data)

    def _read_completed_steps(self) -> Set[int]:
        data = self._read_json_list("completed_steps")
        if data is None:
            return set()
        # bool is an int subclass; reject it explicitly
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in data):
            print(f"[tutorial] ignoring malformed {STORAGE_KEYS['completed_steps']}")
            return set()
        return set(data)

    def _persist_progress(self) -> None:
        """Step id, visited pages and completed steps are always written together."""
        s = self._state
        if s.current_step_id > 0:
            self._store.set(STORAGE_KEYS["step"], str(s.current_step_id))
        else:
            self._store.remove(STORAGE_KEYS["step"])
        self._store.set(STORAGE_KEYS["visited_pages"], json.dumps(sorted(s.visited_pages)))
        self._store.set(STORAGE_KEYS["completed_steps"], json.dumps(sorted(s.completed_step_ids)))

    def _clear_progress(self) -> None:
        self._store.remove(STORAGE_KEYS["step"])
        self._store.remove(STORAGE_KEYS["visited_pages"])
        self._store.remove(STORAGE_KEYS["completed_steps"])

    # ============================================================
    # READS
    # ============================================================
    @property
    def state(self) -> TutorialRuntimeState:
        return self._state

    @property
    def current_page(self) -> str:
        return self._page

    @property
    def auth_modal_open(self) -> bool:
        return self._auth_modal_open

    @property
    def steps(self) -> Tuple[TutorialStep, ...]:
        return self._steps

    @property
    def current_step(self) -> Optional[TutorialStep]:
        """The step the machine is parked on, visible or not."""
        if not self._state.is_active or self._state.current_step_id <= 0:
            return None
        return self._by_id.get(self._state.current_step_id)

    def is_prerequisite_met(self, step: TutorialStep) -> bool:
        prereq = step.prerequisite
        if prereq is None:
            return True
        if isinstance(prereq, VisitedPage):
            return prereq.page in self._state.visited_pages
        if isinstance(prereq, CompletedStep):
            return prereq.step_id in self._state.completed_step_ids
        return True

    def visible_step(self) -> Optional[TutorialStep]:
        """
        The bubble to draw right now, if any. All must hold:
        - tutorial active and parked on a real step
        - no auth modal open
        - bubble not closed by a non-advancing dismiss
        - on the step's required page (if set)
        - prerequisite satisfied (if set)
        """
        step = self.current_step
        if step is None:
            return None
        if self._auth_modal_open:
            return None
        if self._hidden_step_id == step.id:
            return None
        if step.required_page and step.required_page != self._page:
            return None
        if not self.is_prerequisite_met(step):
            return None
        return step

    # ============================================================
    # EXTERNAL SIGNALS
    # ============================================================
    def set_page(self, page: str) -> None:
        """Record navigation. Visited history is kept only while onboarding is pending."""
        page = str(page or "").strip()
        if not page:
            return

        if page != self._page:
            self._hidden_step_id = 0
        self._page = page

        s = self._state
        if s.has_skipped or s.has_completed:
            return
        if page not in s.visited_pages:
            s.visited_pages.add(page)
            self._persist_progress()

    def set_auth_modal_open(self, open_: bool) -> None:
        open_ = bool(open_)
        if open_ != self._auth_modal_open:
            self._hidden_step_id = 0
        self._auth_modal_open = open_

    def set_wallet_connected(self, connected: bool) -> None:
        """Feed the current auth status; only changes fire a transition."""
        connected = bool(connected)
        if connected == self._wallet_connected:
            return
        self._wallet_connected = connected
        if connected:
            self.on_wallet_connected()
        else:
            self.on_wallet_disconnected()

    def on_wallet_connected(self) -> None:
        """
        - Parked on the connect-account step: advance as if the action fired.
        - Not yet started (step 0, never skipped/completed): the user is
          already onboarded, so mark the tutorial completed.
        """
        self._wallet_connected = True
        s = self._state
        step = self.current_step
        if step is not None and step.target == CONNECT_ACCOUNT_TARGET:
            print(f"[tutorial] wallet connected on step {step.id}; advancing")
            self._next_step()
        elif s.current_step_id == 0 and not s.has_completed and not s.has_skipped:
            print("[tutorial] wallet already connected; marking tutorial completed")
            self.complete()

    def on_wallet_disconnected(self) -> None:
        """Signed out before finishing: (re)activate, starting at step 1 if idle."""
        self._wallet_connected = False
        s = self._state
        if s.has_skipped or s.has_completed:
            return
        if s.current_step_id == 0:
            s.current_step_id = 1
        s.is_active = True
        self._persist_progress()

    # ============================================================
    # TRANSITIONS
    # ============================================================
    def _next_step(self) -> None:
        s = self._state
        finished = s.current_step_id
        s.completed_step_ids.add(finished)
        self._hidden_step_id = 0

        if finished >= self._last_id:
            self.complete()
            return

        s.current_step_id = finished + 1
        self._persist_progress()

    def advance(self, trigger: str, value: Optional[str] = None) -> bool:
        """
        Offer an event to the current step. Visibility is not required, only
        an active step whose advance_on matches. Returns True if it moved.
        """
        if trigger not in TRIGGERS:
            print(f"[tutorial] ignoring unknown trigger {trigger!r}")
            return False
        if trigger == "dismiss":
            return self.dismiss()

        step = self.current_step
        if step is None or step.advance_on != trigger:
            return False

        if trigger == "navigation":
            if value != step.advance_value:
                return False
            print(f"[tutorial] advancing from step {step.id} via navigation to {value}")
        else:
            print(f"[tutorial] advancing from step {step.id} via action")

        self._next_step()
        return True

    def dismiss(self) -> bool:
        """
        Close the bubble. Dismiss-type steps advance; any other step is only
        hidden until the page or auth modal changes.
        """
        step = self.current_step
        if step is None:
            return False
        if step.advance_on == "dismiss":
            self._next_step()
            return True
        self._hidden_step_id = step.id
        return False

    def skip(self) -> None:
        s = self._state
        s.has_skipped = True
        s.is_active = False
        s.current_step_id = 0
        s.visited_pages = set()
        s.completed_step_ids = set()
        self._hidden_step_id = 0
        self._store.set(STORAGE_KEYS["skipped"], "true")
        self._clear_progress()

    def complete(self) -> None:
        s = self._state
        s.has_completed = True
        s.is_active = False
        s.current_step_id = 0
        s.visited_pages = set()
        s.completed_step_ids = set()
        self._hidden_step_id = 0
        self._store.set(STORAGE_KEYS["completed"], "true")
        self._clear_progress()

    def reset(self) -> None:
        """Forget everything and start again at step 1."""
        self._state = TutorialRuntimeState(current_step_id=1, is_active=True)
        self._hidden_step_id = 0
        self._store.remove(STORAGE_KEYS["skipped"])
        self._store.remove(STORAGE_KEYS["completed"])
        self._clear_progress()
