# storage.py — string key/value stores for client-side state
#
# The tutorial persists its flags and history through one of these. In the
# running app that's SessionStateStore (st.session_state plays the role of the
# browser's localStorage); tests use MemoryStore.
#
# Limit: SessionStateStore lives as long as the Streamlit session. A browser
# reload starts a new session, so tutorial progress restarts from step 1, the
# same way a reload signs the member out.
from __future__ import annotations

from typing import Optional, Dict, Any

import streamlit as st


class KeyValueStore:
    """Minimal string store: get / set / remove."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SessionStateStore(KeyValueStore):
    """
    Namespaced keys inside st.session_state.

    `state` can be any mutable mapping; it defaults to st.session_state so
    pages just call SessionStateStore().
    """

    PREFIX = "_kv_"

    def __init__(self, state: Any = None):
        self._state = state if state is not None else st.session_state

    def _k(self, key: str) -> str:
        return f"{self.PREFIX}{key}"

    def get(self, key: str) -> Optional[str]:
        v = self._state.get(self._k(key))
        return None if v is None else str(v)

    def set(self, key: str, value: str) -> None:
        self._state[self._k(key)] = str(value)

    def remove(self, key: str) -> None:
        k = self._k(key)
        if k in self._state:
            del self._state[k]
