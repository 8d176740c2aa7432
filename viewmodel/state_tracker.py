# viewmodel/state_tracker.py
from __future__ import annotations

from typing import Any, Callable, Optional


class StateSnapshotTracker:
    """
    Turns successive states of a tool panel into undo steps.

    A panel encodes its inputs into a comparable value (a URI-style string, a
    tuple of field values, ...) and calls ``commit`` after every edit. Each
    commit that differs from the previous one records a step that re-applies
    the old state on undo and the new state on redo, via ``apply``.
    The first commit after a ``reset`` only establishes the baseline.
    """

    def __init__(self, manager, apply: Callable[[Any], None], description: str):
        self._manager = manager
        self._apply = apply
        self._description = description
        self._state: Optional[Any] = None

    @property
    def state(self) -> Optional[Any]:
        return self._state

    def reset(self, state: Optional[Any] = None) -> None:
        self._state = state

    def commit(self, state: Any) -> bool:
        """Remember *state*; return True when an undo step was recorded."""
        previous = self._state
        self._state = state

        if previous is None or previous == state:
            return False
        if not (self._manager.can_add_undo_redo_now() and self._manager.has_active_log()):
            return False

        apply = self._apply
        self._manager.add_undo_redo_step(
            lambda: apply(previous),
            lambda: apply(state),
            self._description,
        )
        return True
