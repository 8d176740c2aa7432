# viewmodel/undo_redo.py
"""Undo/redo history for user edits, kept per (spectrum file, sample set).

The history is a deque of steps plus an offset counting how many steps back
from the newest one the user currently is. Making a new edit after undoing
does not throw the undone steps away: they are re-appended with their undo
and redo actions swapped, so undoing past the new edit first re-applies
what was undone and then walks further back through the old history.

Each foreground (file, samples) pair gets its own history. Switching the
displayed foreground parks the current history and revives the one for the
new pair, if one was parked earlier.
"""
from __future__ import annotations

import contextlib
import enum
import logging
from collections import OrderedDict, deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, FrozenSet, Iterable, List, Optional

from PySide6.QtCore import QObject, Signal

from dataio.document_registry import DocumentRegistry, DocumentToken
from .logging_helpers import log_warning

logger = logging.getLogger(__name__)

Action = Callable[[], Any]


class SpectrumType(enum.Enum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"
    SECONDARY = "secondary"


class HistoryState(enum.Enum):
    AT_TIP = "at_tip"
    MID_HISTORY = "mid_history"
    FULLY_UNDONE = "fully_undone"


class ReplayStatus(enum.Enum):
    EXECUTED = "executed"
    FAILED = "failed"
    NOTHING_TO_DO = "nothing_to_do"


@dataclass(frozen=True)
class UndoRedoStep:
    undo: Optional[Action]
    redo: Optional[Action]
    description: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.undo is None and self.redo is None:
            raise ValueError("an undo/redo step needs an undo or a redo action")

    def swapped(self) -> "UndoRedoStep":
        return replace(self, undo=self.redo, redo=self.undo)


@dataclass(frozen=True)
class ReplayResult:
    status: ReplayStatus
    step: Optional[UndoRedoStep] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is ReplayStatus.EXECUTED


_NOTHING = ReplayResult(ReplayStatus.NOTHING_TO_DO)


def _invoke(step: UndoRedoStep, action: Action) -> ReplayResult:
    try:
        action()
    except Exception as exc:
        return ReplayResult(ReplayStatus.FAILED, step, exc)
    return ReplayResult(ReplayStatus.EXECUTED, step)


class StepLog:
    """Ordered undo/redo steps and the cursor into them.

    ``step_offset`` is how many steps back from the newest step we are;
    0 <= step_offset <= len(self) always holds.
    """

    def __init__(self, steps: Optional[Iterable[UndoRedoStep]] = None):
        self._steps: Deque[UndoRedoStep] = deque(steps or ())
        self._step_offset = 0

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def step_offset(self) -> int:
        return self._step_offset

    @property
    def state(self) -> HistoryState:
        if self._step_offset == 0:
            return HistoryState.AT_TIP
        if self._step_offset >= len(self._steps):
            return HistoryState.FULLY_UNDONE
        return HistoryState.MID_HISTORY

    def descriptions(self) -> List[str]:
        return [s.description for s in self._steps]

    def record(self, step: UndoRedoStep) -> None:
        num_steps = len(self._steps)
        if 0 < self._step_offset <= num_steps:
            # Re-append the undone steps, newest first, with roles swapped, so
            # undoing past the new step re-applies them and then keeps going.
            for index in range(self._step_offset):
                self._steps.append(self._steps[num_steps - 1 - index].swapped())
        self._step_offset = 0
        self._steps.append(step)

    def can_undo(self) -> bool:
        return self._step_offset < len(self._steps)

    def can_redo(self) -> bool:
        return self._step_offset > 0

    def undo(self) -> ReplayResult:
        num_steps = len(self._steps)
        if self._step_offset >= num_steps:
            return _NOTHING

        step = None
        while self._step_offset < num_steps:
            candidate = self._steps[num_steps - 1 - self._step_offset]
            self._step_offset += 1
            if candidate.undo is not None:
                step = candidate
                break

        if step is None:
            self._step_offset = num_steps
            return _NOTHING
        return _invoke(step, step.undo)

    def redo(self) -> ReplayResult:
        num_steps = len(self._steps)
        if self._step_offset == 0 or num_steps == 0:
            return _NOTHING
        self._step_offset = min(self._step_offset, num_steps)

        step = None
        while self._step_offset > 0:
            candidate = self._steps[num_steps - self._step_offset]
            self._step_offset -= 1
            if candidate.redo is not None:
                step = candidate
                break

        if step is None:
            self._step_offset = 0
            return _NOTHING
        return _invoke(step, step.redo)


@dataclass(frozen=True)
class SessionKey:
    """Which foreground an undo history belongs to."""

    document: DocumentToken
    samples: FrozenSet[int]

    @classmethod
    def make(cls, document: DocumentToken, samples: Iterable[int]) -> "SessionKey":
        return cls(document, frozenset(int(s) for s in samples))

    def __str__(self) -> str:
        return f"{self.document} samples={sorted(self.samples)}"


def describe_peak_change(before, after) -> str:
    dpeaks = len(after) - len(before)
    if dpeaks == 0:
        desc = "edit peak"
    elif dpeaks < 0:
        desc = "remove peak"
    else:
        desc = "add peak"
    if abs(dpeaks) > 1:
        desc += "s"
    return desc


class _ChangeGroupState:
    def __init__(self):
        self.counter = 0
        self.before: Any = None
        self.snapshot: Optional[Callable[[], Any]] = None
        self.restore: Optional[Callable[[Any], None]] = None
        self.describe: Optional[Callable[[Any, Any], str]] = None


class ScopedChangeGroup:
    """Collapse every change made while the scope is open into one step.

    Scopes of the same kind nest: only the outermost one takes the "before"
    snapshot and, on exit, compares it with the current state. If they
    differ a single step is recorded whose undo restores "before" and whose
    redo restores "after".
    """

    def __init__(self, manager: "UndoRedoManager", kind: str,
                 snapshot: Callable[[], Any], restore: Callable[[Any], None],
                 describe: Callable[[Any, Any], str]):
        self._manager = manager
        self._kind = kind
        self._snapshot = snapshot
        self._restore = restore
        self._describe = describe
        self._entered = False

    def __enter__(self):
        state = self._manager._group_state(self._kind)
        if state.counter == 0:
            state.snapshot = self._snapshot
            state.restore = self._restore
            state.describe = self._describe
            state.before = self._snapshot()
        state.counter += 1
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._entered:
            return False
        self._entered = False
        state = self._manager._group_state(self._kind)
        if state.counter <= 0:
            state.counter = 0
            return False
        state.counter -= 1
        if state.counter != 0:
            return False

        before = state.before
        snapshot, restore, describe = state.snapshot, state.restore, state.describe
        state.before = state.snapshot = state.restore = state.describe = None

        after = snapshot()
        if before == after:
            return False

        self._manager.add_undo_redo_step(
            lambda: restore(before),
            lambda: restore(after),
            describe(before, after),
        )
        return False


class UndoRedoManager(QObject):
    """
    Records reversible user edits against the current foreground and replays
    them on request. Handed to whichever components make edits; it is never
    looked up globally.
    """

    log_message = Signal(str)
    warning_message = Signal(str)
    undo_available_changed = Signal(bool)
    redo_available_changed = Signal(bool)

    def __init__(self, registry: Optional[DocumentRegistry] = None,
                 max_parked_logs: Optional[int] = None, parent=None):
        super().__init__(parent)
        if max_parked_logs is None:
            from dataio import get_config
            max_parked_logs = get_config().max_parked_logs
        self._registry = registry
        self._max_parked_logs = max(0, int(max_parked_logs))

        self._log: Optional[StepLog] = None
        self._current_key: Optional[SessionKey] = None
        self._parked: "OrderedDict[SessionKey, StepLog]" = OrderedDict()

        self._block_count = 0
        self._groups: Dict[str, _ChangeGroupState] = {}
        self.peak_model = None

        self._last_can_undo = False
        self._last_can_redo = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def current_key(self) -> Optional[SessionKey]:
        return self._current_key

    @property
    def step_offset(self) -> int:
        return self._log.step_offset if self._log is not None else 0

    @property
    def history_state(self) -> Optional[HistoryState]:
        return self._log.state if self._log is not None else None

    def has_active_log(self) -> bool:
        return self._log is not None

    def can_undo(self) -> bool:
        return self._log is not None and self._log.can_undo()

    def can_redo(self) -> bool:
        return self._log is not None and self._log.can_redo()

    def can_add_undo_redo_now(self) -> bool:
        """False while recording is suppressed (loading state, replaying)."""
        return self._block_count == 0

    def parked_keys(self) -> List[SessionKey]:
        return list(self._parked.keys())

    def history_descriptions(self) -> List[str]:
        return self._log.descriptions() if self._log is not None else []

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def add_undo_redo_step(self, undo: Optional[Action], redo: Optional[Action],
                           description: str) -> None:
        step = UndoRedoStep(undo, redo, description)

        if self._block_count > 0:
            logger.debug("Undo/redo inserts blocked; dropping step '%s'.", description)
            return
        if self._log is None:
            logger.debug("No spectrum file set for undo/redo; dropping step '%s'.", description)
            return

        self._log.record(step)
        self._emit_availability()

    @contextlib.contextmanager
    def block_undo_redo_inserts(self):
        """While open, recording requests anywhere are dropped. Reentrant."""
        self._block_count += 1
        try:
            yield self
        finally:
            self._block_count -= 1

    # ------------------------------------------------------------------
    # Grouped changes
    # ------------------------------------------------------------------
    def _group_state(self, kind: str) -> _ChangeGroupState:
        state = self._groups.get(kind)
        if state is None:
            state = self._groups[kind] = _ChangeGroupState()
        return state

    def change_group(self, kind: str, snapshot: Callable[[], Any],
                     restore: Callable[[Any], None],
                     describe: Callable[[Any, Any], str]) -> ScopedChangeGroup:
        return ScopedChangeGroup(self, kind, snapshot, restore, describe)

    def set_peak_model(self, peak_model) -> None:
        self.peak_model = peak_model

    def peak_model_change(self):
        """Group every peak edit made inside the ``with`` block into one step."""
        model = self.peak_model
        if model is None:
            return contextlib.nullcontext()
        return self.change_group("peaks", model.peaks, model.set_peaks, describe_peak_change)

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------
    def execute_undo(self) -> ReplayResult:
        if self._log is None or not self._log.can_undo():
            logger.debug("No more undo steps to execute.")
            return _NOTHING
        with self.block_undo_redo_inserts():
            result = self._log.undo()
        self._report(result, "undo")
        self._emit_availability()
        return result

    def execute_redo(self) -> ReplayResult:
        if self._log is None or not self._log.can_redo():
            logger.debug("No redo steps to execute.")
            return _NOTHING
        with self.block_undo_redo_inserts():
            result = self._log.redo()
        self._report(result, "redo")
        self._emit_availability()
        return result

    def _report(self, result: ReplayResult, which: str) -> None:
        if result.status is ReplayStatus.NOTHING_TO_DO:
            logger.debug("No non-empty %s steps to execute.", which)
        elif result.status is ReplayStatus.FAILED:
            message = f"Error executing {which} step: {result.error}"
            logger.error(message)
            log_warning(message, vm=self)

    # ------------------------------------------------------------------
    # Foreground changes
    # ------------------------------------------------------------------
    def handle_spectrum_change(self, spectrum_type: SpectrumType, document,
                               sample_numbers: Iterable[int]) -> None:
        """Swap in the history for the newly displayed foreground.

        *document* may be a DocumentToken, a document registered with (or
        registrable by) the manager's registry, or None for "nothing loaded".
        """
        if spectrum_type is not SpectrumType.FOREGROUND:
            return

        token = self._resolve_token(document)
        samples = frozenset(int(s) for s in (sample_numbers or ()))
        new_key = SessionKey(token, samples) if token is not None else None

        if new_key == self._current_key:
            return

        if self._log is not None and len(self._log) > 0 and self._current_key is not None:
            self._park(self._current_key, self._log)

        self._log = None
        self._current_key = new_key

        if new_key is not None and samples:
            revived = self._parked.pop(new_key, None)
            if revived is not None:
                logger.debug("Revived undo history for %s", new_key)
            self._log = revived if revived is not None else StepLog()

        self._emit_availability()

    def _resolve_token(self, document) -> Optional[DocumentToken]:
        if document is None:
            return None
        if isinstance(document, DocumentToken):
            return document
        if self._registry is None:
            raise TypeError("documents must be passed as DocumentToken when no registry is set")
        return self._registry.register(document)

    def _park(self, key: SessionKey, log: StepLog) -> None:
        self._parked[key] = log
        self._parked.move_to_end(key)

        if self._registry is not None:
            dead = [k for k in self._parked if not self._registry.is_alive(k.document)]
            for k in dead:
                del self._parked[k]
                logger.debug("Dropped undo history for closed document %s", k)

        while len(self._parked) > self._max_parked_logs:
            evicted, _ = self._parked.popitem(last=False)
            logger.debug("Evicted undo history for %s", evicted)

    def _emit_availability(self) -> None:
        can_undo = self.can_undo()
        can_redo = self.can_redo()
        if can_undo != self._last_can_undo:
            self._last_can_undo = can_undo
            self.undo_available_changed.emit(can_undo)
        if can_redo != self._last_can_redo:
            self._last_can_redo = can_redo
            self.redo_available_changed.emit(can_redo)
