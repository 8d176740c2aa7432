#!/usr/bin/env python
"""
Tests for the undo/redo step log: ordering, the cursor, and what happens
when a new edit is made after undoing.
Runs without a GUI.
"""
import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from viewmodel.undo_redo import (
    HistoryState, ReplayStatus, StepLog, UndoRedoStep,
)


def _step(name, calls, undo=True, redo=True):
    return UndoRedoStep(
        (lambda: calls.append(f"undo {name}")) if undo else None,
        (lambda: calls.append(f"redo {name}")) if redo else None,
        name,
    )


def test_step_requires_an_action():
    """A step with neither action is rejected at construction."""
    with pytest.raises(ValueError):
        UndoRedoStep(None, None, "nothing")
    # one action is enough
    UndoRedoStep(lambda: None, None, "undo only")
    UndoRedoStep(None, lambda: None, "redo only")
    print("✓ empty steps rejected")


def test_undo_runs_in_reverse_order():
    calls = []
    log = StepLog()
    for name in "ABCD":
        log.record(_step(name, calls))
        assert log.can_undo()
        assert not log.can_redo()

    while log.can_undo():
        assert log.undo().ok

    assert calls == ["undo D", "undo C", "undo B", "undo A"]
    assert log.step_offset == len(log) == 4
    assert log.state is HistoryState.FULLY_UNDONE
    result = log.undo()
    assert result.status is ReplayStatus.NOTHING_TO_DO
    assert calls == ["undo D", "undo C", "undo B", "undo A"]
    print("✓ undo order")


def test_undo_then_redo_returns_cursor():
    calls = []
    log = StepLog()
    for name in "ABC":
        log.record(_step(name, calls))

    log.undo()  # start mid-history
    start = log.step_offset
    assert start == 1
    assert log.state is HistoryState.MID_HISTORY

    log.undo()
    log.undo()
    calls.clear()
    log.redo()
    log.redo()

    assert calls == ["redo A", "redo B"]
    assert log.step_offset == start
    log.redo()
    assert calls == ["redo A", "redo B", "redo C"]
    assert log.state is HistoryState.AT_TIP
    assert log.redo().status is ReplayStatus.NOTHING_TO_DO
    print("✓ redo restores cursor")


def test_new_edit_after_undo_keeps_undone_history():
    """A, B, C; undo C; record D. Undoing walks D, then back through C."""
    calls = []
    log = StepLog()
    for name in "ABC":
        log.record(_step(name, calls))
    log.undo()
    assert calls == ["undo C"]

    log.record(_step("D", calls))
    assert log.step_offset == 0
    assert log.descriptions() == ["A", "B", "C", "C", "D"]

    calls.clear()
    for _ in range(4):
        assert log.undo().ok
    # D is undone, then the undone C is re-applied and undone again, then B
    assert calls == ["undo D", "redo C", "undo C", "undo B"]
    print("✓ branch keeps history")


def test_branch_rewrite_against_real_state():
    """Same law, checked through the state the steps mutate."""
    state = []

    def adder(value):
        return UndoRedoStep(lambda: state.remove(value), lambda: state.append(value), f"add {value}")

    log = StepLog()
    for value in ("a", "b", "c"):
        state.append(value)
        log.record(adder(value))
    log.undo()
    assert state == ["a", "b"]

    state.append("d")
    log.record(adder("d"))

    seen = []
    while log.can_undo():
        log.undo()
        seen.append(list(state))
    assert seen == [["a", "b"], ["a", "b", "c"], ["a", "b"], ["a"], []]
    print("✓ branch rewrite on state")


def test_steps_without_an_action_are_skipped():
    calls = []
    log = StepLog()
    log.record(_step("A", calls))
    log.record(_step("B", calls, undo=False))
    log.record(_step("C", calls, redo=False))

    assert log.undo().step.description == "C"
    result = log.undo()
    # B has no undo; the walk moves past it to A
    assert result.step.description == "A"
    assert log.step_offset == 3
    assert calls == ["undo C", "undo A"]

    calls.clear()
    assert log.redo().step.description == "A"
    assert log.redo().step.description == "B"
    # C has no redo: walking past it finds nothing
    assert log.redo().status is ReplayStatus.NOTHING_TO_DO
    assert log.step_offset == 0
    assert calls == ["redo A", "redo B"]
    print("✓ action-less steps skipped")


def test_undo_with_no_usable_steps_consumes_log():
    log = StepLog()
    log.record(UndoRedoStep(None, lambda: None, "redo only"))
    assert log.can_undo()
    assert log.undo().status is ReplayStatus.NOTHING_TO_DO
    assert log.step_offset == 1
    assert not log.can_undo()
    print("✓ exhausted undo")


def test_failing_action_is_consumed():
    calls = []

    def boom():
        raise RuntimeError("peak table gone")

    log = StepLog()
    log.record(UndoRedoStep(boom, lambda: calls.append("redo A"), "A"))
    log.record(_step("B", calls))

    assert log.undo().ok
    result = log.undo()
    assert result.status is ReplayStatus.FAILED
    assert isinstance(result.error, RuntimeError)
    assert not result.ok
    # the failed step counts as undone; no retry, no loop
    assert log.step_offset == 2
    assert not log.can_undo()
    assert log.can_redo()

    assert log.redo().ok
    assert calls == ["undo B", "redo A"]
    print("✓ failing action consumed")


def test_empty_log():
    log = StepLog()
    assert not log.can_undo()
    assert not log.can_redo()
    assert log.state is HistoryState.AT_TIP
    assert log.undo().status is ReplayStatus.NOTHING_TO_DO
    assert log.redo().status is ReplayStatus.NOTHING_TO_DO
    print("✓ empty log")


def main():
    tests = [
        test_step_requires_an_action,
        test_undo_runs_in_reverse_order,
        test_undo_then_redo_returns_cursor,
        test_new_edit_after_undo_keeps_undone_history,
        test_branch_rewrite_against_real_state,
        test_steps_without_an_action_are_skipped,
        test_undo_with_no_usable_steps_consumes_log,
        test_failing_action_is_consumed,
        test_empty_log,
    ]
    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            failed += 1
            print(f"✗ {test.__name__}: {type(e).__name__}: {e}")
    print(f"\n{len(tests) - failed}/{len(tests)} tests passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
