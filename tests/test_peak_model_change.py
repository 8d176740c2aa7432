#!/usr/bin/env python
"""
Tests for grouped peak edits: one undo step per outermost scope, nothing
recorded when the peaks end up unchanged, and correct restore on undo/redo.
"""
import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from PySide6.QtCore import QCoreApplication

from dataio.document_registry import DocumentRegistry
from models import PeakDef, PeakModel
from viewmodel.undo_redo import SpectrumType, UndoRedoManager, describe_peak_change


_APP = None


def _ensure_app():
    global _APP
    _APP = QCoreApplication.instance() or QCoreApplication([])
    return _APP


class Doc:
    filename = "peaks.pcf"


def _setup():
    _ensure_app()
    manager = UndoRedoManager(DocumentRegistry(), max_parked_logs=4)
    doc = Doc()
    manager.handle_spectrum_change(SpectrumType.FOREGROUND, doc, [1])
    model = PeakModel(manager)
    # keep the document alive for the test's duration
    return manager, model, doc


P1 = PeakDef(661.7, 2.0, 1000.0)
P2 = PeakDef(1173.2, 2.5, 800.0)
P3 = PeakDef(1332.5, 2.6, 750.0)


def test_describe_peak_change():
    assert describe_peak_change((), (P1,)) == "add peak"
    assert describe_peak_change((), (P1, P2)) == "add peaks"
    assert describe_peak_change((P1,), ()) == "remove peak"
    assert describe_peak_change((P1, P2, P3), (P1,)) == "remove peaks"
    assert describe_peak_change((P1,), (P2,)) == "edit peak"
    print("✓ descriptions")


def test_each_mutation_is_one_step():
    manager, model, _doc = _setup()
    model.add_peak(P1)
    model.add_peaks([P2, P3])
    model.update_peak(0, P1.shifted(1.0))
    model.remove_peak(2)
    assert manager.history_descriptions() == ["add peak", "add peaks", "edit peak", "remove peak"]
    print("✓ one step per mutation")


def test_undo_redo_restores_peaks():
    manager, model, _doc = _setup()
    model.add_peaks([P1, P2])
    model.remove_peak(0)
    assert model.peaks() == (P2,)

    manager.execute_undo()
    assert model.peaks() == (P1, P2)
    manager.execute_undo()
    assert model.peaks() == ()
    manager.execute_redo()
    assert model.peaks() == (P1, P2)
    manager.execute_redo()
    assert model.peaks() == (P2,)
    # restoring peaks during replay did not add history
    assert manager.history_descriptions() == ["add peaks", "remove peak"]
    print("✓ undo/redo restores peaks")


def test_no_net_change_records_nothing():
    manager, model, _doc = _setup()
    with manager.peak_model_change():
        model.add_peak(P1)
        model.remove_peak(0)
    assert manager.history_descriptions() == []
    assert not manager.can_undo()
    print("✓ no net change, no step")


def test_nested_scopes_record_once():
    manager, model, _doc = _setup()
    with manager.peak_model_change():
        with manager.peak_model_change():
            model.add_peak(P1)
        assert manager.history_descriptions() == []
        model.add_peak(P2)
        model.add_peak(P3)
        assert manager.history_descriptions() == []
    assert manager.history_descriptions() == ["add peaks"]

    manager.execute_undo()
    assert model.peaks() == ()
    print("✓ nested scopes collapse")


def test_scope_released_on_exception():
    manager, model, _doc = _setup()
    with pytest.raises(RuntimeError):
        with manager.peak_model_change():
            model.add_peak(P1)
            raise RuntimeError("gesture aborted")
    # the change that did happen is still undoable
    assert manager.history_descriptions() == ["add peak"]

    # and the nesting state is clean: the next edit is its own step
    model.add_peak(P2)
    assert manager.history_descriptions() == ["add peak", "add peak"]
    print("✓ scope released after exception")


def test_blocked_scope_records_nothing():
    manager, model, _doc = _setup()
    with manager.block_undo_redo_inserts():
        model.set_peaks([P1, P2])
    assert model.peaks() == (P1, P2)
    assert manager.history_descriptions() == []
    print("✓ blocked edits not recorded")


def test_no_peak_model_scope_is_inert():
    _ensure_app()
    manager = UndoRedoManager(DocumentRegistry(), max_parked_logs=1)
    with manager.peak_model_change():
        pass
    assert manager.history_descriptions() == []
    print("✓ no peak model")


def test_model_without_manager():
    _ensure_app()
    model = PeakModel()
    changes = []
    model.peaks_changed.connect(lambda: changes.append(len(model)))
    model.add_peaks([P3, P1])
    assert model.peaks() == (P1, P3)
    assert model.nearest_peak(1300.0) == 1
    model.clear_peaks()
    assert changes == [2, 0]
    assert model.nearest_peak(1.0) is None
    with pytest.raises(IndexError):
        model.remove_peak(0)
    print("✓ plain peak model")


def test_peak_def_validation():
    with pytest.raises(ValueError):
        PeakDef(100.0, 0.0, 10.0)
    with pytest.raises(ValueError):
        PeakDef(float("nan"), 1.0, 10.0)
    assert P1.fwhm == pytest.approx(2.0 * 2.3548, rel=1e-3)
    print("✓ peak validation")


def main():
    tests = [obj for name, obj in sorted(globals().items()) if name.startswith("test_") and callable(obj)]
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
