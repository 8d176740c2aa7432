# models/peak_model.py
from __future__ import annotations

import contextlib
from typing import Iterable, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Signal

from .peak import PeakDef


class PeakModel(QObject):
    """
    Ordered collection of the peaks fit to the displayed foreground.

    Every mutator runs inside the undo manager's grouped peak-change scope
    (when a manager is attached), so callers that make several edits for a
    single user gesture can wrap them in one outer
    ``undo_manager.peak_model_change()`` and get a single undo step.
    """

    peaks_changed = Signal()

    def __init__(self, undo_manager=None, parent=None):
        super().__init__(parent)
        self._peaks: List[PeakDef] = []
        self._undo_manager = None
        if undo_manager is not None:
            self.attach_undo_manager(undo_manager)

    def attach_undo_manager(self, undo_manager) -> None:
        self._undo_manager = undo_manager
        if undo_manager is not None and getattr(undo_manager, "peak_model", None) is not self:
            undo_manager.set_peak_model(self)

    def _change_scope(self):
        if self._undo_manager is None:
            return contextlib.nullcontext()
        return self._undo_manager.peak_model_change()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def peaks(self) -> Tuple[PeakDef, ...]:
        """Snapshot of the current peaks; later edits do not affect it."""
        return tuple(self._peaks)

    def __len__(self) -> int:
        return len(self._peaks)

    def __getitem__(self, index: int) -> PeakDef:
        return self._peaks[index]

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def set_peaks(self, peaks: Iterable[PeakDef]) -> None:
        new_peaks = list(peaks)
        with self._change_scope():
            self._peaks = new_peaks
        self.peaks_changed.emit()

    def add_peak(self, peak: PeakDef) -> None:
        self.add_peaks([peak])

    def add_peaks(self, peaks: Iterable[PeakDef]) -> None:
        new_peaks = list(peaks)
        if not new_peaks:
            return
        with self._change_scope():
            self._peaks.extend(new_peaks)
            self._peaks.sort(key=lambda p: p.mean)
        self.peaks_changed.emit()

    def remove_peak(self, index: int) -> PeakDef:
        if index < 0 or index >= len(self._peaks):
            raise IndexError(f"no peak at index {index}")
        with self._change_scope():
            removed = self._peaks.pop(index)
        self.peaks_changed.emit()
        return removed

    def remove_peaks(self, indices: Sequence[int]) -> List[PeakDef]:
        wanted = sorted(set(int(i) for i in indices), reverse=True)
        for index in wanted:
            if index < 0 or index >= len(self._peaks):
                raise IndexError(f"no peak at index {index}")
        if not wanted:
            return []
        removed = []
        with self._change_scope():
            for index in wanted:
                removed.append(self._peaks.pop(index))
        self.peaks_changed.emit()
        return list(reversed(removed))

    def update_peak(self, index: int, peak: PeakDef) -> None:
        if index < 0 or index >= len(self._peaks):
            raise IndexError(f"no peak at index {index}")
        with self._change_scope():
            self._peaks[index] = peak
            self._peaks.sort(key=lambda p: p.mean)
        self.peaks_changed.emit()

    def clear_peaks(self) -> None:
        if not self._peaks:
            return
        self.set_peaks([])

    def nearest_peak(self, energy: float) -> Optional[int]:
        """Index of the peak whose mean is closest to *energy*, or None."""
        if not self._peaks:
            return None
        return min(range(len(self._peaks)), key=lambda i: abs(self._peaks[i].mean - energy))
