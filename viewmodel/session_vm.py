# viewmodel/session_vm.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from PySide6.QtCore import QObject, Signal

from dataio.document_registry import DocumentRegistry, DocumentToken
from models import FWHM_PER_SIGMA, PeakDef, PeakModel, SpectrumFile
from .logging_helpers import log_exception, log_message, safe_emit
from .state_tracker import StateSnapshotTracker
from .undo_redo import ReplayResult, SessionKey, SpectrumType, UndoRedoManager

DEFAULT_FWHM = 6.0  # keV


class SessionViewModel(QObject):
    """
    Central logic layer: open spectrum files, the displayed foreground,
    its peaks, and undo/redo of peak and setting edits.
    """

    plot_updated = Signal(object, object, object)   # energies, counts, peak sum (or None)
    documents_updated = Signal(object)              # list of (token, label, sample numbers)
    active_changed = Signal(object)                 # SessionKey or None
    default_fwhm_changed = Signal(float)
    log_message = Signal(str)
    warning_message = Signal(str)

    def __init__(self, registry: Optional[DocumentRegistry] = None,
                 undo_manager: Optional[UndoRedoManager] = None,
                 max_parked_logs: Optional[int] = None):
        super().__init__()
        self.registry = registry or DocumentRegistry()
        self.undo_manager = undo_manager or UndoRedoManager(self.registry, max_parked_logs)
        self.peak_model = PeakModel(self.undo_manager)

        self._documents: Dict[DocumentToken, SpectrumFile] = {}
        self._session_peaks: Dict[SessionKey, Tuple[PeakDef, ...]] = {}
        self._active: Optional[SessionKey] = None

        self._default_fwhm = DEFAULT_FWHM
        self._fwhm_tracker = StateSnapshotTracker(
            self.undo_manager, self._apply_default_fwhm, "change default peak width")
        self._fwhm_tracker.reset(self._default_fwhm)

        self.undo_manager.log_message.connect(self.log_message)
        self.undo_manager.warning_message.connect(self.warning_message)
        self.peak_model.peaks_changed.connect(self._on_peaks_changed)

    def _log_message(self, message: str) -> None:
        log_message(message, vm=self)

    # --------------------------
    # Documents
    # --------------------------
    @property
    def active_key(self) -> Optional[SessionKey]:
        return self._active

    def active_document(self) -> Optional[SpectrumFile]:
        if self._active is None:
            return None
        return self._documents.get(self._active.document)

    def documents(self) -> List[Tuple[DocumentToken, str, Tuple[int, ...]]]:
        return [(tok, doc.filename, doc.sample_numbers) for tok, doc in self._documents.items()]

    def open_document(self, spectrum_file: SpectrumFile) -> DocumentToken:
        token = self.registry.register(spectrum_file, label=spectrum_file.filename)
        if token not in self._documents:
            self._documents[token] = spectrum_file
            self._log_message(f"Opened {spectrum_file.filename} ({len(spectrum_file.sample_numbers)} sample(s)).")
            safe_emit(self.documents_updated, self.documents(), vm=self, signal_name="documents_updated")
        if self._active is None:
            self.set_active(token)
        return token

    def close_document(self, token: DocumentToken) -> None:
        doc = self._documents.get(token)
        if doc is None:
            return
        if self._active is not None and self._active.document == token:
            self.set_active(None)
        del self._documents[token]
        for key in [k for k in self._session_peaks if k.document == token]:
            del self._session_peaks[key]
        self.registry.forget(token)
        self._log_message(f"Closed {doc.filename}.")
        safe_emit(self.documents_updated, self.documents(), vm=self, signal_name="documents_updated")

    def set_active(self, token: Optional[DocumentToken], samples: Optional[Iterable[int]] = None) -> None:
        """Display *samples* of *token* (all samples when None) as the foreground."""
        if token is None:
            key = None
        else:
            doc = self._documents.get(token)
            if doc is None:
                raise KeyError(f"document {token} is not open")
            wanted = doc.sample_numbers if samples is None else tuple(sorted(set(int(s) for s in samples)))
            missing = [s for s in wanted if s not in doc.sample_numbers]
            if missing:
                raise KeyError(f"{doc.filename} has no sample(s) {missing}")
            key = SessionKey.make(token, wanted)

        if key == self._active:
            return

        self.undo_manager.handle_spectrum_change(
            SpectrumType.FOREGROUND, key.document if key else None, key.samples if key else ())
        self._active = key

        # Loading the new foreground's peaks is not a user edit.
        with self.undo_manager.block_undo_redo_inserts():
            self.peak_model.set_peaks(self._session_peaks.get(key, ()) if key else ())

        safe_emit(self.active_changed, key, vm=self, signal_name="active_changed")
        self.update_plot()

    # --------------------------
    # Peaks
    # --------------------------
    def _on_peaks_changed(self) -> None:
        if self._active is not None:
            self._session_peaks[self._active] = self.peak_model.peaks()
        self.update_plot()

    def _estimate_peak(self, energy: float, fwhm: float) -> PeakDef:
        doc = self.active_document()
        energies = doc.channel_energies()
        counts = doc.summed_counts(self._active.samples)
        sigma = fwhm / FWHM_PER_SIGMA

        window = np.abs(energies - energy) <= 1.5 * fwhm
        if not np.any(window):
            raise ValueError(f"{energy:.1f} keV is outside the spectrum")
        region = counts[window]
        # straight-line continuum under the peak from the window edges
        continuum = 0.5 * (region[0] + region[-1])
        channel = int(np.argmin(np.abs(energies - energy)))
        height = max(float(counts[channel]) - continuum, 0.0)
        amplitude = height * sigma * np.sqrt(2.0 * np.pi) / doc.energy_gain
        return PeakDef(float(energy), float(sigma), float(amplitude))

    def add_peak_at(self, energy: float, fwhm: Optional[float] = None) -> Optional[PeakDef]:
        if self._active is None:
            self._log_message("Load a spectrum before adding peaks.")
            return None
        try:
            peak = self._estimate_peak(float(energy), float(fwhm or self._default_fwhm))
        except ValueError as exc:
            self._log_message(f"Could not add peak: {exc}")
            return None
        self.peak_model.add_peak(peak)
        return peak

    def add_peaks_at(self, energies: Iterable[float]) -> List[PeakDef]:
        """Add several peaks as one undoable edit."""
        added = []
        with self.undo_manager.peak_model_change():
            for energy in energies:
                peak = self.add_peak_at(energy)
                if peak is not None:
                    added.append(peak)
        return added

    def remove_peak(self, index: int) -> None:
        try:
            self.peak_model.remove_peak(index)
        except IndexError as exc:
            log_exception("Failed to remove peak", exc, vm=self)

    def shift_peak(self, index: int, delta: float) -> None:
        try:
            peak = self.peak_model[index]
        except IndexError as exc:
            log_exception("Failed to move peak", exc, vm=self)
            return
        self.peak_model.update_peak(index, peak.shifted(delta))

    def clear_peaks(self) -> None:
        self.peak_model.clear_peaks()

    # --------------------------
    # Settings
    # --------------------------
    @property
    def default_fwhm(self) -> float:
        return self._default_fwhm

    def set_default_fwhm(self, fwhm: float) -> None:
        fwhm = float(fwhm)
        if not np.isfinite(fwhm) or fwhm <= 0:
            self._log_message(f"Ignoring invalid peak width {fwhm}.")
            return
        if fwhm == self._default_fwhm:
            return
        self._default_fwhm = fwhm
        self._fwhm_tracker.commit(fwhm)
        safe_emit(self.default_fwhm_changed, fwhm, vm=self, signal_name="default_fwhm_changed")

    def _apply_default_fwhm(self, fwhm: float) -> None:
        self._default_fwhm = float(fwhm)
        self._fwhm_tracker.reset(self._default_fwhm)
        safe_emit(self.default_fwhm_changed, self._default_fwhm, vm=self, signal_name="default_fwhm_changed")

    # --------------------------
    # Undo / redo
    # --------------------------
    def undo(self) -> ReplayResult:
        result = self.undo_manager.execute_undo()
        if result.ok:
            self._log_message(f"Undo: {result.step.description}")
        return result

    def redo(self) -> ReplayResult:
        result = self.undo_manager.execute_redo()
        if result.ok:
            self._log_message(f"Redo: {result.step.description}")
        return result

    # --------------------------
    # Plot
    # --------------------------
    def spectrum_arrays(self):
        doc = self.active_document()
        if doc is None:
            return None, None, None
        energies = doc.channel_energies()
        counts = doc.summed_counts(self._active.samples)
        peaks = self.peak_model.peaks()
        if not peaks:
            return energies, counts, None
        peak_sum = np.zeros_like(energies)
        for peak in peaks:
            peak_sum += peak.evaluate(energies) * doc.energy_gain
        return energies, counts, peak_sum

    def update_plot(self) -> None:
        x, y, peak_sum = self.spectrum_arrays()
        safe_emit(self.plot_updated, x, y, peak_sum, vm=self, signal_name="plot_updated")
