"""
Peaks dock widget listing the peaks of the displayed foreground.
"""

from PySide6.QtWidgets import (
    QDockWidget, QWidget, QVBoxLayout, QPushButton, QLabel,
    QHBoxLayout, QListWidget, QAbstractItemView, QComboBox, QDoubleSpinBox
)
from PySide6.QtCore import Signal


class PeaksDock(QDockWidget):
    """Dock widget for choosing the foreground and editing its peaks."""

    # Signals
    document_selected = Signal(int)        # row in the document combo
    samples_selected = Signal(object)      # tuple of sample numbers, or None for all
    remove_peak_clicked = Signal(int)      # row in the peak list
    shift_peak_clicked = Signal(int, float)
    clear_peaks_clicked = Signal()
    default_fwhm_changed = Signal(float)

    def __init__(self, parent=None):
        """
        Initialize the peaks dock.

        Args:
            parent: Parent widget (typically the main window)
        """
        super().__init__("Peaks", parent)
        self._updating = False
        self._init_ui()

    def _init_ui(self):
        """Initialize the UI components."""
        widget = QWidget()
        layout = QVBoxLayout(widget)

        layout.addWidget(QLabel("Foreground"))
        self.document_combo = QComboBox()
        layout.addWidget(self.document_combo)
        self.sample_combo = QComboBox()
        layout.addWidget(self.sample_combo)

        fwhm_row = QHBoxLayout()
        fwhm_row.addWidget(QLabel("Default FWHM (keV)"))
        self.fwhm_spin = QDoubleSpinBox()
        self.fwhm_spin.setRange(0.1, 200.0)
        self.fwhm_spin.setDecimals(2)
        self.fwhm_spin.setSingleStep(0.5)
        # one undo step per committed value, not per keystroke
        self.fwhm_spin.setKeyboardTracking(False)
        fwhm_row.addWidget(self.fwhm_spin)
        layout.addLayout(fwhm_row)

        layout.addWidget(QLabel("Peaks (click the plot to add)"))
        self.peak_list = QListWidget()
        self.peak_list.setSelectionMode(QAbstractItemView.SingleSelection)
        layout.addWidget(self.peak_list)

        btn_row = QHBoxLayout()
        self.left_btn = QPushButton("◀")
        self.right_btn = QPushButton("▶")
        self.remove_btn = QPushButton("Remove")
        self.clear_btn = QPushButton("Clear")
        for btn in (self.left_btn, self.right_btn, self.remove_btn, self.clear_btn):
            btn_row.addWidget(btn)
        layout.addLayout(btn_row)

        self.setWidget(widget)

        self.document_combo.currentIndexChanged.connect(self._on_document_index)
        self.sample_combo.currentIndexChanged.connect(self._on_sample_index)
        self.fwhm_spin.valueChanged.connect(self._on_fwhm_value)
        self.remove_btn.clicked.connect(self._emit_remove)
        self.clear_btn.clicked.connect(self.clear_peaks_clicked)
        self.left_btn.clicked.connect(lambda: self._emit_shift(-1.0))
        self.right_btn.clicked.connect(lambda: self._emit_shift(1.0))

    # --------------------------
    # Outgoing
    # --------------------------
    def _on_document_index(self, index):
        if not self._updating and index >= 0:
            self.document_selected.emit(index)

    def _on_sample_index(self, index):
        if self._updating or index < 0:
            return
        self.samples_selected.emit(self.sample_combo.itemData(index))

    def _on_fwhm_value(self, value):
        if not self._updating:
            self.default_fwhm_changed.emit(float(value))

    def _emit_remove(self):
        row = self.peak_list.currentRow()
        if row >= 0:
            self.remove_peak_clicked.emit(row)

    def _emit_shift(self, delta):
        row = self.peak_list.currentRow()
        if row >= 0:
            self.shift_peak_clicked.emit(row, float(delta))

    # --------------------------
    # Incoming
    # --------------------------
    def set_documents(self, documents, active_row=None):
        """Fill the document combo from (token, label, samples) tuples."""
        self._updating = True
        try:
            self.document_combo.clear()
            for _token, label, _samples in documents:
                self.document_combo.addItem(label)
            if active_row is not None:
                self.document_combo.setCurrentIndex(active_row)
        finally:
            self._updating = False

    def set_samples(self, sample_numbers, selected=None):
        self._updating = True
        try:
            self.sample_combo.clear()
            self.sample_combo.addItem("All samples", None)
            for s in sample_numbers:
                self.sample_combo.addItem(f"Sample {s}", (s,))
            if selected is not None and len(selected) == 1:
                idx = self.sample_combo.findData(tuple(selected))
                if idx >= 0:
                    self.sample_combo.setCurrentIndex(idx)
        finally:
            self._updating = False

    def set_peaks(self, peaks):
        row = self.peak_list.currentRow()
        self.peak_list.clear()
        for peak in peaks:
            self.peak_list.addItem(
                f"{peak.mean:8.2f} keV   FWHM {peak.fwhm:5.2f}   area {peak.amplitude:10.1f}")
        if 0 <= row < self.peak_list.count():
            self.peak_list.setCurrentRow(row)

    def set_default_fwhm(self, value):
        self._updating = True
        try:
            self.fwhm_spin.setValue(float(value))
        finally:
            self._updating = False
