# view/main_window.py
# type: ignore
from PySide6.QtWidgets import QMainWindow, QDockWidget
from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QKeySequence
import pyqtgraph as pg
import traceback

from view.docks.peaks_dock import PeaksDock
from view.docks.log_dock import LogDock

# -- color palette (change these) --
PLOT_BG = "white"        # plot background
DATA_COLOR = "black"     # spectrum step curve
PEAK_COLOR = "purple"    # summed peak curve
MARKER_COLOR = "red"     # peak mean markers
AXIS_COLOR = "black"     # axis and tick labels
GRID_ALPHA = 0.3
WARNING_TIMEOUT_MS = 8000


class MainWindow(QMainWindow):
    def __init__(self, viewmodel=None):
        super().__init__()
        self.setWindowTitle("Peak Editor")
        self.viewmodel = viewmodel
        self._peak_markers = []

        # --- Central Plot ---
        self._init_plot()

        # --- Menus / Docks ---
        self._init_actions()
        self._init_docks()

        for dock in [self.peaks_dock, self.log_dock]:
            dock.setFeatures(QDockWidget.DockWidgetMovable | QDockWidget.DockWidgetFloatable)

        self._wire_viewmodel()
        self.resize(1200, 750)

    # --------------------------
    # Plot setup
    # --------------------------
    def _init_plot(self):
        self.plot_widget = pg.PlotWidget(title="Foreground")
        self.setCentralWidget(self.plot_widget)

        self.plot_widget.setBackground(PLOT_BG)
        self.plot_widget.showGrid(x=True, y=True, alpha=GRID_ALPHA)
        self.plot_widget.setLabel("bottom", "Energy", units="keV")
        self.plot_widget.setLabel("left", "Counts")

        self.data_curve = pg.PlotDataItem(stepMode="center", pen=pg.mkPen(DATA_COLOR))
        self.plot_widget.addItem(self.data_curve)
        self.peak_curve = pg.PlotDataItem(pen=pg.mkPen(PEAK_COLOR, width=2))
        self.plot_widget.addItem(self.peak_curve)

        for ax in ("left", "bottom"):
            axis = self.plot_widget.getAxis(ax)
            axis.setPen(pg.mkPen(AXIS_COLOR))
            axis.setTextPen(pg.mkPen(AXIS_COLOR))

        self.plot_widget.scene().sigMouseClicked.connect(self._on_scene_clicked)

    def _init_actions(self):
        edit_menu = self.menuBar().addMenu("&Edit")

        self.undo_action = QAction("&Undo", self)
        self.undo_action.setShortcut(QKeySequence.Undo)
        self.undo_action.setEnabled(False)
        edit_menu.addAction(self.undo_action)

        self.redo_action = QAction("&Redo", self)
        self.redo_action.setShortcut(QKeySequence.Redo)
        self.redo_action.setEnabled(False)
        edit_menu.addAction(self.redo_action)

    # --------------------------
    # Docks
    # --------------------------
    def _init_docks(self):
        """Initialize all dock widgets using the modular dock classes."""
        # Create the log dock first so logging is available immediately
        self.log_dock = LogDock(self)
        self.addDockWidget(Qt.BottomDockWidgetArea, self.log_dock)

        self.peaks_dock = PeaksDock(self)
        self.addDockWidget(Qt.RightDockWidgetArea, self.peaks_dock)
        self.peaks_dock.setMinimumWidth(300)

    def _wire_viewmodel(self):
        vm = self.viewmodel
        if vm is None:
            return

        undo = vm.undo_manager
        self.undo_action.triggered.connect(lambda _checked=False: vm.undo())
        self.redo_action.triggered.connect(lambda _checked=False: vm.redo())
        undo.undo_available_changed.connect(self.undo_action.setEnabled)
        undo.redo_available_changed.connect(self.redo_action.setEnabled)

        vm.log_message.connect(self.append_log)
        vm.warning_message.connect(self.show_warning)
        vm.plot_updated.connect(self.update_plot_data)
        vm.documents_updated.connect(self._on_documents_updated)
        vm.active_changed.connect(self._on_active_changed)
        vm.default_fwhm_changed.connect(self.peaks_dock.set_default_fwhm)
        vm.peak_model.peaks_changed.connect(self._refresh_peaks)

        self.peaks_dock.document_selected.connect(self._on_document_selected)
        self.peaks_dock.samples_selected.connect(self._on_samples_selected)
        self.peaks_dock.remove_peak_clicked.connect(vm.remove_peak)
        self.peaks_dock.shift_peak_clicked.connect(vm.shift_peak)
        self.peaks_dock.clear_peaks_clicked.connect(vm.clear_peaks)
        self.peaks_dock.default_fwhm_changed.connect(vm.set_default_fwhm)

        self.peaks_dock.set_default_fwhm(vm.default_fwhm)
        self._on_documents_updated(vm.documents())
        self._on_active_changed(vm.active_key)

    # --------------------------
    # Dock callbacks
    # --------------------------
    def _on_documents_updated(self, documents):
        key = self.viewmodel.active_key
        tokens = [tok for tok, _label, _samples in documents]
        row = tokens.index(key.document) if key is not None and key.document in tokens else None
        self.peaks_dock.set_documents(documents, row)

    def _on_document_selected(self, row):
        documents = self.viewmodel.documents()
        if 0 <= row < len(documents):
            try:
                self.viewmodel.set_active(documents[row][0])
            except KeyError as e:
                self._log_exception("Failed to switch document", e)

    def _on_samples_selected(self, samples):
        key = self.viewmodel.active_key
        if key is None:
            return
        try:
            self.viewmodel.set_active(key.document, samples)
        except KeyError as e:
            self._log_exception("Failed to switch samples", e)

    def _on_active_changed(self, key):
        doc = self.viewmodel.active_document()
        if doc is None:
            self.peaks_dock.set_samples(())
            self.plot_widget.setTitle("No spectrum loaded")
        else:
            self.peaks_dock.set_samples(doc.sample_numbers, sorted(key.samples))
            self.plot_widget.setTitle(doc.filename)
            self._on_documents_updated(self.viewmodel.documents())
        self._refresh_peaks()

    def _refresh_peaks(self):
        self.peaks_dock.set_peaks(self.viewmodel.peak_model.peaks())

    def _on_scene_clicked(self, ev):
        if ev.button() != Qt.LeftButton or ev.double():
            return
        vb = self.plot_widget.getPlotItem().vb
        if not vb.sceneBoundingRect().contains(ev.scenePos()):
            return
        energy = vb.mapSceneToView(ev.scenePos()).x()
        self.viewmodel.add_peak_at(energy)

    # --------------------------
    # View-only public methods
    # --------------------------
    def update_plot_data(self, x, counts, peak_sum=None):
        for marker in self._peak_markers:
            self.plot_widget.removeItem(marker)
        self._peak_markers = []

        if x is None or counts is None:
            self.data_curve.clear()
            self.peak_curve.clear()
            return

        # step mode wants bin edges: one more x than y
        width = x[1] - x[0] if len(x) > 1 else 1.0
        edges = list(x - 0.5 * width) + [x[-1] + 0.5 * width]
        self.data_curve.setData(edges, counts)

        if peak_sum is None:
            self.peak_curve.clear()
        else:
            continuum = counts.min() if len(counts) else 0.0
            self.peak_curve.setData(x, peak_sum + continuum)

        for peak in self.viewmodel.peak_model.peaks():
            line = pg.InfiniteLine(pos=peak.mean, angle=90, pen=pg.mkPen(MARKER_COLOR, style=Qt.DashLine))
            self.plot_widget.addItem(line)
            self._peak_markers.append(line)

    def append_log(self, msg: str):
        self.log_dock.append_log(msg)

    def show_warning(self, msg: str):
        self.statusBar().showMessage(msg, WARNING_TIMEOUT_MS)

    def _log_exception(self, context: str, exc: Exception):
        """Emit a diagnostic message for an exception through the log dock."""
        tb = traceback.format_exc()
        self.append_log(f"{context}: {exc}\n{tb}")
