# main.py
import logging
import sys

from PySide6.QtWidgets import QApplication

from dataio import get_config
from models import PeakDef, synthesize_spectrum
from view.main_window import MainWindow
from viewmodel.session_vm import SessionViewModel
from viewmodel.logging_helpers import log_message


def _demo_files():
    """Two synthetic files: a single-sample Cs-137/K-40 and a three-sample Co-60."""
    cs = synthesize_spectrum(
        "cs137_k40.pcf",
        [PeakDef(661.7, 4.0, 25000.0, "Cs137"), PeakDef(1460.8, 6.0, 6000.0, "K40")],
        num_samples=1, seed=1,
    )
    co = synthesize_spectrum(
        "co60_survey.n42",
        [PeakDef(1173.2, 5.0, 18000.0, "Co60"), PeakDef(1332.5, 5.3, 16000.0, "Co60")],
        num_samples=3, seed=2,
    )
    return [cs, co]


def main():
    cfg = get_config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    app = QApplication(sys.argv)

    # ViewModel + View
    viewmodel = SessionViewModel(max_parked_logs=cfg.max_parked_logs)
    window = MainWindow(viewmodel)

    # Opening is not a user edit, so nothing here is undoable.
    files = _demo_files()
    for spectrum_file in files:
        viewmodel.open_document(spectrum_file)
    log_message("Click the spectrum to add a peak; Ctrl+Z / Ctrl+Y to undo / redo.", vm=viewmodel)

    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
