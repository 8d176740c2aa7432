"""
Dock widgets package for the peak editor.

Each dock is a self-contained module that can be developed independently.
"""

from .peaks_dock import PeaksDock
from .log_dock import LogDock

__all__ = ["PeaksDock", "LogDock"]
