# models/__init__.py

"""Public API for the models package.

Exports provided:
  - PeakDef - immutable Gaussian photopeak
  - PeakModel - Qt-observable ordered peak collection
  - SpectrumFile - channel counts per sample with an energy calibration
  - synthesize_spectrum() - Poisson-sampled demo spectrum builder
"""

from .peak import PeakDef, FWHM_PER_SIGMA
from .peak_model import PeakModel
from .spectrum_file import SpectrumFile, synthesize_spectrum

__all__ = [
    "PeakDef",
    "FWHM_PER_SIGMA",
    "PeakModel",
    "SpectrumFile",
    "synthesize_spectrum",
]
