# models/peak.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

# FWHM = 2*sqrt(2*ln2) * sigma
FWHM_PER_SIGMA = 2.0 * np.sqrt(2.0 * np.log(2.0))


@dataclass(frozen=True)
class PeakDef:
    """A single Gaussian photopeak.

    ``amplitude`` is the peak area in counts, so the height at the mean is
    ``amplitude / (sigma * sqrt(2*pi))``.
    """

    mean: float
    sigma: float
    amplitude: float
    label: Optional[str] = None

    def __post_init__(self):
        if not np.isfinite(self.mean):
            raise ValueError(f"peak mean must be finite, got {self.mean!r}")
        if not (np.isfinite(self.sigma) and self.sigma > 0):
            raise ValueError(f"peak sigma must be positive, got {self.sigma!r}")

    @property
    def fwhm(self) -> float:
        return float(self.sigma * FWHM_PER_SIGMA)

    def evaluate(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        norm = self.amplitude / (self.sigma * np.sqrt(2.0 * np.pi))
        return norm * np.exp(-0.5 * ((x - self.mean) / self.sigma) ** 2)

    def shifted(self, delta: float) -> "PeakDef":
        return replace(self, mean=self.mean + float(delta))
