# models/spectrum_file.py
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from .peak import PeakDef


class SpectrumFile:
    """
    A loaded spectrum file: one channel-count array per sample number plus a
    linear energy calibration shared by all samples.
    """

    def __init__(self, filename: str, samples: Dict[int, np.ndarray],
                 energy_offset: float = 0.0, energy_gain: float = 1.0):
        if not samples:
            raise ValueError("a spectrum file needs at least one sample")
        counts = {int(k): np.asarray(v, dtype=float) for k, v in samples.items()}
        nchannels = {len(v) for v in counts.values()}
        if len(nchannels) != 1:
            raise ValueError("all samples must have the same number of channels")
        self.filename = str(filename)
        self._samples = counts
        self.energy_offset = float(energy_offset)
        self.energy_gain = float(energy_gain)

    @property
    def sample_numbers(self) -> Tuple[int, ...]:
        return tuple(sorted(self._samples))

    @property
    def num_channels(self) -> int:
        return len(next(iter(self._samples.values())))

    def channel_energies(self) -> np.ndarray:
        channels = np.arange(self.num_channels, dtype=float)
        return self.energy_offset + self.energy_gain * channels

    def summed_counts(self, samples: Optional[Iterable[int]] = None) -> np.ndarray:
        """Sum the counts of *samples* (all samples when None)."""
        wanted = self.sample_numbers if samples is None else sorted(set(samples))
        missing = [s for s in wanted if s not in self._samples]
        if missing:
            raise KeyError(f"{self.filename} has no sample(s) {missing}")
        total = np.zeros(self.num_channels, dtype=float)
        for s in wanted:
            total += self._samples[s]
        return total

    def __repr__(self) -> str:
        return f"SpectrumFile({self.filename!r}, samples={list(self.sample_numbers)})"


def synthesize_spectrum(filename: str, peaks: Iterable[PeakDef], num_samples: int = 1,
                        num_channels: int = 1024, energy_gain: float = 3.0,
                        background: float = 20.0, seed: Optional[int] = None) -> SpectrumFile:
    """Build a Poisson-sampled demo spectrum with the given peaks on a falling continuum."""
    rng = np.random.default_rng(seed)
    energies = np.arange(num_channels, dtype=float) * energy_gain
    expectation = background * np.exp(-energies / max(energies[-1], 1.0) * 2.0) + 1.0
    for peak in peaks:
        expectation = expectation + peak.evaluate(energies) * energy_gain
    per_sample = expectation / max(num_samples, 1)
    samples = {
        i + 1: rng.poisson(per_sample).astype(float)
        for i in range(max(num_samples, 1))
    }
    return SpectrumFile(filename, samples, energy_offset=0.0, energy_gain=energy_gain)
