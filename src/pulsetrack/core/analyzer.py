"""
Frequency-band and loudness extraction.

Produces the evenly time-stepped series that drive continuous visual
parameters: four band energies (sub, bass, mid, high) and an RMS
loudness curve, all sampled at a fixed output rate and normalized
per series to [0, 1].
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from pulsetrack.core.config import BandConfig
from pulsetrack.core.progress import (
    CancellationToken,
    ProgressCallback,
    check_cancelled,
)
from pulsetrack.core.spectral import (
    SpectralCache,
    frame_signal,
    get_default_cache,
    magnitude_spectrum,
)

logger = logging.getLogger(__name__)

BAND_NAMES = ("sub", "bass", "mid", "high")


def freeze(arr, dtype=np.float64) -> np.ndarray:
    """Return a read-only array copy."""
    out = np.array(arr, dtype=dtype)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class FrequencyBands:
    """Per-frame normalized band energies."""

    sub: np.ndarray     # 20-60Hz
    bass: np.ndarray    # 60-250Hz
    mid: np.ndarray     # 250-2000Hz
    high: np.ndarray    # 2000-20000Hz
    sample_rate: int    # series samples per second

    def __post_init__(self):
        for name in BAND_NAMES:
            object.__setattr__(self, name, freeze(getattr(self, name)))

    @property
    def n_frames(self) -> int:
        return len(self.sub)

    def band(self, name: str) -> np.ndarray:
        """Look up a band series by name."""
        if name not in BAND_NAMES:
            raise KeyError(f"Unknown band '{name}', expected one of {BAND_NAMES}")
        return getattr(self, name)


@dataclass(frozen=True)
class EnergyFeatures:
    """Band energies plus the loudness curve sharing their time base."""

    frequency: FrequencyBands
    energy: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "energy", freeze(self.energy))


class BandEnergyExtractor:
    """
    Computes band energies and loudness over fixed-rate analysis frames.

    The buffer is divided into ``floor(duration * output_rate)`` frames.
    Each frame is an ``fft_size`` excerpt starting at ``i * samples_per_frame``,
    zero-padded at the end of the buffer.
    """

    def __init__(
        self,
        config: Optional[BandConfig] = None,
        cache: Optional[SpectralCache] = None,
    ):
        self.config = config or BandConfig()
        self.cache = cache or get_default_cache()

    def band_bins(self, sr: int) -> dict[str, tuple[int, int]]:
        """
        Inclusive FFT bin range for each band at a given sample rate.

        A band whose start lies past its end (sample rate too low to
        represent it) is kept as an empty range.
        """
        fft_size = self.config.fft_size
        bin_count = fft_size // 2
        bin_freq = sr / fft_size

        bins = {}
        for name in BAND_NAMES:
            low, high = self.config.ranges[name]
            start = int(math.floor(low / bin_freq))
            end = min(int(math.ceil(high / bin_freq)), bin_count - 1)
            bins[name] = (start, end)
        return bins

    @staticmethod
    def normalize_peak(series: np.ndarray) -> np.ndarray:
        """
        Divide a non-negative series by its maximum.

        An all-zero series is returned unchanged.
        """
        peak = float(np.max(series)) if len(series) else 0.0
        if peak > 0:
            return series / peak
        return series.copy()

    def extract(
        self,
        y: np.ndarray,
        sr: int,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> EnergyFeatures:
        """
        Extract band energies and loudness from a mono signal.

        Args:
            y: Mono audio samples.
            sr: Sample rate in Hz.
            on_progress: Called with the completed fraction every
                ``progress_every`` frames.
            cancel: Checked before each block of frames.

        Returns:
            EnergyFeatures with every series normalized to [0, 1].
        """
        cfg = self.config
        n_samples = len(y)
        if n_samples == 0:
            raise ValueError("Cannot analyze an empty signal")
        if sr <= 0:
            raise ValueError(f"Sample rate must be positive, got {sr}")

        duration = n_samples / sr
        frame_count = int(math.floor(duration * cfg.output_rate))

        raw = {name: np.zeros(frame_count) for name in BAND_NAMES}
        loudness = np.zeros(frame_count)

        if frame_count == 0:
            logger.debug(
                "Signal shorter than one output frame (%.4fs), series are empty",
                duration,
            )
        else:
            samples_per_frame = n_samples // frame_count
            window = self.cache.hann(cfg.fft_size)
            bins = self.band_bins(sr)

            for block_start in range(0, frame_count, cfg.progress_every):
                check_cancelled(cancel)
                if on_progress is not None:
                    on_progress(block_start / frame_count)

                count = min(cfg.progress_every, frame_count - block_start)
                frames = frame_signal(
                    y, cfg.fft_size, samples_per_frame, count, first_frame=block_start
                )
                mags = magnitude_spectrum(frames * window, cache=self.cache)
                block = slice(block_start, block_start + count)

                for name, (start, end) in bins.items():
                    if start > end:
                        continue
                    band_power = np.mean(mags[:, start:end + 1] ** 2, axis=1)
                    raw[name][block] = np.minimum(
                        1.0, np.sqrt(band_power) * cfg.band_gain
                    )

                # RMS over the unwindowed samples that exist in the buffer
                starts = (block_start + np.arange(count)) * samples_per_frame
                valid = np.clip(n_samples - starts, 1, cfg.fft_size)
                rms = np.sqrt(np.sum(frames ** 2, axis=1) / valid)
                loudness[block] = np.minimum(1.0, rms * cfg.loudness_gain)

        frequency = FrequencyBands(
            sub=self.normalize_peak(raw["sub"]),
            bass=self.normalize_peak(raw["bass"]),
            mid=self.normalize_peak(raw["mid"]),
            high=self.normalize_peak(raw["high"]),
            sample_rate=cfg.output_rate,
        )
        logger.debug("Extracted %d band/energy frames", frame_count)

        return EnergyFeatures(
            frequency=frequency,
            energy=self.normalize_peak(loudness),
        )
