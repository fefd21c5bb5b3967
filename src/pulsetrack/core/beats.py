"""
Percussive beat detection via band-limited spectral flux.

Three flux signals are computed from overlapping frames, one per
percussive category (kick, snare, hihat). Peaks are picked against an
adaptive threshold and merged into a single deduplicated timeline.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import librosa
import numpy as np

from pulsetrack.core.analyzer import freeze
from pulsetrack.core.config import BeatConfig
from pulsetrack.core.progress import (
    CancellationToken,
    ProgressCallback,
    check_cancelled,
)
from pulsetrack.core.spectral import (
    SpectralCache,
    count_overlapping_frames,
    frame_signal,
    get_default_cache,
    magnitude_spectrum,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("kick", "snare", "hihat")


@dataclass(frozen=True)
class BeatTimeline:
    """Beat timestamps in seconds, each list ascending."""

    all: np.ndarray      # merged, no two entries within the merge window
    kicks: np.ndarray
    snares: np.ndarray
    hihats: np.ndarray

    def __post_init__(self):
        for name in ("all", "kicks", "snares", "hihats"):
            object.__setattr__(self, name, freeze(getattr(self, name)))

    @classmethod
    def empty(cls) -> "BeatTimeline":
        return cls(all=[], kicks=[], snares=[], hihats=[])

    def __len__(self) -> int:
        return len(self.all)


def spectral_flux(current: np.ndarray, previous: np.ndarray) -> np.ndarray:
    """
    Sum of positive magnitude differences along the last axis.

    Works on single spectra or row-aligned batches of spectra.
    """
    return np.sum(np.maximum(0.0, current - previous), axis=-1)


def find_peaks(
    signal: np.ndarray,
    threshold: float,
    window: int = 20,
    mean_factor: float = 1.5,
) -> np.ndarray:
    """
    Indices of adaptive-threshold local maxima.

    Only indices in ``[window, len(signal) - window)`` are considered.
    A sample is a peak when it exceeds ``max(threshold, mean_factor *
    local_mean)``, where the local mean spans ``2 * window + 1`` samples
    centred on it, and is strictly greater than both neighbours.

    Args:
        signal: 1-D detection function.
        threshold: Fixed minimum peak height.
        window: Half-width of the local mean, in samples.
        mean_factor: Multiplier applied to the local mean.

    Returns:
        Integer array of peak indices, ascending.
    """
    x = np.asarray(signal, dtype=np.float64)
    n = len(x)
    if n <= 2 * window:
        return np.array([], dtype=int)

    kernel = np.full(2 * window + 1, 1.0 / (2 * window + 1))
    local_mean = np.convolve(x, kernel, mode="valid")

    centre = x[window:n - window]
    left = x[window - 1:n - window - 1]
    right = x[window + 1:n - window + 1]
    adaptive = np.maximum(threshold, mean_factor * local_mean)

    mask = (centre > adaptive) & (centre > left) & (centre > right)
    return np.nonzero(mask)[0] + window


def merge_beats(*beat_lists, min_gap: float = 0.05) -> np.ndarray:
    """
    Merge beat lists into one ascending timeline.

    A timestamp is kept only if it lies more than ``min_gap`` seconds
    after the previously kept one.
    """
    merged = np.sort(np.concatenate([np.asarray(b, dtype=np.float64) for b in beat_lists]))
    kept: list[float] = []
    for t in merged:
        if not kept or t - kept[-1] > min_gap:
            kept.append(float(t))
    return np.array(kept, dtype=np.float64)


class BeatDetector:
    """
    Detects kick, snare and hihat hits from spectral flux.

    Frames of ``frame_size`` samples are taken every ``hop_size``
    samples; the final partial frame is padded with silence.
    """

    def __init__(
        self,
        config: Optional[BeatConfig] = None,
        cache: Optional[SpectralCache] = None,
    ):
        self.config = config or BeatConfig()
        self.cache = cache or get_default_cache()

    def band_bins(self, sr: int) -> dict[str, tuple[int, int]]:
        """Half-open FFT bin range ``[start, end)`` per category."""
        frame_size = self.config.frame_size
        bin_freq = sr / frame_size
        last_bin = frame_size // 2 - 1

        bins = {}
        for name in CATEGORIES:
            low, high = self.config.ranges[name]
            start = int(math.floor(low / bin_freq))
            end = min(int(math.ceil(high / bin_freq)), last_bin)
            bins[name] = (start, max(start, end))
        return bins

    def compute_flux(
        self,
        y: np.ndarray,
        sr: int,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> dict[str, np.ndarray]:
        """
        Per-frame spectral flux for each percussive category.

        The first frame has no predecessor and gets zero flux.
        """
        cfg = self.config
        n_frames = count_overlapping_frames(len(y), cfg.frame_size, cfg.hop_size)
        window = self.cache.hann(cfg.frame_size)
        bins = self.band_bins(sr)

        flux = {name: np.zeros(n_frames) for name in CATEGORIES}
        previous: dict[str, Optional[np.ndarray]] = {name: None for name in CATEGORIES}

        for block_start in range(0, n_frames, cfg.progress_every):
            check_cancelled(cancel)
            if on_progress is not None:
                on_progress(block_start / n_frames)

            count = min(cfg.progress_every, n_frames - block_start)
            frames = frame_signal(
                y, cfg.frame_size, cfg.hop_size, count, first_frame=block_start
            )
            mags = magnitude_spectrum(frames * window, cache=self.cache)

            for name, (start, end) in bins.items():
                spectra = mags[:, start:end]
                prev = previous[name]
                if prev is None:
                    prev = spectra[0]
                stacked = np.vstack([prev[np.newaxis, :], spectra])
                flux[name][block_start:block_start + count] = spectral_flux(
                    stacked[1:], stacked[:-1]
                )
                previous[name] = spectra[-1]

        return flux

    def detect(
        self,
        y: np.ndarray,
        sr: int,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> BeatTimeline:
        """
        Detect percussive beats in a mono signal.

        Args:
            y: Mono audio samples.
            sr: Sample rate in Hz.
            on_progress: Called with the completed fraction every
                ``progress_every`` frames.
            cancel: Checked before each block of frames.

        Returns:
            BeatTimeline with per-category and merged timestamps.
        """
        if len(y) == 0:
            raise ValueError("Cannot analyze an empty signal")
        if sr <= 0:
            raise ValueError(f"Sample rate must be positive, got {sr}")

        cfg = self.config
        flux = self.compute_flux(y, sr, on_progress=on_progress, cancel=cancel)

        times = {}
        for name in CATEGORIES:
            peaks = find_peaks(
                flux[name],
                cfg.thresholds[name],
                window=cfg.peak_window,
                mean_factor=cfg.mean_factor,
            )
            times[name] = librosa.frames_to_time(peaks, sr=sr, hop_length=cfg.hop_size)

        merged = merge_beats(
            times["kick"], times["snare"], times["hihat"], min_gap=cfg.merge_window
        )
        logger.debug(
            "Detected beats: kicks=%d snares=%d hihats=%d merged=%d",
            len(times["kick"]),
            len(times["snare"]),
            len(times["hihat"]),
            len(merged),
        )

        return BeatTimeline(
            all=merged,
            kicks=times["kick"],
            snares=times["snare"],
            hihats=times["hihat"],
        )
