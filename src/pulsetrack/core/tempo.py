"""
Tempo estimation from a beat timeline.

Inter-beat intervals vote into a BPM histogram, together with their
half- and double-tempo octaves, and the smoothed histogram peak is
taken as the track tempo.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from pulsetrack.core.config import TempoConfig

logger = logging.getLogger(__name__)


def tempo_histogram(
    beats: Sequence[float],
    config: Optional[TempoConfig] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Build the smoothed tempo histogram for a beat timeline.

    Args:
        beats: Ascending beat timestamps in seconds.
        config: Histogram parameters.

    Returns:
        Tuple of (smoothed votes, bin start BPM) arrays of equal length.
        Edge bins not covered by the smoothing kernel hold zero.
    """
    cfg = config or TempoConfig()
    n_bins = cfg.n_bins
    histogram = np.zeros(n_bins)

    intervals = np.diff(np.asarray(beats, dtype=np.float64))
    for interval in intervals:
        if interval <= 0:
            continue
        bpm = 60.0 / interval
        for multiplier in cfg.multipliers:
            candidate = bpm * multiplier
            if cfg.min_bpm <= candidate <= cfg.max_bpm:
                index = int(math.floor((candidate - cfg.min_bpm) / cfg.resolution))
                if 0 <= index < n_bins:
                    histogram[index] += 1

    kernel = np.asarray(cfg.kernel, dtype=np.float64)
    half = len(kernel) // 2
    smoothed = np.zeros(n_bins)
    if n_bins > 2 * half:
        # Symmetric kernel, so convolution equals correlation here.
        smoothed[half:n_bins - half] = (
            np.convolve(histogram, kernel, mode="valid") / kernel.sum()
        )

    bin_bpm = cfg.min_bpm + np.arange(n_bins) * cfg.resolution
    return smoothed, bin_bpm


def estimate_bpm(
    beats: Sequence[float],
    duration: Optional[float] = None,
    config: Optional[TempoConfig] = None,
) -> float:
    """
    Estimate the dominant tempo of a beat timeline.

    Args:
        beats: Deduplicated, ascending beat timestamps in seconds.
        duration: Track duration in seconds (informational).
        config: Histogram parameters.

    Returns:
        Tempo rounded to a whole BPM within [min_bpm, max_bpm], or
        ``fallback_bpm`` when fewer than ``min_beats`` beats exist.
    """
    cfg = config or TempoConfig()
    if len(beats) < cfg.min_beats:
        logger.debug(
            "Only %d beats, using fallback tempo %.1f", len(beats), cfg.fallback_bpm
        )
        return float(cfg.fallback_bpm)

    smoothed, _ = tempo_histogram(beats, cfg)
    # argmax returns the first maximum, so ties resolve to the lowest BPM
    best_bin = int(np.argmax(smoothed))
    # Half-up rounding: 120.5 -> 121
    bpm = float(math.floor(cfg.min_bpm + best_bin * cfg.resolution + 0.5))

    logger.debug(
        "Estimated tempo %.0f BPM from %d beats (duration=%s)",
        bpm,
        len(beats),
        f"{duration:.2f}s" if duration is not None else "n/a",
    )
    return bpm
