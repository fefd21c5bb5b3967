"""
Analysis configuration.

The frequency ranges and peak thresholds below are empirical tunings.
They are exposed as dataclass defaults so callers can override them
without touching the algorithms.
"""

import math
from dataclasses import dataclass, field


def _validate_ranges(ranges: dict[str, tuple[float, float]]) -> None:
    for name, (low, high) in ranges.items():
        if low < 0 or high <= low:
            raise ValueError(
                f"Invalid frequency range for '{name}': ({low}, {high}) Hz"
            )


@dataclass(frozen=True)
class BandConfig:
    """Frequency-band / loudness analysis parameters."""

    output_rate: int = 30          # series samples per second
    fft_size: int = 2048
    band_gain: float = 4.0
    loudness_gain: float = 3.0
    progress_every: int = 100      # frames between progress reports
    ranges: dict[str, tuple[float, float]] = field(
        default_factory=lambda: {
            "sub": (20.0, 60.0),
            "bass": (60.0, 250.0),
            "mid": (250.0, 2000.0),
            "high": (2000.0, 20000.0),
        }
    )

    def __post_init__(self):
        if self.output_rate <= 0:
            raise ValueError(f"output_rate must be positive, got {self.output_rate}")
        if self.progress_every <= 0:
            raise ValueError(
                f"progress_every must be positive, got {self.progress_every}"
            )
        if set(self.ranges) != {"sub", "bass", "mid", "high"}:
            raise ValueError(
                "ranges must define exactly the bands sub, bass, mid and high"
            )
        _validate_ranges(self.ranges)


@dataclass(frozen=True)
class BeatConfig:
    """Spectral-flux beat detection parameters."""

    frame_size: int = 1024
    hop_size: int = 512
    peak_window: int = 20          # frames on each side of a candidate
    mean_factor: float = 1.5
    merge_window: float = 0.05     # seconds
    progress_every: int = 500
    ranges: dict[str, tuple[float, float]] = field(
        default_factory=lambda: {
            "kick": (40.0, 120.0),
            "snare": (120.0, 500.0),
            "hihat": (5000.0, 15000.0),
        }
    )
    thresholds: dict[str, float] = field(
        default_factory=lambda: {
            "kick": 0.15,
            "snare": 0.12,
            "hihat": 0.08,
        }
    )

    def __post_init__(self):
        if self.hop_size <= 0 or self.hop_size > self.frame_size:
            raise ValueError(
                f"hop_size must be in (0, frame_size], got {self.hop_size}"
            )
        if self.peak_window < 1:
            raise ValueError(f"peak_window must be >= 1, got {self.peak_window}")
        if self.progress_every <= 0:
            raise ValueError(
                f"progress_every must be positive, got {self.progress_every}"
            )
        if set(self.ranges) != {"kick", "snare", "hihat"}:
            raise ValueError("ranges must define exactly kick, snare and hihat")
        if set(self.thresholds) != set(self.ranges):
            raise ValueError("thresholds must match the configured ranges")
        _validate_ranges(self.ranges)


@dataclass(frozen=True)
class TempoConfig:
    """Histogram tempo estimation parameters."""

    min_bpm: float = 60.0
    max_bpm: float = 200.0
    resolution: float = 0.5
    min_beats: int = 4
    fallback_bpm: float = 120.0
    multipliers: tuple[float, ...] = (0.5, 1.0, 2.0)
    kernel: tuple[float, ...] = (1.0, 2.0, 3.0, 2.0, 1.0)

    def __post_init__(self):
        if self.max_bpm <= self.min_bpm:
            raise ValueError(
                f"max_bpm ({self.max_bpm}) must exceed min_bpm ({self.min_bpm})"
            )
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        if len(self.kernel) % 2 == 0:
            raise ValueError("kernel must have an odd number of taps")

    @property
    def n_bins(self) -> int:
        """Number of histogram bins covering [min_bpm, max_bpm)."""
        return math.ceil((self.max_bpm - self.min_bpm) / self.resolution)


@dataclass(frozen=True)
class AnalysisConfig:
    """Complete configuration for one analysis run."""

    bands: BandConfig = field(default_factory=BandConfig)
    beats: BeatConfig = field(default_factory=BeatConfig)
    tempo: TempoConfig = field(default_factory=TempoConfig)
