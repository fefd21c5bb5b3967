"""
Analysis orchestration.

Runs band/loudness extraction, beat detection and tempo estimation
over one decoded buffer and assembles the immutable AnalysisResult
consumed by visualization code.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import numpy as np

from pulsetrack.core.analyzer import BandEnergyExtractor, FrequencyBands, freeze
from pulsetrack.core.beats import BeatDetector, BeatTimeline
from pulsetrack.core.buffer import SampleBuffer, load_audio, to_mono
from pulsetrack.core.config import AnalysisConfig
from pulsetrack.core.progress import (
    CancellationToken,
    ProgressCallback,
    ProgressReporter,
    check_cancelled,
)
from pulsetrack.core.spectral import SpectralCache, get_default_cache
from pulsetrack.core.tempo import estimate_bpm

logger = logging.getLogger(__name__)

ANALYSIS_VERSION = 1


@dataclass(frozen=True)
class AnalysisResult:
    """Complete feature track for one recording."""

    duration: float
    bpm: float
    beats: BeatTimeline
    frequency: FrequencyBands
    energy: np.ndarray
    name: str = ""
    analysis_version: int = ANALYSIS_VERSION
    # Filled in by external automation editors, never by the engine.
    automations: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "energy", freeze(self.energy))
        object.__setattr__(
            self, "automations", MappingProxyType(dict(self.automations))
        )

    @property
    def sample_rate(self) -> int:
        """Samples per second of the band and energy series."""
        return self.frequency.sample_rate

    @property
    def n_frames(self) -> int:
        return len(self.energy)


class AudioPipeline:
    """
    End-to-end analysis of a decoded buffer.

    Progress milestones: 0.1 before band analysis, band analysis spans
    0.1-0.5, beat detection spans 0.5-0.9, then 0.9 and 1.0 around tempo
    estimation.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        cache: Optional[SpectralCache] = None,
    ):
        self.config = config or AnalysisConfig()
        self.cache = cache or get_default_cache()
        self.band_extractor = BandEnergyExtractor(self.config.bands, self.cache)
        self.beat_detector = BeatDetector(self.config.beats, self.cache)

    def analyze(
        self,
        buffer: SampleBuffer,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
        name: str = "",
    ) -> AnalysisResult:
        """
        Analyze a decoded buffer.

        Args:
            buffer: Mono or stereo samples.
            on_progress: Optional callback receiving non-decreasing
                values in [0, 1].
            cancel: Optional token; raises AnalysisCancelled when set.
            name: Label stored on the result.

        Returns:
            AnalysisResult for the whole buffer.
        """
        started = time.perf_counter()
        progress = ProgressReporter(on_progress)
        sr = buffer.sample_rate
        duration = buffer.duration

        mono = to_mono(buffer)

        # Warm the tables used by both stages
        self.cache.twiddles(self.config.bands.fft_size)
        self.cache.twiddles(self.config.beats.frame_size)

        check_cancelled(cancel)
        progress.report(0.1)

        energy = self.band_extractor.extract(
            mono, sr, on_progress=progress.stage(0.1, 0.5), cancel=cancel
        )
        progress.report(0.5)

        beats = self.beat_detector.detect(
            mono, sr, on_progress=progress.stage(0.5, 0.9), cancel=cancel
        )
        progress.report(0.9)

        bpm = estimate_bpm(beats.all, duration, self.config.tempo)
        progress.report(1.0)

        logger.info(
            "Analyzed %s: %.2fs, %.0f BPM, %d beats in %.2fs",
            name or "buffer",
            duration,
            bpm,
            len(beats),
            time.perf_counter() - started,
        )

        return AnalysisResult(
            name=name,
            duration=duration,
            bpm=bpm,
            beats=beats,
            frequency=energy.frequency,
            energy=energy.energy,
        )

    def process_file(
        self,
        audio_path: Union[str, Path],
        sr: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AnalysisResult:
        """
        Decode and analyze an audio file in one step.

        Args:
            audio_path: Path to audio file.
            sr: Target sample rate, None to keep the file's rate.

        Returns:
            AnalysisResult named after the file stem.
        """
        audio_path = Path(audio_path)
        buffer = load_audio(audio_path, sr=sr)
        return self.analyze(
            buffer, on_progress=on_progress, cancel=cancel, name=audio_path.stem
        )


def generate_waveform(buffer: SampleBuffer, n_points: int = 1000) -> np.ndarray:
    """
    Min/max envelope of the mono mixdown for waveform drawing.

    The signal is split into ``n_points`` contiguous spans of
    ``n_samples // n_points`` samples; trailing samples beyond the last
    span are ignored.

    Args:
        buffer: Decoded samples.
        n_points: Number of spans.

    Returns:
        float32 array of length ``2 * n_points`` holding (min, max)
        pairs. Spans with no samples yield (0, 0).
    """
    if n_points < 1:
        raise ValueError(f"n_points must be >= 1, got {n_points}")

    mono = to_mono(buffer)
    span = len(mono) // n_points
    waveform = np.zeros(n_points * 2, dtype=np.float32)
    if span == 0:
        return waveform

    spans = np.asarray(mono[: span * n_points], dtype=np.float32).reshape(n_points, span)
    waveform[0::2] = spans.min(axis=1)
    waveform[1::2] = spans.max(axis=1)
    return waveform
