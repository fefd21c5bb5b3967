"""Core audio analysis modules."""

from pulsetrack.core.analyzer import BandEnergyExtractor, EnergyFeatures, FrequencyBands
from pulsetrack.core.beats import BeatDetector, BeatTimeline
from pulsetrack.core.buffer import SampleBuffer, load_audio, to_mono
from pulsetrack.core.config import AnalysisConfig, BandConfig, BeatConfig, TempoConfig
from pulsetrack.core.pipeline import AnalysisResult, AudioPipeline, generate_waveform
from pulsetrack.core.progress import AnalysisCancelled, CancellationToken
from pulsetrack.core.spectral import SpectralCache, get_default_cache
from pulsetrack.core.tempo import estimate_bpm

__all__ = [
    "AnalysisCancelled",
    "AnalysisConfig",
    "AnalysisResult",
    "AudioPipeline",
    "BandConfig",
    "BandEnergyExtractor",
    "BeatConfig",
    "BeatDetector",
    "BeatTimeline",
    "CancellationToken",
    "EnergyFeatures",
    "FrequencyBands",
    "SampleBuffer",
    "SpectralCache",
    "TempoConfig",
    "estimate_bpm",
    "generate_waveform",
    "get_default_cache",
    "load_audio",
    "to_mono",
]
