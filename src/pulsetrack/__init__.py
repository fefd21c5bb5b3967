"""Offline audio feature tracks for synchronized animation."""

from pulsetrack.core.buffer import SampleBuffer
from pulsetrack.core.pipeline import AnalysisResult, AudioPipeline, generate_waveform
from pulsetrack.core.progress import AnalysisCancelled, CancellationToken
from pulsetrack.io.exporter import ManifestExporter

__version__ = "0.1.0"
__all__ = [
    "SampleBuffer",
    "AudioPipeline",
    "AnalysisResult",
    "AnalysisCancelled",
    "CancellationToken",
    "ManifestExporter",
    "generate_waveform",
]
