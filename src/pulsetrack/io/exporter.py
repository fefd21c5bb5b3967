"""
Manifest serialization module.

Exports analysis results to a JSON manifest for visualization
front-ends, or to a NumPy archive for faster loading.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from pulsetrack.core.analyzer import BAND_NAMES, FrequencyBands
from pulsetrack.core.beats import BeatTimeline
from pulsetrack.core.pipeline import AnalysisResult

logger = logging.getLogger(__name__)

BEAT_KEYS = ("all", "kicks", "snares", "hihats")


class ManifestExporter:
    """
    Exports AnalysisResult objects to manifest format.

    The manifest layout is::

        {
          "name", "duration", "bpm", "analysisVersion",
          "beats": {"all", "kicks", "snares", "hihats"},
          "frequency": {"sampleRate", "sub", "bass", "mid", "high"},
          "energy": [...],
          "automations": {}
        }
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _round_list(self, values: np.ndarray) -> list[float]:
        return [self._round(v) for v in values]

    def build_manifest(
        self,
        result: AnalysisResult,
        waveform: Optional[np.ndarray] = None,
    ) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            result: Analysis result to serialize.
            waveform: Optional min/max envelope from generate_waveform().

        Returns:
            Manifest dictionary ready for serialization.
        """
        manifest: dict[str, Any] = {
            "name": result.name,
            "duration": self._round(result.duration),
            "bpm": self._round(result.bpm),
            "analysisVersion": result.analysis_version,
            "beats": {
                key: self._round_list(getattr(result.beats, key))
                for key in BEAT_KEYS
            },
            "frequency": {
                "sampleRate": result.frequency.sample_rate,
                **{
                    band: self._round_list(result.frequency.band(band))
                    for band in BAND_NAMES
                },
            },
            "energy": self._round_list(result.energy),
            "automations": dict(result.automations),
        }

        if waveform is not None:
            manifest["waveform"] = self._round_list(waveform)

        return manifest

    def to_dict(self, result: AnalysisResult) -> dict[str, Any]:
        """Return manifest as dictionary (for in-memory use)."""
        return self.build_manifest(result)

    def export_json(
        self,
        result: AnalysisResult,
        output_path: Union[str, Path],
        indent: Optional[int] = 2,
        waveform: Optional[np.ndarray] = None,
    ) -> Path:
        """
        Export manifest to JSON file.

        Args:
            result: Analysis result.
            output_path: Path for output JSON file.
            indent: JSON indentation level.
            waveform: Optional waveform envelope to embed.

        Returns:
            Path to written file.
        """
        manifest = self.build_manifest(result, waveform=waveform)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent)

        logger.info("Wrote manifest %s", output_path)
        return output_path

    def export_numpy(
        self,
        result: AnalysisResult,
        output_path: Union[str, Path],
    ) -> Path:
        """
        Export the result as a NumPy .npz archive.

        Args:
            result: Analysis result.
            output_path: Path for output .npz file.

        Returns:
            Path to written file.
        """
        output_path = Path(output_path)

        arrays: dict[str, Any] = dict(
            duration=np.array([result.duration]),
            bpm=np.array([result.bpm]),
            sample_rate=np.array([result.sample_rate]),
            energy=result.energy,
        )
        for key in BEAT_KEYS:
            arrays[f"beats_{key}"] = getattr(result.beats, key)
        for band in BAND_NAMES:
            arrays[band] = result.frequency.band(band)

        np.savez_compressed(output_path, **arrays)

        logger.info("Wrote archive %s", output_path)
        return output_path


def manifest_to_result(manifest: dict[str, Any]) -> AnalysisResult:
    """
    Rebuild an AnalysisResult from a manifest dictionary.

    Raises:
        ValueError: If a required key is missing.
    """
    try:
        beats = manifest["beats"]
        frequency = manifest["frequency"]
        return AnalysisResult(
            name=manifest.get("name", ""),
            duration=float(manifest["duration"]),
            bpm=float(manifest["bpm"]),
            analysis_version=int(manifest.get("analysisVersion", 1)),
            beats=BeatTimeline(**{key: beats.get(key, []) for key in BEAT_KEYS}),
            frequency=FrequencyBands(
                sample_rate=int(frequency["sampleRate"]),
                **{band: frequency[band] for band in BAND_NAMES},
            ),
            energy=manifest["energy"],
            automations=manifest.get("automations", {}),
        )
    except KeyError as exc:
        raise ValueError(f"Manifest is missing required key {exc}") from exc


def load_manifest(input_path: Union[str, Path]) -> AnalysisResult:
    """Read a JSON manifest written by ManifestExporter.export_json()."""
    with open(input_path, "r", encoding="utf-8") as f:
        manifest = json.load(f)
    return manifest_to_result(manifest)
