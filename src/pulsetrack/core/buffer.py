"""
Decoded sample buffer container.

Decoding compressed audio is delegated to librosa; this module only
holds the decoded per-channel samples and derives the mono mixdown
used by every analysis stage.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import librosa
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleBuffer:
    """Container for decoded, channels-first audio samples."""

    channels: np.ndarray    # Shape: (n_channels, n_samples), float32
    sample_rate: int

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels.ndim != 2 or self.channels.shape[0] == 0:
            raise ValueError(
                "channels must be a non-empty (n_channels, n_samples) array, "
                f"got shape {self.channels.shape}"
            )
        if self.channels.shape[1] == 0:
            raise ValueError("Sample buffer is empty (zero samples)")

    @classmethod
    def from_array(cls, y: np.ndarray, sample_rate: int) -> "SampleBuffer":
        """
        Build a buffer from a mono (1-D) or channels-first (2-D) array.

        Args:
            y: Audio samples.
            sample_rate: Sample rate in Hz.

        Returns:
            Read-only SampleBuffer holding a float32 copy of the samples.
        """
        data = np.array(y, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        data.setflags(write=False)
        return cls(channels=data, sample_rate=int(sample_rate))

    @property
    def n_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def n_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Length of the buffer in seconds."""
        return self.n_samples / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        """Return a read-only view of one channel."""
        view = self.channels[index].view()
        view.setflags(write=False)
        return view


def to_mono(buffer: SampleBuffer) -> np.ndarray:
    """
    Mix a buffer down to a single channel.

    Mono input passes through unchanged. Otherwise the first two channels
    are averaged sample by sample; further channels are ignored.
    """
    if buffer.n_channels == 1:
        return buffer.channel(0)

    left = buffer.channels[0].astype(np.float32)
    right = buffer.channels[1].astype(np.float32)
    mono = (left + right) / np.float32(2.0)
    mono.setflags(write=False)
    return mono


def load_audio(
    audio_path: Union[str, Path],
    sr: int | None = None,
) -> SampleBuffer:
    """
    Decode an audio file into a SampleBuffer.

    Args:
        audio_path: Path to audio file (wav, mp3, flac).
        sr: Target sample rate. None preserves the file's rate.

    Returns:
        SampleBuffer with every decoded channel.
    """
    y, sr_out = librosa.load(audio_path, sr=sr, mono=False)
    logger.debug(
        "Decoded %s: shape=%s sr=%d", audio_path, getattr(y, "shape", None), sr_out
    )
    return SampleBuffer.from_array(y, sr_out)
