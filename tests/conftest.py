"""Shared fixtures: synthetic signals with known content."""

import numpy as np
import pytest

from pulsetrack.core.buffer import SampleBuffer
from pulsetrack.core.spectral import SpectralCache

SR = 44100

# Percussive hits: 8-cycle bursts of a tone sitting exactly on FFT bin 2
# of a 1024-point frame, starting a quarter-hop into beat-detector frame m.
CLICK_FRAMES = (86, 129, 172, 215)
CLICK_PERIOD = 512
CLICK_CYCLES = 8
CLICK_AMPLITUDE = 0.8


def _burst(sr, snare_freq=None):
    n = np.arange(CLICK_PERIOD * CLICK_CYCLES)
    burst = CLICK_AMPLITUDE * np.sin(2 * np.pi * n / CLICK_PERIOD)
    if snare_freq is not None:
        burst = burst + CLICK_AMPLITUDE * np.sin(2 * np.pi * snare_freq * n / sr)
    return burst


@pytest.fixture
def cache():
    """Fresh table cache, isolated from the process-wide one."""
    return SpectralCache()


@pytest.fixture
def click_onsets():
    """Onset times in seconds of the click_track fixture."""
    return np.array([(512 * m + 256) / SR for m in CLICK_FRAMES])


@pytest.fixture
def make_click_track():
    """
    Factory for mono click tracks.

    ``onsets`` are sample offsets of each hit; by default a quarter-hop
    into each of CLICK_FRAMES. ``snare_freq`` layers a second tone onto
    every hit.
    """

    def _make(duration=10.0, onsets=None, snare_freq=None, sr=SR):
        if onsets is None:
            onsets = [512 * m + 256 for m in CLICK_FRAMES]
        y = np.zeros(int(duration * sr), dtype=np.float32)
        burst = _burst(sr, snare_freq)
        for start in onsets:
            y[start:start + len(burst)] = burst
        return y

    return _make


@pytest.fixture
def click_track(make_click_track):
    """10 s mono track with four hits 43 hops (~0.5 s) apart."""
    return SampleBuffer.from_array(make_click_track(), SR)


@pytest.fixture
def silence():
    """5 s of digital silence."""
    return SampleBuffer.from_array(np.zeros(5 * SR, dtype=np.float32), SR)


@pytest.fixture
def mixed_signal():
    """3 s stereo mix of a 50 Hz, a 440 Hz and a 5 kHz tone."""
    t = np.arange(3 * SR) / SR
    left = 0.4 * np.sin(2 * np.pi * 50 * t) + 0.2 * np.sin(2 * np.pi * 440 * t)
    right = 0.4 * np.sin(2 * np.pi * 50 * t) + 0.2 * np.sin(2 * np.pi * 5000 * t)
    return SampleBuffer.from_array(np.stack([left, right]), SR)
