"""
Spectral primitives: radix-2 FFT, Hann window and signal framing.

The FFT is an iterative Cooley-Tukey decimation-in-time transform
vectorized across a batch of frames, so a whole block of analysis
frames is transformed with one pass over the butterfly stages.
Twiddle factors, bit-reversal permutations and window coefficients
are memoized in a SpectralCache keyed by size.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Callable, Optional

import numpy as np
from scipy.signal import windows as scipy_windows

logger = logging.getLogger(__name__)


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return n > 0 and (n & (n - 1)) == 0


def _check_fft_size(n: int) -> None:
    if not is_power_of_two(n):
        raise ValueError(f"FFT size must be a non-zero power of two, got {n}")


class SpectralCache:
    """
    Write-once memo of size-dependent FFT and window tables.

    Values are pure functions of the size, so one instance can be shared
    between concurrent analysis runs. Inserts take a lock; lookups of an
    existing key do not.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._twiddles: dict[int, tuple[np.ndarray, np.ndarray]] = {}
        self._bit_reversal: dict[int, np.ndarray] = {}
        self._windows: dict[int, np.ndarray] = {}

    def _get_or_create(self, store: dict, key: int, factory: Callable):
        value = store.get(key)
        if value is None:
            with self._lock:
                value = store.get(key)
                if value is None:
                    value = factory(key)
                    store[key] = value
        return value

    def twiddles(self, n: int) -> tuple[np.ndarray, np.ndarray]:
        """Cosine and sine of ``-2*pi*k/n`` for k in [0, n/2)."""
        _check_fft_size(n)
        return self._get_or_create(self._twiddles, n, _make_twiddles)

    def bit_reversal(self, n: int) -> np.ndarray:
        """Bit-reversal permutation indices for a transform of size n."""
        _check_fft_size(n)
        return self._get_or_create(self._bit_reversal, n, _make_bit_reversal)

    def hann(self, size: int) -> np.ndarray:
        """Symmetric Hann window of the given length."""
        if size < 1:
            raise ValueError(f"Window size must be >= 1, got {size}")
        return self._get_or_create(self._windows, size, _make_hann)

    def sizes(self) -> dict[str, list[int]]:
        """Sizes currently held, for diagnostics."""
        return {
            "twiddles": sorted(self._twiddles),
            "windows": sorted(self._windows),
        }


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def _make_twiddles(n: int) -> tuple[np.ndarray, np.ndarray]:
    angle = -2.0 * np.pi * np.arange(n // 2) / n
    logger.debug("Computed twiddle factors for N=%d", n)
    return _readonly(np.cos(angle)), _readonly(np.sin(angle))


def _make_bit_reversal(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.intp)
    for _ in range(bits):
        rev = (rev << 1) | (idx & 1)
        idx = idx >> 1
    return _readonly(rev)


def _make_hann(size: int) -> np.ndarray:
    # 0.5 * (1 - cos(2*pi*i / (size - 1)))
    return _readonly(scipy_windows.hann(size, sym=True).astype(np.float64))


_default_cache: Optional[SpectralCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> SpectralCache:
    """Return the process-wide SpectralCache, creating it on first use."""
    global _default_cache
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = SpectralCache()
    return _default_cache


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------

def fft(
    real: np.ndarray,
    imag: Optional[np.ndarray] = None,
    cache: Optional[SpectralCache] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Radix-2 Cooley-Tukey FFT.

    Args:
        real: Real part, shape (N,) or (n_frames, N). Not modified.
        imag: Imaginary part with the same shape, zeros if None.
        cache: Table cache; the process-wide one if None.

    Returns:
        Tuple of (real, imag) arrays holding the transform.

    Raises:
        ValueError: If N is zero or not a power of two.
    """
    cache = cache or get_default_cache()
    re = np.asarray(real, dtype=np.float64)
    n = re.shape[-1]
    _check_fft_size(n)

    if imag is None:
        im = np.zeros_like(re)
    else:
        im = np.asarray(imag, dtype=np.float64)
        if im.shape != re.shape:
            raise ValueError(
                f"imag shape {im.shape} does not match real shape {re.shape}"
            )

    # Fancy indexing copies, so the caller's arrays stay untouched.
    perm = cache.bit_reversal(n)
    re = re[..., perm]
    im = im[..., perm]

    cos, sin = cache.twiddles(n)
    lead = re.shape[:-1]

    size = 2
    while size <= n:
        half = size // 2
        tw_idx = np.arange(half) * (n // size)
        c = cos[tw_idx]
        s = sin[tw_idx]

        re_b = re.reshape(lead + (n // size, size))
        im_b = im.reshape(lead + (n // size, size))

        odd_re = re_b[..., half:]
        odd_im = im_b[..., half:]
        t_re = c * odd_re - s * odd_im
        t_im = s * odd_re + c * odd_im

        re_b[..., half:] = re_b[..., :half] - t_re
        im_b[..., half:] = im_b[..., :half] - t_im
        re_b[..., :half] += t_re
        im_b[..., :half] += t_im

        size *= 2

    return re, im


def magnitude_spectrum(
    frames: np.ndarray,
    cache: Optional[SpectralCache] = None,
) -> np.ndarray:
    """
    Normalized magnitudes of the first N/2 bins of a real-input FFT.

    Args:
        frames: Real samples, shape (N,) or (n_frames, N).
        cache: Table cache; the process-wide one if None.

    Returns:
        ``sqrt(re^2 + im^2) / N`` with shape (N/2,) or (n_frames, N/2).
    """
    re, im = fft(frames, cache=cache)
    n = re.shape[-1]
    half = n // 2
    return np.hypot(re[..., :half], im[..., :half]) / n


def hann_window(size: int, cache: Optional[SpectralCache] = None) -> np.ndarray:
    """Cached, read-only Hann window coefficients."""
    cache = cache or get_default_cache()
    return cache.hann(size)


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

def count_overlapping_frames(n_samples: int, frame_size: int, hop_size: int) -> int:
    """
    Number of hop-spaced frames needed to cover a signal.

    The last frame may run past the end of the signal; it is padded
    with silence by frame_signal().
    """
    if n_samples <= 0:
        return 0
    return 1 + math.ceil(max(n_samples - frame_size, 0) / hop_size)


def frame_signal(
    y: np.ndarray,
    frame_size: int,
    hop_size: int,
    n_frames: int,
    first_frame: int = 0,
) -> np.ndarray:
    """
    Slice a signal into fixed-length frames.

    Args:
        y: 1-D signal.
        frame_size: Samples per frame.
        hop_size: Samples between consecutive frame starts.
        n_frames: Number of frames to return.
        first_frame: Index of the first frame to return.

    Returns:
        Array of shape (n_frames, frame_size); frame i starts at
        ``(first_frame + i) * hop_size`` and is zero-padded past the
        end of the signal.
    """
    if n_frames <= 0:
        return np.zeros((0, frame_size), dtype=np.float64)

    starts = (first_frame + np.arange(n_frames)) * hop_size
    needed = int(starts[-1]) + frame_size
    signal = np.asarray(y, dtype=np.float64)
    if needed > len(signal):
        signal = np.concatenate([signal, np.zeros(needed - len(signal))])

    return signal[starts[:, np.newaxis] + np.arange(frame_size)]
