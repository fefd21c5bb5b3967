"""Tests for spectral-flux beat detection."""

import numpy as np
import pytest

from pulsetrack.core.beats import (
    BeatDetector,
    BeatTimeline,
    find_peaks,
    merge_beats,
    spectral_flux,
)
from pulsetrack.core.buffer import to_mono
from pulsetrack.core.config import BeatConfig
from pulsetrack.core.progress import AnalysisCancelled, CancellationToken

TEST_SR = 44100


@pytest.fixture
def detector(cache):
    return BeatDetector(cache=cache)


class TestSpectralFlux:
    def test_positive_differences_only(self):
        current = np.array([1.0, 0.5, 2.0])
        previous = np.array([0.5, 1.0, 1.0])
        assert spectral_flux(current, previous) == pytest.approx(1.5)

    def test_batched_rows(self):
        cur = np.array([[1.0, 1.0], [0.0, 0.0]])
        prev = np.array([[0.0, 0.0], [1.0, 1.0]])
        np.testing.assert_allclose(spectral_flux(cur, prev), [2.0, 0.0])


class TestFindPeaks:
    def test_isolated_spike(self):
        signal = np.zeros(100)
        signal[50] = 1.0
        np.testing.assert_array_equal(find_peaks(signal, 0.15), [50])

    def test_spike_inside_margin_ignored(self):
        signal = np.zeros(100)
        signal[10] = 1.0
        signal[95] = 1.0
        assert len(find_peaks(signal, 0.15)) == 0

    def test_below_fixed_threshold(self):
        signal = np.zeros(100)
        signal[50] = 0.1
        assert len(find_peaks(signal, 0.15)) == 0

    def test_adaptive_threshold_suppresses_busy_region(self):
        # Constant 0.5 background: local mean 0.5, so a bump to 0.7
        # stays below 1.5 * mean.
        signal = np.full(100, 0.5)
        signal[50] = 0.7
        assert len(find_peaks(signal, 0.15)) == 0

    def test_plateau_is_not_a_peak(self):
        signal = np.zeros(100)
        signal[50:52] = 1.0
        assert len(find_peaks(signal, 0.15)) == 0

    def test_short_signal(self):
        assert len(find_peaks(np.ones(40), 0.1)) == 0


class TestMergeBeats:
    def test_deduplicates_within_window(self):
        merged = merge_beats([0.0, 0.5], [0.03, 0.52], [0.1], min_gap=0.05)
        np.testing.assert_allclose(merged, [0.0, 0.1, 0.5])

    def test_gap_must_exceed_window(self):
        merged = merge_beats([0.0, 0.05, 0.1001], min_gap=0.05)
        np.testing.assert_allclose(merged, [0.0, 0.1001])

    def test_empty(self):
        assert len(merge_beats([], [], [])) == 0


class TestBeatDetector:
    def test_band_bins_half_open(self, detector):
        bins = detector.band_bins(44100)
        bin_freq = 44100 / 1024
        assert bins["kick"] == (int(40 // bin_freq), int(np.ceil(120 / bin_freq)))
        assert bins["hihat"][1] == int(np.ceil(15000 / bin_freq))

    def test_hihat_clamped_at_low_rate(self, detector):
        assert detector.band_bins(16000)["hihat"][1] == 511

    def test_flux_length_covers_padded_tail(self, detector):
        y = np.zeros(TEST_SR, dtype=np.float32)
        flux = detector.compute_flux(y, TEST_SR)
        expected = 1 + int(np.ceil((TEST_SR - 1024) / 512))
        for name in ("kick", "snare", "hihat"):
            assert len(flux[name]) == expected

    def test_first_frame_has_zero_flux(self, detector):
        y = np.random.default_rng(0).standard_normal(TEST_SR).astype(np.float32)
        flux = detector.compute_flux(y, TEST_SR)
        assert flux["kick"][0] == 0.0
        assert flux["hihat"][0] == 0.0

    def test_flux_continuous_across_blocks(self, cache):
        y = np.random.default_rng(1).standard_normal(3 * TEST_SR).astype(np.float32)
        small = BeatDetector(BeatConfig(progress_every=7), cache).compute_flux(y, TEST_SR)
        large = BeatDetector(BeatConfig(progress_every=5000), cache).compute_flux(y, TEST_SR)
        for name in small:
            np.testing.assert_allclose(small[name], large[name])

    def test_detects_click_track(self, detector, click_track, click_onsets):
        beats = detector.detect(to_mono(click_track), TEST_SR)

        assert len(beats.kicks) == 4
        assert len(beats.all) == 4
        np.testing.assert_allclose(beats.kicks, click_onsets, atol=0.05)
        np.testing.assert_allclose(beats.all, click_onsets, atol=0.05)
        assert len(beats.hihats) == 0

    def test_simultaneous_kick_and_snare_kept_per_category(
        self, detector, make_click_track
    ):
        # Each hit layers an 86 Hz kick tone with a 300 Hz snare tone
        onsets = [512 * 86 + 256, 512 * 129 + 256]
        y = make_click_track(duration=3.0, onsets=onsets, snare_freq=300.0)
        beats = detector.detect(y, TEST_SR)

        assert len(beats.kicks) == len(beats.snares) == len(beats.all) == 2
        np.testing.assert_array_equal(beats.kicks, beats.snares)
        np.testing.assert_array_equal(beats.all, beats.kicks)
        np.testing.assert_allclose(beats.all, np.array(onsets) / TEST_SR, atol=0.05)

    def test_merged_timeline_invariants(self, detector):
        rng = np.random.default_rng(5)
        y = np.zeros(6 * TEST_SR, dtype=np.float32)
        for start in rng.integers(0, len(y) - 2048, size=40):
            y[start:start + 2048] += rng.standard_normal(2048).astype(np.float32)
        beats = detector.detect(y, TEST_SR)

        assert np.all(np.diff(beats.all) > 0.05)
        for series in (beats.kicks, beats.snares, beats.hihats):
            assert np.all(np.diff(series) > 0)

    def test_silence_has_no_beats(self, detector, silence):
        beats = detector.detect(to_mono(silence), TEST_SR)
        assert len(beats) == 0
        assert len(beats.kicks) == len(beats.snares) == len(beats.hihats) == 0

    def test_custom_thresholds(self, cache, click_track):
        config = BeatConfig(thresholds={"kick": 10.0, "snare": 10.0, "hihat": 10.0})
        beats = BeatDetector(config, cache).detect(to_mono(click_track), TEST_SR)
        assert len(beats) == 0

    def test_progress_and_cancel(self, detector, click_track):
        token = CancellationToken()
        seen = []

        def on_progress(value):
            seen.append(value)
            token.cancel()

        with pytest.raises(AnalysisCancelled):
            detector.detect(
                to_mono(click_track), TEST_SR, on_progress=on_progress, cancel=token
            )
        assert seen == [0.0]

    def test_empty_signal_rejected(self, detector):
        with pytest.raises(ValueError):
            detector.detect(np.zeros(0, dtype=np.float32), TEST_SR)


class TestBeatTimeline:
    def test_empty(self):
        timeline = BeatTimeline.empty()
        assert len(timeline) == 0
        assert timeline.all.dtype == np.float64

    def test_read_only(self):
        timeline = BeatTimeline(all=[1.0], kicks=[1.0], snares=[], hihats=[])
        with pytest.raises(ValueError):
            timeline.all[0] = 2.0
