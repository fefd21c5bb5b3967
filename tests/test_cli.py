"""Tests for the command-line entry point."""

import json

import pytest
from scipy.io import wavfile

from pulsetrack.cli import build_parser, main

TEST_SR = 44100


@pytest.fixture
def click_wav(tmp_path, make_click_track):
    path = tmp_path / "clicks.wav"
    wavfile.write(path, TEST_SR, make_click_track(duration=5.0))
    return path


def test_writes_default_manifest(click_wav, capsys):
    assert main([str(click_wav)]) == 0

    output = click_wav.with_name("clicks_analysis.json")
    assert output.exists()
    with open(output) as f:
        manifest = json.load(f)
    assert manifest["name"] == "clicks"
    assert manifest["duration"] == pytest.approx(5.0)
    assert len(manifest["beats"]["kicks"]) == 4
    assert "waveform" not in manifest

    assert "Detected BPM" in capsys.readouterr().out


def test_waveform_and_archive(click_wav, tmp_path):
    output = tmp_path / "out.json"
    assert main([str(click_wav), "-o", str(output), "--waveform", "64", "--npz"]) == 0

    with open(output) as f:
        assert len(json.load(f)["waveform"]) == 128
    assert (tmp_path / "out.npz").exists()


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.wav")]) == 1
    assert "not found" in capsys.readouterr().err


def test_parser_defaults():
    args = build_parser().parse_args(["song.mp3"])
    assert args.output is None
    assert args.sr is None
    assert args.waveform == 0
    assert not args.npz
