"""
Command-line entry point.

Decodes an audio file, analyzes it and writes the feature manifest.
"""

import argparse
import logging
import sys
from pathlib import Path

from pulsetrack.core.pipeline import AudioPipeline, generate_waveform
from pulsetrack.core.buffer import load_audio
from pulsetrack.io.exporter import ManifestExporter

logger = logging.getLogger(__name__)


def report_progress(fraction: float) -> None:
    """Progress callback: redraw a bar on a TTY, else print percentages."""
    bar_width = 30
    pct = max(0, min(100, int(fraction * 100)))
    filled = int(bar_width * (pct / 100.0))
    bar = "[" + "#" * filled + "-" * (bar_width - filled) + "]"

    if sys.stdout.isatty():
        sys.stdout.write(f"\r{bar} {pct:3d}%")
        sys.stdout.flush()
        if pct >= 100:
            sys.stdout.write("\n")
    else:
        print(f"{pct:3d}%", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Analyze an audio file into a beat/band feature manifest"
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output JSON file (default: <audio>_analysis.json)",
    )

    parser.add_argument(
        "--sr",
        type=int,
        default=None,
        help="Resample to this rate before analysis (default: keep file rate)",
    )

    parser.add_argument(
        "-w", "--waveform",
        type=int,
        default=0,
        help="Embed a min/max waveform with this many points (default: off)",
    )

    parser.add_argument(
        "--npz",
        action="store_true",
        help="Also write a NumPy .npz archive next to the JSON",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )

    return parser


def main(argv=None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        return 1

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_analysis.json")

    buffer = load_audio(args.audio, sr=args.sr)
    result = AudioPipeline().analyze(
        buffer, on_progress=report_progress, name=args.audio.stem
    )

    waveform = generate_waveform(buffer, args.waveform) if args.waveform > 0 else None

    exporter = ManifestExporter()
    exporter.export_json(result, output, waveform=waveform)
    if args.npz:
        exporter.export_numpy(result, output.with_suffix(".npz"))

    print(
        f"Detected BPM: {result.bpm:.0f}, Duration: {result.duration:.2f}s, "
        f"Beats: {len(result.beats)} -> {output}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
