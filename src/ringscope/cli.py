"""
CLI entry point for the spectrum ring renderer.

Usage:
    ringscope <audio_file> [options]
    python -m ringscope <audio_file> [options]
"""

import argparse
import logging
import shutil
import sys
import time
from pathlib import Path

from ringscope.config import DEFAULT_OUTPUT, RingConfig, load_config
from ringscope.core.windows import DEFAULT_WINDOW, WINDOW_FUNCTIONS
from ringscope.errors import RingscopeError
from ringscope.pipeline import DECODERS, SpectrumPipeline


def _progress_bar(current: int, total: int | None, width: int = 35):
    """Print a progress bar to stdout."""
    if not total:
        if sys.stdout.isatty():
            sys.stdout.write(f"\rframe {current}")
            sys.stdout.flush()
        elif current % 100 == 0:
            print(f"frame {current}", flush=True)
        return

    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ringscope",
        description="Render a circular, history-layered spectrum analyzer video from audio",
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (anything ffmpeg can decode)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"Output video path (default: {DEFAULT_OUTPUT})",
    )

    # Resolution & framerate
    parser.add_argument("--width", type=int, default=None, help="Video width (default: 1280)")
    parser.add_argument("--height", type=int, default=None, help="Video height (default: 720)")
    parser.add_argument(
        "-f", "--fps", type=int, default=None,
        help="Frames per second; should divide 44100 (default: 30)",
    )

    # Analysis
    parser.add_argument(
        "-w", "--window", type=str, default=None,
        choices=sorted(WINDOW_FUNCTIONS),
        help=f"Window function (default: {DEFAULT_WINDOW})",
    )
    parser.add_argument(
        "--decoder", type=str, default="ffmpeg",
        choices=DECODERS,
        help="Decode with an ffmpeg process or in-process with librosa (default: ffmpeg)",
    )

    # Config file (individual flags override it)
    parser.add_argument(
        "--config", type=Path, default=None,
        help="JSON config file (layer styles, colours, codecs)",
    )

    # Limits
    parser.add_argument(
        "--max-duration", type=float, default=None,
        help="Limit output to N seconds",
    )

    parser.add_argument(
        "--ffmpeg", type=str, default=None,
        help="Path to the ffmpeg binary (default: found on PATH)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    ffmpeg = args.ffmpeg or shutil.which("ffmpeg")
    if ffmpeg is None:
        print("Error: Can't find ffmpeg in PATH", file=sys.stderr)
        sys.exit(1)

    overrides = {
        "width": args.width,
        "height": args.height,
        "fps": args.fps,
        "window": args.window,
        "ffmpeg_path": ffmpeg,
    }

    try:
        if args.config:
            if not args.config.exists():
                print(f"Error: Config file not found: {args.config}", file=sys.stderr)
                sys.exit(1)
            config = load_config(args.config, **overrides)
        else:
            config = RingConfig.from_dict(
                {k: v for k, v in overrides.items() if v is not None}
            )

        pipeline = SpectrumPipeline(config)

        print(f"Rendering {args.audio}")
        print(f"  {config.width}x{config.height} @ {config.fps}fps, {config.layer_count} layers")
        print(f"  Window: {config.window}, {config.samples_per_frame} samples per frame")

        t0 = time.time()
        result = pipeline.render(
            args.audio,
            args.output,
            decoder=args.decoder,
            max_duration=args.max_duration,
            progress_callback=_progress_bar,
        )
    except RingscopeError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    elapsed = time.time() - t0
    output = Path(result["output_path"])
    file_size_mb = output.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(
        f"  {result['frames']} frames ({result['duration']:.1f}s) in {elapsed:.1f}s "
        f"({result['frames'] / max(elapsed, 0.01):.1f} fps)"
    )
    print(f"  Output: {output}")


if __name__ == "__main__":
    main()
