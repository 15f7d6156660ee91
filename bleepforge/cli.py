"""Thin CLI entry point: builds a Manifest and calls the engine."""

import argparse
import logging
import sys
from pathlib import Path

from bleepforge.engine import FAILED, process
from bleepforge.errors import PipelineError
from bleepforge.manifest import BACKENDS, CensorConfig, Manifest, TranscribeConfig, load_manifest

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="bleepforge",
        description="BleepForge: bleep or mute profanity in videos.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    proc = sub.add_parser("process", help="Censor a video file")
    proc.add_argument("video", nargs="?", type=Path, help="Input video file")
    proc.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    proc.add_argument("--output-dir", "-o", type=Path, help="Directory for the censored video")
    proc.add_argument("--work-dir", type=Path, help="Directory for intermediate files")
    proc.add_argument("--silence", action="store_true", help="Mute swear words instead of bleeping")
    proc.add_argument("--tone-frequency", type=float, default=800.0, help="Bleep frequency in Hz")
    proc.add_argument("--backend", choices=BACKENDS, default="whisper", help="Transcription backend")
    proc.add_argument("--model", type=str, default="base", help="Whisper model size or API model")
    proc.add_argument("--language", type=str, default=None, help="Spoken language code")
    proc.add_argument("--transcript", type=Path, help="Token JSON for the json backend")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from bleepforge.web import create_app
        app = create_app()
        print(f"BleepForge API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video:
        backend = "json" if args.transcript else args.backend
        m = Manifest(
            input=args.video,
            output_dir=args.output_dir or args.video.parent,
            work_dir=args.work_dir,
            censor=CensorConfig(tone=not args.silence, frequency=args.tone_frequency),
            transcription=TranscribeConfig(
                backend=backend,
                model=args.model,
                language=args.language,
                transcript=args.transcript,
            ),
        )
    else:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(percent: int, message: str) -> None:
        if percent != FAILED:
            print(f"  [{percent:3d}%] {message}")

    try:
        result = process(m, on_progress=on_progress)
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Duration: {result.duration_input:.1f}s -> {result.duration_output:.1f}s")
    print(f"  Swear words censored: {result.censored_count}")
    for iv in result.intervals:
        print(f"    {iv.start:8.2f}s - {iv.end:8.2f}s  {iv.label}")
