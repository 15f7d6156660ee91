#!/usr/bin/env python3
"""Generate a synthetic clip and a matching transcript for end-to-end runs.

Produces a ~12-second 640x360 H.264/AAC video (a moving test pattern over a
steady 220 Hz hum) plus ``<name>.json``, a token list with two profane words
and one known phrase at fixed times. Run it through the pipeline with:

    bleepforge process synthetic.mp4 --transcript synthetic.json
"""

import json
import subprocess
import sys
from pathlib import Path

TOKENS = [
    {"text": "well", "start": 0.5, "end": 0.8},
    {"text": "that", "start": 0.8, "end": 1.1},
    {"text": "was", "start": 1.1, "end": 1.3},
    {"text": "shit", "start": 1.3, "end": 1.7},
    {"text": "honestly", "start": 3.0, "end": 3.6},
    {"text": "what", "start": 5.0, "end": 5.2},
    {"text": "the", "start": 5.2, "end": 5.3},
    {"text": "hell", "start": 5.3, "end": 5.7},
    {"text": "hand", "start": 7.0, "end": 7.4},
    {"text": "me", "start": 7.4, "end": 7.5},
    {"text": "the", "start": 7.5, "end": 7.6},
    {"text": "damn", "start": 7.6, "end": 8.0},
    {"text": "remote", "start": 8.0, "end": 8.5},
]


def generate_test_video(output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", "testsrc2=s=640x360:r=30:d=12",
        "-f", "lavfi", "-i", "sine=f=220:d=12",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True)

    transcript = output.with_suffix(".json")
    transcript.write_text(json.dumps(TOKENS, indent=2), encoding="utf-8")
    print(f"Generated: {output}")
    print(f"Transcript: {transcript}")
    return transcript


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/synthetic.mp4")
    generate_test_video(out)
