"""JSON manifest schema shared by the CLI, the web API and the engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class CensorConfig:
    """How detected spans are replaced in the audio."""

    tone: bool = True
    frequency: float = 800.0


@dataclass
class TranscribeConfig:
    """Which transcriber produces word timestamps."""

    backend: str = "whisper"
    model: str = "base"
    language: str | None = None
    max_upload_mb: float = 25.0
    transcript: Path | None = None


@dataclass
class Manifest:
    """Top-level job manifest."""

    input: Path
    output_dir: Path
    version: str = "1"
    work_dir: Path | None = None
    censor: CensorConfig = field(default_factory=CensorConfig)
    transcription: TranscribeConfig = field(default_factory=TranscribeConfig)


BACKENDS = ("whisper", "openai", "json")


def load_transcribe_config(data: dict) -> TranscribeConfig:
    cfg = TranscribeConfig(**data)
    if cfg.backend not in BACKENDS:
        raise ValueError(f"Unknown transcription backend {cfg.backend!r}; expected one of {BACKENDS}")
    if cfg.transcript is not None:
        cfg.transcript = Path(cfg.transcript)
    return cfg


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data or "output_dir" not in data:
        raise ValueError("Manifest must contain 'input' and 'output_dir' fields")

    censor = CensorConfig(**data["censor"]) if "censor" in data else CensorConfig()
    transcription = (
        load_transcribe_config(data["transcription"]) if "transcription" in data else TranscribeConfig()
    )

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output_dir=Path(data["output_dir"]),
        work_dir=Path(data["work_dir"]) if data.get("work_dir") else None,
        censor=censor,
        transcription=transcription,
    )
