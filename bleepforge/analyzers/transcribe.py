"""Speech-to-text analyzers producing word-timestamped tokens."""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import openai

from bleepforge import ffutil
from bleepforge.errors import PipelineError, TranscriptionError
from bleepforge.fallback import FallbackExhausted, Strategy, StrategyFailure, first_success
from bleepforge.manifest import TranscribeConfig
from bleepforge.models import Token

logger = logging.getLogger(__name__)

# Tried in order until the re-encoded audio fits under the upload limit.
COMPRESSION_STRATEGIES = [
    Strategy("16khz_mono", {"sample_rate": 16000, "channels": 1}),
    Strategy("8khz_mono", {"sample_rate": 8000, "channels": 1}),
]


class Transcriber(Protocol):
    def transcribe(self, audio_path: Path) -> list[Token]: ...


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read *name* from an API object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _token(text: str, start: Any, end: Any) -> Token:
    return Token(text=text.strip(), start=float(start), end=float(end))


def tokens_from_result(result: Any) -> list[Token]:
    """Convert a Whisper-style result (segments with optional words) to tokens.

    Word timestamps are used where present; a segment without words becomes a
    single segment-level token.
    """
    words = _field(result, "words")
    if words:
        return [_token(_field(w, "word", ""), _field(w, "start"), _field(w, "end")) for w in words]

    tokens: list[Token] = []
    for seg in _field(result, "segments") or []:
        seg_words = _field(seg, "words")
        if seg_words:
            tokens.extend(
                _token(_field(w, "word", ""), _field(w, "start"), _field(w, "end")) for w in seg_words
            )
        else:
            tokens.append(_token(_field(seg, "text", ""), _field(seg, "start"), _field(seg, "end")))
    return tokens


def spread_words(text: str, duration: float) -> list[Token]:
    """Evenly distribute the words of *text* over *duration* seconds."""
    words = text.split()
    if not words or duration <= 0:
        return []
    step = duration / len(words)
    return [Token(text=w, start=i * step, end=(i + 1) * step) for i, w in enumerate(words)]


class WhisperTranscriber:
    """Local transcription with the openai-whisper package."""

    def __init__(self, model: str = "base", language: str | None = None):
        self.model = model
        self.language = language
        self._loaded = None

    def transcribe(self, audio_path: Path) -> list[Token]:
        import whisper

        try:
            if self._loaded is None:
                self._loaded = whisper.load_model(self.model)
            result = self._loaded.transcribe(
                str(audio_path),
                language=self.language,
                word_timestamps=True,
            )
        except (RuntimeError, OSError, ValueError) as e:
            raise TranscriptionError(f"Whisper transcription failed: {e}") from e

        tokens = tokens_from_result(result)
        logger.info("Whisper produced %d tokens", len(tokens))
        return tokens


class OpenAITranscriber:
    """Hosted transcription through the OpenAI audio API.

    The API rejects uploads above ``max_upload_mb``; larger audio is
    re-encoded through ``COMPRESSION_STRATEGIES`` first.
    """

    def __init__(
        self,
        model: str = "whisper-1",
        language: str | None = None,
        max_upload_mb: float = 25.0,
        client: Any = None,
    ):
        if client is None:
            try:
                client = openai.OpenAI()
            except openai.OpenAIError as e:
                raise TranscriptionError(f"OpenAI client not configured (set OPENAI_API_KEY): {e}") from e
        self.client = client
        self.model = model
        self.language = language
        self.max_upload_bytes = int(max_upload_mb * 1024 * 1024)

    def _fit_upload(self, audio_path: Path, scratch: list[Path]) -> Path:
        size = audio_path.stat().st_size
        if size <= self.max_upload_bytes:
            return audio_path

        logger.info(
            "Audio is %.2f MB, compressing for upload (limit %.0f MB)",
            size / (1024 * 1024), self.max_upload_bytes / (1024 * 1024),
        )

        def attempt(strategy: Strategy) -> Path:
            out = audio_path.with_name(f"{audio_path.stem}_{strategy.name}.wav")
            scratch.append(out)
            try:
                ffutil.compress_audio(audio_path, out, **strategy.params)
            except PipelineError as e:
                raise StrategyFailure("encode-failed", str(e)) from e
            out_size = out.stat().st_size
            if out_size > self.max_upload_bytes:
                raise StrategyFailure("too-large", f"{out_size / (1024 * 1024):.2f} MB")
            logger.info("Compressed with %s to %.2f MB", strategy.name, out_size / (1024 * 1024))
            return out

        try:
            _, path = first_success(COMPRESSION_STRATEGIES, attempt)
        except FallbackExhausted as e:
            raise TranscriptionError(
                f"Audio is too large even after compression ({e}). "
                "Please use a shorter video or split it into parts."
            ) from e
        return path

    def transcribe(self, audio_path: Path) -> list[Token]:
        scratch: list[Path] = []
        try:
            upload = self._fit_upload(audio_path, scratch)
            kwargs: dict[str, Any] = {
                "model": self.model,
                "response_format": "verbose_json",
                "timestamp_granularities": ["word"],
            }
            if self.language:
                kwargs["language"] = self.language
            with upload.open("rb") as f:
                response = self.client.audio.transcriptions.create(file=f, **kwargs)
        except openai.OpenAIError as e:
            raise TranscriptionError(f"OpenAI transcription failed: {e}") from e
        finally:
            for path in scratch:
                path.unlink(missing_ok=True)

        tokens = tokens_from_result(response)
        if not tokens:
            text = _field(response, "text", "") or ""
            if text.strip():
                logger.warning("No word or segment timestamps returned; spreading words evenly")
                tokens = spread_words(text, ffutil.probe(audio_path).duration)
        logger.info("OpenAI produced %d tokens", len(tokens))
        return tokens


class JsonTranscriber:
    """Reads a pre-computed transcript.

    Accepts either a list of ``{"text"|"word", "start", "end"}`` objects or a
    Whisper-style result with ``words``/``segments``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def transcribe(self, audio_path: Path) -> list[Token]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise TranscriptionError(f"Cannot read transcript {self.path}: {e}") from e

        try:
            if isinstance(data, list):
                return [
                    _token(item.get("text", item.get("word", "")), item["start"], item["end"])
                    for item in data
                ]
            return tokens_from_result(data)
        except (KeyError, TypeError, ValueError) as e:
            raise TranscriptionError(f"Malformed transcript {self.path}: {e}") from e


def make_transcriber(config: TranscribeConfig) -> Transcriber:
    """Build the transcriber selected by ``config.backend``."""
    if config.backend == "json":
        if config.transcript is None:
            raise TranscriptionError("The json backend requires a transcript path")
        return JsonTranscriber(config.transcript)
    if config.backend == "openai":
        model = config.model if config.model.startswith("whisper-") else "whisper-1"
        return OpenAITranscriber(model=model, language=config.language, max_upload_mb=config.max_upload_mb)
    if config.backend == "whisper":
        return WhisperTranscriber(model=config.model, language=config.language)
    raise TranscriptionError(f"Unknown transcription backend {config.backend!r}")
