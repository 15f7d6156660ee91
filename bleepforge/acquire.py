"""Source acquisition: turns a caller-supplied location into a local video file."""

from pathlib import Path

from bleepforge.errors import AcquisitionError


def acquire_local(path: str | Path) -> Path:
    """Return *path* if it names a readable, non-empty file."""
    path = Path(path)
    if not path.exists():
        raise AcquisitionError(f"Input file not found: {path}")
    if not path.is_file():
        raise AcquisitionError(f"Input is not a file: {path}")
    if path.stat().st_size == 0:
        raise AcquisitionError(f"Input file is empty: {path}")
    return path
