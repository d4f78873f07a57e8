"""
Error types and error logging for passagestore.

Three kinds of failure reach callers:
- StorageError: the backing location or SQLite database cannot be used
- EncodingError: an embedding payload cannot be decoded, or an embedder
  broke its one-embedding-per-document contract
- EmbedderError: the injected embedder raised; the original exception
  is chained, never retried
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class StoreError(Exception):
    """Base class for all passagestore errors."""


class StorageError(StoreError):
    """Backing-location I/O, schema or initialization failure."""


class EncodingError(StoreError, ValueError):
    """An embedding could not be encoded/decoded, or an embedder returned bad output."""


class EmbedderError(StoreError):
    """Raised when the injected embedder fails. The original error is ``cause``."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


def _error_log_path(log_dir: Optional[Path] = None) -> Path:
    """Resolve error log path, preferring the store directory."""
    if log_dir is not None:
        return Path(log_dir) / "passagestore-errors.log"
    return Path.home() / ".passagestore" / "passagestore-errors.log"


def log_exception(
    exc: BaseException,
    context: str = "",
    log_dir: Optional[Path] = None,
) -> Path:
    """
    Log exception with full traceback to file.

    Used for failures nobody is waiting on (background saves).

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., operation name)
        log_dir: Directory for the log file (defaults to ~/.passagestore)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(log_dir)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Error log unavailable; the original error still propagates
    return log_path
