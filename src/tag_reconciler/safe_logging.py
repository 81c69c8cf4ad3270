"""PII-safe logging utilities for tag-reconciler.

Track paths and provider credentials pass through most log lines. This module
keeps them out of the logs:
- Track paths are shortened to parent/filename or hashed
- API keys and tokens are redacted in logged request parameters
- Email addresses are stripped from log messages
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path, PureWindowsPath
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Request parameters whose values never appear in logs
REDACT_FIELDS = frozenset(
    {
        "token",
        "api_key",
        "apikey",
        "client",
        "key",
        "secret",
        "authorization",
    }
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Set by configure_*_logging so every safe_path() call honours the config
_hash_paths_default = False


def hash_path(file_path: Path | str, length: int = 12) -> str:
    """Deterministic, non-reversible short hash of a full track path."""
    return hashlib.sha256(str(file_path).encode()).hexdigest()[:length]


def relativize_path(file_path: Path | str, library_root: Path | str | None = None) -> str:
    """Path relative to the library root, or parent/filename without one.

    Windows-style paths are handled too, since tracks loaded from JSON may
    carry them on any platform.
    """
    text = str(file_path)
    path: Path | PureWindowsPath = PureWindowsPath(text) if "\\" in text else Path(text)

    if library_root:
        try:
            return str(path.relative_to(library_root))
        except ValueError:
            pass

    if path.parent.name:
        return f"{path.parent.name}/{path.name}"
    return path.name


def safe_path(
    file_path: Path | str,
    library_root: Path | str | None = None,
    use_hash: bool | None = None,
) -> str:
    """Safe representation of a track path for logging.

    Args:
        file_path: Path to represent
        library_root: Optional library root for relativization; defaults to
            TAG_RECONCILER_LIBRARY_ROOT
        use_hash: Hash instead of relativizing; defaults to the configured
            logging.hash_paths setting
    """
    if not file_path:
        return "<unsaved>"
    if use_hash is None:
        use_hash = _hash_paths_default
    if use_hash:
        return f"file:{hash_path(file_path)}"
    return relativize_path(file_path, library_root or _get_library_root())


def redact_value(value: str, visible_chars: int = 4) -> str:
    """Redact a sensitive value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "***"
    return f"{value[:visible_chars]}***"


def redact_dict(
    data: Mapping[str, Any],
    redact_fields: frozenset[str] | None = None,
) -> dict[str, Any]:
    """Copy of a (nested) mapping with credential-like values redacted.

    Keys match case-insensitively, either exactly or as a substring.
    """
    if redact_fields is None:
        redact_fields = REDACT_FIELDS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        should_redact = key_lower in redact_fields or any(
            field in key_lower for field in redact_fields
        )

        if should_redact and isinstance(value, str):
            result[key] = redact_value(value)
        elif isinstance(value, Mapping):
            result[key] = redact_dict(value, redact_fields)
        elif isinstance(value, list):
            result[key] = [
                redact_dict(item, redact_fields) if isinstance(item, Mapping) else item
                for item in value
            ]
        else:
            result[key] = value

    return result


def sanitize_message(message: str) -> str:
    """Strip email addresses from a log message."""
    return EMAIL_PATTERN.sub("[EMAIL]", message)


@lru_cache(maxsize=1)
def _get_library_root() -> Path | None:
    root = os.environ.get("TAG_RECONCILER_LIBRARY_ROOT")
    return Path(root) if root else None


class SafeLogFormatter(logging.Formatter):
    """Formatter that sanitizes messages and shortens path arguments."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        sanitize_messages: bool = True,
        hash_paths: bool = False,
    ):
        super().__init__(fmt, datefmt)
        self.sanitize_messages = sanitize_messages
        self.hash_paths = hash_paths

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers see the original record
        record = logging.makeLogRecord(record.__dict__)

        if self.sanitize_messages:
            record.msg = sanitize_message(str(record.msg))

        if record.args:
            record.args = self._sanitize_args(record.args)

        return super().format(record)

    def _sanitize_args(
        self, args: tuple[Any, ...] | Mapping[str, Any]
    ) -> tuple[Any, ...] | dict[str, Any]:
        if isinstance(args, Mapping):
            return {k: self._sanitize_value(v) for k, v in args.items()}
        return tuple(self._sanitize_value(arg) for arg in args)

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, Path):
            return safe_path(value, use_hash=self.hash_paths)
        if isinstance(value, Mapping):
            return redact_dict(value)
        return value


def _install_handler(handler: logging.Handler, level: int, hash_paths: bool) -> None:
    global _hash_paths_default
    _hash_paths_default = hash_paths

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_tag_reconciler", False):
            root_logger.removeHandler(existing)

    handler._tag_reconciler = True  # type: ignore[attr-defined]
    root_logger.setLevel(level)
    root_logger.addHandler(handler)


def configure_safe_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    hash_paths: bool = False,
) -> None:
    """Configure plain stream logging with PII-safe formatting."""
    handler = logging.StreamHandler()
    handler.setFormatter(
        SafeLogFormatter(
            fmt=format_string or DEFAULT_FORMAT,
            sanitize_messages=True,
            hash_paths=hash_paths,
        )
    )
    _install_handler(handler, level, hash_paths)


def configure_rich_logging(
    level: int = logging.WARNING,
    hash_paths: bool = False,
    show_time: bool = True,
    show_path: bool = False,
    console: Console | None = None,
) -> Console:
    """Route logging through a RichHandler on stderr.

    Returns the stdout Console the CLI should print results to; log output
    goes to a separate stderr console so JSON output stays clean.
    """
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(SafeLogFormatter(fmt="%(message)s", hash_paths=hash_paths))
    _install_handler(handler, level, hash_paths)
    return console or Console()


## Tests


def test_hash_path():
    path = Path("/home/user/music/song.mp3")
    assert len(hash_path(path)) == 12
    assert hash_path(path) == hash_path(str(path))
    assert hash_path(path) != hash_path("/home/user/music/other.mp3")


def test_relativize_path():
    path = Path("/home/user/music/artist/album/song.mp3")
    assert relativize_path(path, "/home/user/music") == "artist/album/song.mp3"
    assert relativize_path(path) == "album/song.mp3"
    assert relativize_path("C:\\Music\\Nirvana\\01.mp3") == "Nirvana/01.mp3"


def test_safe_path_hash_mode():
    safe = safe_path("/home/user/music/song.mp3", use_hash=True)
    assert safe.startswith("file:")
    assert "song.mp3" not in safe
    assert safe_path("") == "<unsaved>"


def test_redact_dict():
    redacted = redact_dict({"client": "abcdef123", "query": "nirvana", "params": {"token": "xyz12345"}})
    assert redacted["client"] == "abcd***"
    assert redacted["query"] == "nirvana"
    assert redacted["params"]["token"] == "xyz1***"


def test_sanitize_message():
    assert sanitize_message("contact user@example.com") == "contact [EMAIL]"
