"""Utilities for empath."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from pathlib import Path

from .constants import TIMESTAMP_FORMAT
from .errors import PathResolutionError

_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Encode an instant as fixed-width UTC text so string order matches time order."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z`` and any number of fractional digits; digits past
    microseconds are dropped. Naive timestamps are taken as UTC.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda match: "." + (match.group(1) + "000000")[:6], text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def coerce_timestamp(value: datetime | str | None) -> str:
    if value is None:
        return format_timestamp(utc_now())
    if isinstance(value, str):
        return format_timestamp(parse_timestamp(value))
    return format_timestamp(value)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def normalize_path(path: str | Path) -> Path:
    return Path(path).expanduser().resolve()


def canonicalize_path(path: str | Path) -> Path:
    try:
        resolved = normalize_path(path)
        # sqlite3 binds text as UTF-8.
        str(resolved).encode("utf-8")
    except (OSError, RuntimeError, ValueError) as exc:
        raise PathResolutionError(f"Cannot resolve path {str(path)!r}: {exc}") from exc
    return resolved


def is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def path_exists(path: str | Path) -> bool:
    # Any stat error counts as missing.
    return os.path.exists(path)


def display_path(path: str | Path, cwd: Path, absolute: bool) -> str:
    if absolute:
        return str(path)
    try:
        return os.path.relpath(path, cwd)
    except ValueError:
        # Different drive on Windows.
        return str(path)
