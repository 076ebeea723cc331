"""Utility helpers for reading archetype content and timestamps."""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from os import PathLike
from pathlib import Path
from typing import IO, Any, Union

import yaml

__all__ = [
    "save_json",
    "load_data",
    "content_file",
    "get_data_dir",
    "overlay_dir",
    "format_rfc3339",
    "parse_rfc3339",
    "read_timestamp_file",
    "write_timestamp_file",
]


PathType = Union[str, PathLike]

# Shipped content lives in ``hackstead/data``. ``HACKSTEAD_DATA_DIR`` points the
# loader at a different tree and ``HACKSTEAD_OVERLAY_DIR`` holds individual
# files that take precedence over the base directory.
DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_ENV = "HACKSTEAD_DATA_DIR"
OVERLAY_ENV = "HACKSTEAD_OVERLAY_DIR"

_CONTENT_SUFFIXES = (".json", ".yaml", ".yml")


def _open_text(path: Path, mode: str = "r") -> IO[str]:
    return open(path, mode, encoding="utf-8")


def load_data(path: PathType) -> Any:
    """Return the parsed contents of ``path`` supporting JSON or YAML."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    try:
        with _open_text(p) as f:
            if p.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(f)
            return json.load(f)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {p}: {exc}") from exc


def save_json(path: PathType, data: Any) -> bool:
    """Write ``data`` to ``path`` and return ``True`` on success."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    return True


def get_data_dir() -> Path:
    """Return the content directory honoring the ``HACKSTEAD_DATA_DIR`` env."""

    env = os.getenv(DATA_ENV)
    return Path(env).expanduser() if env else DEFAULT_DATA_DIR


def overlay_dir() -> Path | None:
    """Return the overlay directory defined via ``HACKSTEAD_OVERLAY_DIR``."""

    env = os.getenv(OVERLAY_ENV)
    return Path(env).expanduser() if env else None


def content_file(stem: str, base: PathType | None = None) -> Path | None:
    """Return the file holding content ``stem`` (``plant_archetypes`` etc).

    The overlay directory is searched first, then ``base`` (or the data
    directory). JSON is preferred over YAML when both exist.
    """

    search: list[Path] = []
    overlay = overlay_dir()
    if overlay:
        search.append(overlay)
    search.append(Path(base).expanduser() if base else get_data_dir())
    for directory in search:
        for suffix in _CONTENT_SUFFIXES:
            path = directory / f"{stem}{suffix}"
            if path.exists():
                return path
    return None


def format_rfc3339(ts: datetime) -> str:
    """Return ``ts`` as RFC 3339 text in UTC with millisecond precision."""

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    ts = ts.astimezone(UTC)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_rfc3339(text: str) -> datetime:
    """Parse RFC 3339 text into an aware UTC :class:`datetime`.

    :class:`ValueError` is raised for anything that is not a timestamp.
    """

    raw = text.strip()
    if not raw:
        raise ValueError("empty timestamp")
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def read_timestamp_file(path: PathType) -> datetime | None:
    """Return the timestamp stored in ``path`` or ``None`` if it is missing."""

    p = Path(path)
    if not p.exists():
        return None
    with _open_text(p) as f:
        raw = f.read()
    try:
        return parse_rfc3339(raw)
    except ValueError as exc:
        raise ValueError(f"couldn't parse {raw.strip()!r} from {p}: {exc}") from exc


def write_timestamp_file(path: PathType, ts: datetime) -> None:
    """Write ``ts`` to ``path`` as a single RFC 3339 line."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with _open_text(p, "w") as f:
        f.write(format_rfc3339(ts) + "\n")
