from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import T0
from hackstead.log_utils import reset_warnings, warn_once
from hackstead.utils import (
    content_file,
    format_rfc3339,
    load_data,
    parse_rfc3339,
    read_timestamp_file,
    save_json,
    write_timestamp_file,
)


def test_format_rfc3339() -> None:
    assert format_rfc3339(T0 + timedelta(microseconds=123456)) == "2024-05-01T12:00:00.123Z"
    assert format_rfc3339(datetime(2024, 5, 1, 12, 0)) == "2024-05-01T12:00:00.000Z"
    eastern = datetime(2024, 5, 1, 8, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert format_rfc3339(eastern) == "2024-05-01T12:00:00.000Z"


@pytest.mark.parametrize(
    "text",
    ["2024-05-01T12:00:00Z", "2024-05-01T12:00:00.000Z", "2024-05-01T14:00:00+02:00", " 2024-05-01T12:00:00 \n"],
)
def test_parse_rfc3339(text: str) -> None:
    parsed = parse_rfc3339(text)
    assert parsed == T0
    assert parsed.tzinfo == UTC


@pytest.mark.parametrize("text", ["", "yesterday", "2024-13-01T00:00:00Z"])
def test_parse_rfc3339_rejects_garbage(text: str) -> None:
    with pytest.raises(ValueError):
        parse_rfc3339(text)


def test_timestamp_file(tmp_path: Path) -> None:
    path = tmp_path / "state" / "last_farming"
    assert read_timestamp_file(path) is None
    write_timestamp_file(path, T0)
    assert path.read_text() == "2024-05-01T12:00:00.000Z\n"
    assert read_timestamp_file(path) == T0

    path.write_text("soon")
    with pytest.raises(ValueError, match="couldn't parse"):
        read_timestamp_file(path)


def test_load_data_json_and_yaml(tmp_path: Path) -> None:
    save_json(tmp_path / "a.json", {"name": "Bractus"})
    assert json.loads((tmp_path / "a.json").read_text()) == {"name": "Bractus"}
    assert load_data(tmp_path / "a.json") == {"name": "Bractus"}

    (tmp_path / "b.yaml").write_text("- name: Bractus\n  base_yield_duration: 60\n")
    assert load_data(tmp_path / "b.yaml") == [{"name": "Bractus", "base_yield_duration": 60}]

    (tmp_path / "c.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_data(tmp_path / "c.yaml")

    with pytest.raises(FileNotFoundError):
        load_data(tmp_path / "missing.json")


def test_content_file_prefers_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HACKSTEAD_OVERLAY_DIR", raising=False)
    (tmp_path / "plant_archetypes.yaml").write_text("[]")
    assert content_file("plant_archetypes", tmp_path).suffix == ".yaml"
    (tmp_path / "plant_archetypes.json").write_text("[]")
    assert content_file("plant_archetypes", tmp_path).suffix == ".json"
    assert content_file("special_users", tmp_path) is None


def test_warn_once_rate_limits(caplog) -> None:
    logger = logging.getLogger("hackstead.test")
    with caplog.at_level(logging.WARNING):
        warn_once(logger, "write", "store down: %s", "timeout")
        warn_once(logger, "write", "store down: %s", "timeout")
        warn_once(logger, "fetch", "store down: %s", "refused")
    assert caplog.text.count("write: store down: timeout") == 1
    assert "fetch: store down: refused" in caplog.text

    reset_warnings()
    caplog.clear()
    with caplog.at_level(logging.WARNING):
        warn_once(logger, "write", "store down: %s", "timeout")
    assert "write: store down: timeout" in caplog.text
