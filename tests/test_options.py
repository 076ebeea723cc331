from __future__ import annotations

from pathlib import Path

import pytest

from hackstead.exceptions import ConfigError
from hackstead.farming.options import FarmingConfig


def test_defaults() -> None:
    config = FarmingConfig.from_options({})
    assert config == FarmingConfig()
    assert config.cycle_seconds == 15.0
    assert config.active_window_seconds == 300.0
    assert config.webhook_url is None


def test_text_values_are_coerced() -> None:
    config = FarmingConfig.from_options({"cycle_seconds": "30", "fetch_concurrency": "5", "data_dir": "~/content"})
    assert config.cycle_seconds == 30.0
    assert config.fetch_concurrency == 5
    assert config.data_dir == Path("~/content").expanduser()


def test_unknown_options_are_ignored() -> None:
    assert FarmingConfig.from_options({"sprinklers": True}) == FarmingConfig()


@pytest.mark.parametrize(
    "options",
    [
        {"cycle_seconds": 0},
        {"tick_seconds": -1},
        {"fetch_concurrency": "many"},
        {"notify_concurrency": True},
        {"webhook_url": "ftp://example.com/hook"},
        {"db_path": ""},
    ],
)
def test_invalid_options(options) -> None:
    with pytest.raises(ConfigError, match="invalid farming options"):
        FarmingConfig.from_options(options)


def test_environment_takes_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HACKSTEAD_DB", str(tmp_path / "env.db"))
    monkeypatch.setenv("HACKSTEAD_WEBHOOK_URL", "https://hooks.example.com/farm")
    monkeypatch.setenv("HACKSTEAD_DATA_DIR", str(tmp_path))

    config = FarmingConfig.from_env({"db_path": "options.db", "cycle_seconds": 60})

    assert config.db_path == str(tmp_path / "env.db")
    assert config.webhook_url == "https://hooks.example.com/farm"
    assert config.data_dir == tmp_path
    assert config.cycle_seconds == 60.0


def test_empty_environment_values_are_skipped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HACKSTEAD_DB", "")
    monkeypatch.delenv("HACKSTEAD_WEBHOOK_URL", raising=False)
    monkeypatch.delenv("HACKSTEAD_DATA_DIR", raising=False)
    assert FarmingConfig.from_env({"db_path": "options.db"}).db_path == "options.db"


def test_overrides_skip_none() -> None:
    config = FarmingConfig().with_overrides(cycle_seconds=5.0, db_path=None)
    assert config.cycle_seconds == 5.0
    assert config.db_path == "hackstead.db"


def test_as_dict_round_trips() -> None:
    config = FarmingConfig(cycle_seconds=20, data_dir=Path("/srv/content"), webhook_url="http://localhost:9000/x")
    assert FarmingConfig.from_options(config.as_dict()) == config
