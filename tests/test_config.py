from __future__ import annotations

from pathlib import Path

import allure
import pytest

from codex_mapper.config import (
    DEFAULT_LOG_DIR,
    InvalidConfigurationError,
    RunConfiguration,
    Settings,
    UiMode,
    parse_concurrency,
    parse_ui_mode,
    split_command,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Run Settings"),
]


def _config(**overrides) -> RunConfiguration:
    values = {
        "concurrency": 2,
        "ui_mode": UiMode.INLINE,
        "log_dir": Path("logs"),
        "planning_dir": Path(".planning/codebase"),
        "codex_command": ("codex",),
        "templates_dir": Path("templates"),
    }
    values.update(overrides)
    return RunConfiguration(**values)


@pytest.mark.parametrize("value", ["0", "-1", "abc", "1.5", "", 0, -3, True])
def test_parse_concurrency_rejects_non_positive_or_non_numeric(value) -> None:
    with pytest.raises(InvalidConfigurationError, match="positive integer"):
        parse_concurrency(value)


@pytest.mark.parametrize(("value", "expected"), [("1", 1), (" 8 ", 8), (3, 3)])
def test_parse_concurrency_accepts_positive_integers(value, expected) -> None:
    assert parse_concurrency(value) == expected


def test_run_configuration_rejects_zero_concurrency() -> None:
    with pytest.raises(InvalidConfigurationError):
        _config(concurrency=0)


def test_run_configuration_rejects_non_positive_timeout() -> None:
    with pytest.raises(InvalidConfigurationError, match="Timeout"):
        _config(timeout_seconds=0)


def test_run_configuration_is_frozen() -> None:
    config = _config()

    with pytest.raises(AttributeError):
        config.concurrency = 5  # type: ignore[misc]


def test_parse_ui_mode() -> None:
    assert parse_ui_mode(" Rich-Status ") is UiMode.RICH_STATUS
    with pytest.raises(InvalidConfigurationError, match="Unknown UI mode"):
        parse_ui_mode("tui")


def test_split_command_supports_multi_word_executables() -> None:
    assert split_command("python -m agent") == ("python", "-m", "agent")
    with pytest.raises(InvalidConfigurationError):
        split_command("   ")


def test_settings_defaults_without_env() -> None:
    settings = Settings.from_env()

    assert settings.codex_bin == "codex"
    assert settings.default_concurrency == 4
    assert settings.log_dir == DEFAULT_LOG_DIR
    assert settings.ui_mode is UiMode.INLINE
    assert settings.templates_dir is None
    assert settings.network_access is False


def test_settings_read_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CODEX_MAPPER_CODEX_BIN", "/opt/codex/bin/codex")
    monkeypatch.setenv("CODEX_MAPPER_CONCURRENCY", "2")
    monkeypatch.setenv("CODEX_MAPPER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CODEX_MAPPER_UI", "rich-status")
    monkeypatch.setenv("CODEX_MAPPER_TEMPLATES_DIR", str(tmp_path))
    monkeypatch.setenv("CODEX_MAPPER_NETWORK", "yes")

    settings = Settings.from_env()

    assert settings.codex_bin == "/opt/codex/bin/codex"
    assert settings.default_concurrency == 2
    assert settings.log_dir == tmp_path / "logs"
    assert settings.ui_mode is UiMode.RICH_STATUS
    assert settings.templates_dir == tmp_path
    assert settings.network_access is True


def test_settings_reject_invalid_env_values(monkeypatch) -> None:
    monkeypatch.setenv("CODEX_MAPPER_CONCURRENCY", "0")
    with pytest.raises(InvalidConfigurationError):
        Settings.from_env()

    monkeypatch.setenv("CODEX_MAPPER_CONCURRENCY", "2")
    monkeypatch.setenv("CODEX_MAPPER_NETWORK", "maybe")
    with pytest.raises(InvalidConfigurationError, match="CODEX_MAPPER_NETWORK"):
        Settings.from_env()
