"""Runtime configuration for codebase mapping runs."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

DEFAULT_CONCURRENCY = 4
DEFAULT_CODEX_BIN = "codex"
DEFAULT_PLANNING_DIR = Path(".planning") / "codebase"
DEFAULT_LOG_DIR = Path(".planning") / "logs" / "codebase"


class InvalidConfigurationError(ValueError):
    """Run configuration rejected before any job is scheduled."""


class UiMode(str, Enum):
    """Console presentation modes."""

    INLINE = "inline"
    RICH_STATUS = "rich-status"


@dataclass(slots=True)
class Settings:
    """Environment-driven defaults; CLI flags take precedence."""

    codex_bin: str = DEFAULT_CODEX_BIN
    default_concurrency: int = DEFAULT_CONCURRENCY
    log_dir: Path = DEFAULT_LOG_DIR
    ui_mode: UiMode = UiMode.INLINE
    templates_dir: Path | None = None
    network_access: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local use."""

        templates_dir = os.getenv("CODEX_MAPPER_TEMPLATES_DIR", "").strip()
        return cls(
            codex_bin=os.getenv("CODEX_MAPPER_CODEX_BIN", DEFAULT_CODEX_BIN),
            default_concurrency=parse_concurrency(
                os.getenv("CODEX_MAPPER_CONCURRENCY", str(DEFAULT_CONCURRENCY)),
            ),
            log_dir=Path(os.getenv("CODEX_MAPPER_LOG_DIR", str(DEFAULT_LOG_DIR))),
            ui_mode=parse_ui_mode(os.getenv("CODEX_MAPPER_UI", UiMode.INLINE.value)),
            templates_dir=Path(templates_dir) if templates_dir else None,
            network_access=_env_bool("CODEX_MAPPER_NETWORK", default=False),
        )


@dataclass(frozen=True, slots=True)
class RunConfiguration:
    """Resolved settings for one invocation; never mutated mid-run."""

    concurrency: int
    ui_mode: UiMode
    log_dir: Path
    planning_dir: Path
    codex_command: tuple[str, ...]
    templates_dir: Path
    network_access: bool = False
    passthrough_args: tuple[str, ...] = field(default_factory=tuple)
    timeout_seconds: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int):
            raise InvalidConfigurationError(
                f"Concurrency must be a positive integer, got {self.concurrency!r}.",
            )
        if self.concurrency < 1:
            raise InvalidConfigurationError(
                f"Concurrency must be a positive integer, got {self.concurrency}.",
            )
        if not self.codex_command:
            raise InvalidConfigurationError("Codex executable command is empty.")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"Timeout must be a positive number of seconds, got {self.timeout_seconds}.",
            )


def parse_concurrency(value: str | int) -> int:
    """Validate a user-supplied concurrency value."""

    if isinstance(value, bool):
        raise InvalidConfigurationError(f"Concurrency must be a positive integer, got {value!r}.")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = int(text)
        except ValueError as error:
            raise InvalidConfigurationError(
                f"Concurrency must be a positive integer, got {value!r}.",
            ) from error
    if parsed < 1:
        raise InvalidConfigurationError(f"Concurrency must be a positive integer, got {value!r}.")
    return parsed


def parse_ui_mode(value: str) -> UiMode:
    normalized = value.strip().lower()
    try:
        return UiMode(normalized)
    except ValueError as error:
        allowed = ", ".join(mode.value for mode in UiMode)
        raise InvalidConfigurationError(
            f"Unknown UI mode {value!r}. Expected one of: {allowed}.",
        ) from error


def split_command(value: str) -> tuple[str, ...]:
    """Split a configured executable into argv head tokens."""

    parts = tuple(shlex.split(value.strip()))
    if not parts:
        raise InvalidConfigurationError("Codex executable command is empty.")
    return parts


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise InvalidConfigurationError(f"Invalid boolean value for {name}: {value!r}")
