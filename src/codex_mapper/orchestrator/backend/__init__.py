"""Job runner implementations."""

from codex_mapper.orchestrator.backend.base import JobBackend, JobRunResult
from codex_mapper.orchestrator.backend.cli_backend import (
    CodexExecBackend,
    JobRunError,
    LogFileError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessTimeoutError,
    build_codex_args,
    format_command_preview,
)

__all__ = [
    "CodexExecBackend",
    "JobBackend",
    "JobRunError",
    "JobRunResult",
    "LogFileError",
    "ProcessExitError",
    "ProcessSpawnError",
    "ProcessTimeoutError",
    "build_codex_args",
    "format_command_preview",
]
