"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys

import pytest

from codex_mapper.orchestrator.catalog import JobDescriptor, OutputSpec

ECHO_AGENT_COMMAND = (
    f"{shlex.quote(sys.executable)} -m codex_mapper.orchestrator.backend.echo_agent"
)

_MAPPER_ENV = (
    "CODEX_MAPPER_CODEX_BIN",
    "CODEX_MAPPER_CONCURRENCY",
    "CODEX_MAPPER_LOG_DIR",
    "CODEX_MAPPER_UI",
    "CODEX_MAPPER_TEMPLATES_DIR",
    "CODEX_MAPPER_NETWORK",
    "CODEX_MAPPER_ECHO_DELAY",
    "CODEX_MAPPER_ECHO_FAIL_ON",
    "CODEX_MAPPER_ECHO_EXIT_CODE",
)


@pytest.fixture(autouse=True)
def _clean_mapper_env(monkeypatch):
    for name in _MAPPER_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def echo_agent(monkeypatch):
    """Point the runner at the local echo agent instead of codex."""
    monkeypatch.setenv("CODEX_MAPPER_CODEX_BIN", ECHO_AGENT_COMMAND)
    return ECHO_AGENT_COMMAND


@pytest.fixture()
def make_descriptors():
    """Build synthetic descriptors job-1..job-N."""

    def _make(count: int) -> list[JobDescriptor]:
        return [
            JobDescriptor(
                id=f"job-{index}",
                label=f"Job {index}",
                outputs=(
                    OutputSpec(name=f"JOB{index}.md", template="stack.md", focus="anything"),
                ),
            )
            for index in range(1, count + 1)
        ]

    return _make
