from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from codex_mapper.main import codex_mapper
from codex_mapper.orchestrator.controllers import MapperCliController

pytestmark = [
    allure.epic("Codebase Mapping"),
    allure.feature("map-codebase CLI"),
]

_ALL_OUTPUTS = (
    "STACK.md",
    "INTEGRATIONS.md",
    "ARCHITECTURE.md",
    "STRUCTURE.md",
    "CONVENTIONS.md",
    "TESTING.md",
    "CONCERNS.md",
)
_ALL_GROUPS = (
    "stack-integrations",
    "architecture-structure",
    "conventions-testing",
    "concerns",
)


@pytest.fixture()
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _planning(workdir: Path) -> Path:
    return workdir / ".planning" / "codebase"


def _logs(workdir: Path) -> Path:
    return workdir / ".planning" / "logs" / "codebase"


def _footer(log_path: Path) -> str:
    return log_path.read_text("utf-8").splitlines()[-1]


def test_map_codebase_runs_every_group(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--concurrency", "4"])

    assert result.exit_code == 0, result.output
    assert "Running 4 codex exec job(s) with concurrency 4." in result.output
    assert "Codebase mapping complete." in result.output
    for name in _ALL_OUTPUTS:
        assert (_planning(workdir) / name).is_file()
    for group_id in _ALL_GROUPS:
        assert f"[{group_id}] done in " in result.output
        assert f"[{group_id}] echo-agent: done" in result.output
        assert _footer(_logs(workdir) / f"{group_id}.log").startswith("=== exit code 0 at ")


def test_first_failure_fails_the_run_and_keeps_logs(
    workdir: Path,
    echo_agent: str,
    monkeypatch,
) -> None:
    monkeypatch.setenv("CODEX_MAPPER_ECHO_FAIL_ON", "ARCHITECTURE.md")

    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--concurrency", "2"])

    assert result.exit_code == 1
    assert "Codebase mapping complete." not in result.output
    assert "[architecture-structure] failed after " in result.output
    assert _footer(_logs(workdir) / "architecture-structure.log").startswith(
        "=== exit code 1 at ",
    )
    assert _footer(_logs(workdir) / "stack-integrations.log").startswith("=== exit code 0 at ")
    assert (_planning(workdir) / "STACK.md").is_file()
    assert not (_planning(workdir) / "ARCHITECTURE.md").exists()


def test_unknown_group_fails_before_anything_runs(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--update", "9"])

    assert result.exit_code == 2
    assert "Unknown group: 9" in result.output
    assert not (workdir / ".planning").exists()


@pytest.mark.parametrize("args", [["--concurrency", "0"], ["--concurrency=-1"]])
def test_invalid_concurrency_is_rejected_up_front(
    workdir: Path,
    echo_agent: str,
    args: list[str],
) -> None:
    result = CliRunner().invoke(codex_mapper, ["map-codebase", *args])

    assert result.exit_code == 2
    assert "--concurrency" in result.output
    assert not (workdir / ".planning").exists()


def test_invalid_concurrency_from_environment_is_a_usage_error(
    workdir: Path,
    echo_agent: str,
    monkeypatch,
) -> None:
    monkeypatch.setenv("CODEX_MAPPER_CONCURRENCY", "zero")

    result = CliRunner().invoke(codex_mapper, ["map-codebase"])

    assert result.exit_code == 2
    assert not (workdir / ".planning").exists()


def test_update_runs_only_selected_groups(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--update", "Stack, 4"])

    assert result.exit_code == 0, result.output
    assert "Running 2 codex exec job(s)" in result.output
    assert sorted(path.name for path in _logs(workdir).iterdir()) == [
        "concerns.log",
        "stack-integrations.log",
    ]
    assert not (_planning(workdir) / "ARCHITECTURE.md").exists()


def test_skip_existing_leaves_output_untouched(workdir: Path, echo_agent: str) -> None:
    _planning(workdir).mkdir(parents=True)
    (_planning(workdir) / "STACK.md").write_text("hand-written\n", "utf-8")

    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--skip-existing"])

    assert result.exit_code == 0
    assert ".planning/codebase already exists. Skipping." in result.output
    assert (_planning(workdir) / "STACK.md").read_text("utf-8") == "hand-written\n"
    assert not _logs(workdir).exists()


def test_existing_output_prompt_can_skip(workdir: Path, echo_agent: str) -> None:
    _planning(workdir).mkdir(parents=True)

    result = CliRunner().invoke(codex_mapper, ["map-codebase"], input="3\n")

    assert result.exit_code == 0
    assert "1) Refresh - delete and remap" in result.output
    assert "Skipping." in result.output
    assert not _logs(workdir).exists()


def test_existing_output_prompt_can_update_selected_groups(
    workdir: Path,
    echo_agent: str,
) -> None:
    _planning(workdir).mkdir(parents=True)
    (_planning(workdir) / "STACK.md").write_text("keep me\n", "utf-8")

    result = CliRunner().invoke(codex_mapper, ["map-codebase"], input="2\nconcerns\n")

    assert result.exit_code == 0, result.output
    assert "Running 1 codex exec job(s)" in result.output
    assert (_planning(workdir) / "STACK.md").read_text("utf-8") == "keep me\n"
    assert (_planning(workdir) / "CONCERNS.md").is_file()


def test_refresh_removes_previous_output(workdir: Path, echo_agent: str) -> None:
    _planning(workdir).mkdir(parents=True)
    (_planning(workdir) / "OBSOLETE.md").write_text("old\n", "utf-8")

    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--refresh"])

    assert result.exit_code == 0, result.output
    assert not (_planning(workdir) / "OBSOLETE.md").exists()
    assert sorted(path.name for path in _planning(workdir).iterdir()) == sorted(_ALL_OUTPUTS)


def test_passthrough_and_network_flags_reach_codex(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(
        codex_mapper,
        ["map-codebase", "--update", "concerns", "--network", "--", "--model", "gpt-test"],
    )

    assert result.exit_code == 0, result.output
    log_text = (_logs(workdir) / "concerns.log").read_text("utf-8")
    assert "sandbox_workspace_write.network_access=true" in log_text
    assert "--model gpt-test" in log_text
    assert '--model gpt-test "<prompt>"' in result.output


def test_custom_log_dir_is_relative_to_workdir(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(
        codex_mapper,
        ["map-codebase", "--update", "1", "--log-dir", "run-logs"],
    )

    assert result.exit_code == 0, result.output
    assert (workdir / "run-logs" / "stack-integrations.log").is_file()
    assert not _logs(workdir).exists()


def test_missing_template_reported_before_running(
    workdir: Path,
    echo_agent: str,
    tmp_path_factory,
) -> None:
    templates = tmp_path_factory.mktemp("templates")
    (templates / "concerns.md").write_text("# Concerns\n", "utf-8")

    result = CliRunner().invoke(
        codex_mapper,
        ["map-codebase", "--update", "stack", "--templates-dir", str(templates)],
    )

    assert result.exit_code == 1
    assert "Template not found" in result.output
    assert not (workdir / ".planning").exists()


def test_rich_status_board_prints_final_state(workdir: Path, echo_agent: str) -> None:
    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--ui", "rich-status"])

    assert result.exit_code == 0, result.output
    assert "done: 4" in result.output
    assert "[concerns] echo-agent" not in result.output
    assert "Codebase mapping complete." in result.output


def test_job_that_cannot_open_its_log_names_the_group(workdir: Path, echo_agent: str) -> None:
    (_logs(workdir) / "concerns.log").mkdir(parents=True)

    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--update", "4"])

    assert result.exit_code == 1
    assert not isinstance(result.exception, IsADirectoryError)
    assert "[concerns] failed after " in result.output
    assert "concerns could not open log" in result.output
    assert "Codebase mapping complete." not in result.output


def test_empty_update_still_asks_about_existing_output(workdir: Path, echo_agent: str) -> None:
    _planning(workdir).mkdir(parents=True)

    result = CliRunner().invoke(codex_mapper, ["map-codebase", "--update", ""], input="3\n")

    assert result.exit_code == 0
    assert "Choice [1/2/3]" in result.output
    assert "Skipping." in result.output
    assert "Running" not in result.output
    assert not _logs(workdir).exists()


def test_unexpected_error_becomes_a_clean_failure(workdir: Path, monkeypatch) -> None:
    def explode(_self, _command):
        raise KeyError("stack-integrations")

    monkeypatch.setattr(MapperCliController, "map_codebase", explode)

    result = CliRunner().invoke(codex_mapper, ["map-codebase"])

    assert result.exit_code == 1
    assert "Codebase mapping failed: KeyError" in result.output
