"""Controller for the map-codebase CLI command."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.console import Console

from codex_mapper.config import (
    DEFAULT_PLANNING_DIR,
    RunConfiguration,
    Settings,
    UiMode,
    parse_concurrency,
    split_command,
)
from codex_mapper.orchestrator.backend import (
    CodexExecBackend,
    JobBackend,
    format_command_preview,
)
from codex_mapper.orchestrator.catalog import JobDescriptor, parse_selector, resolve_groups
from codex_mapper.orchestrator.logsink import LogMultiplexer
from codex_mapper.orchestrator.prompts import BUNDLED_TEMPLATES_DIR, validate_templates
from codex_mapper.orchestrator.renderer import (
    InlineProgressReporter,
    LiveStatusRenderer,
    RunContext,
)
from codex_mapper.orchestrator.scheduler import BatchSummary, BoundedScheduler
from codex_mapper.orchestrator.tracker import StatusTracker

logger = logging.getLogger(__name__)

COMPLETE_MESSAGE = "Codebase mapping complete."

Emit = Callable[[str], None]
Ask = Callable[[str], str]


class ExistingOutputChoice(str, Enum):
    """Operator answers when mapping output already exists."""

    REFRESH = "1"
    UPDATE = "2"
    SKIP = "3"


@dataclass(slots=True)
class MapCodebaseCommand:
    """CLI input for one map-codebase invocation."""

    workdir: Path
    refresh: bool = False
    update: str | None = None
    skip_existing: bool = False
    concurrency: int | None = None
    ui_mode: UiMode | None = None
    log_dir: Path | None = None
    network_access: bool | None = None
    timeout_seconds: int | None = None
    templates_dir: Path | None = None
    codex_args: tuple[str, ...] = field(default_factory=tuple)


@dataclass(slots=True)
class MapCodebaseResult:
    """What happened, for CLI exit handling."""

    skipped: bool
    summary: BatchSummary | None = None
    groups: list[JobDescriptor] = field(default_factory=list)


class MapperCliController:
    """Resolves configuration, then runs the selected groups."""

    def __init__(
        self,
        *,
        emit: Emit,
        ask: Ask,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        rich_console: Console | None = None,
    ) -> None:
        self._emit = emit
        self._ask = ask
        self._settings_factory = settings_factory
        self._rich_console = rich_console

    def map_codebase(self, command: MapCodebaseCommand) -> MapCodebaseResult:
        settings = self._settings_factory()
        concurrency = parse_concurrency(
            command.concurrency if command.concurrency is not None
            else settings.default_concurrency,
        )
        workdir = command.workdir.resolve()
        planning_dir = workdir / DEFAULT_PLANNING_DIR
        exists = planning_dir.exists()

        if exists and command.skip_existing:
            self._emit(f"{DEFAULT_PLANNING_DIR} already exists. Skipping.")
            return MapCodebaseResult(skipped=True)

        refresh = command.refresh
        selector = command.update
        groups = resolve_groups(parse_selector(selector))

        if exists and not refresh and not selector:
            choice = self._ask_existing_output()
            if choice is ExistingOutputChoice.SKIP:
                self._emit("Skipping.")
                return MapCodebaseResult(skipped=True)
            if choice is ExistingOutputChoice.UPDATE:
                answer = self._ask("Groups to update (e.g. 1,3 or stack,concerns)")
                groups = resolve_groups(parse_selector(answer))
            else:
                refresh = True

        templates_dir = (
            command.templates_dir or settings.templates_dir or BUNDLED_TEMPLATES_DIR
        ).resolve()
        validate_templates(groups, templates_dir)

        log_dir = command.log_dir or settings.log_dir
        config = RunConfiguration(
            concurrency=concurrency,
            ui_mode=command.ui_mode or settings.ui_mode,
            log_dir=log_dir if log_dir.is_absolute() else workdir / log_dir,
            planning_dir=planning_dir,
            codex_command=split_command(settings.codex_bin),
            templates_dir=templates_dir,
            network_access=(
                command.network_access
                if command.network_access is not None
                else settings.network_access
            ),
            passthrough_args=command.codex_args,
            timeout_seconds=command.timeout_seconds,
        )

        if exists and refresh:
            logger.info("Removing %s before remapping", planning_dir)
            shutil.rmtree(planning_dir)
        planning_dir.mkdir(parents=True, exist_ok=True)
        config.log_dir.mkdir(parents=True, exist_ok=True)

        summary = self._run(config, groups, workdir)
        self._emit(COMPLETE_MESSAGE)
        return MapCodebaseResult(skipped=False, summary=summary, groups=groups)

    def _ask_existing_output(self) -> ExistingOutputChoice:
        self._emit(f"{DEFAULT_PLANNING_DIR} already exists.")
        self._emit("1) Refresh - delete and remap")
        self._emit("2) Update - select groups to update")
        self._emit("3) Skip")
        answer = self._ask("Choice [1/2/3]").strip()
        try:
            return ExistingOutputChoice(answer)
        except ValueError:
            return ExistingOutputChoice.REFRESH

    def _run(
        self,
        config: RunConfiguration,
        groups: list[JobDescriptor],
        workdir: Path,
    ) -> BatchSummary:
        tracker = StatusTracker(groups, log_dir=config.log_dir)
        inline = config.ui_mode is UiMode.INLINE
        multiplexer = LogMultiplexer(echo=inline, console=self._emit)
        backend: JobBackend = CodexExecBackend(
            config=config,
            multiplexer=multiplexer,
            cwd=workdir,
        )
        scheduler = BoundedScheduler(concurrency=config.concurrency, tracker=tracker)
        preview = format_command_preview(
            config.codex_command,
            config.passthrough_args,
            network_access=config.network_access,
        )

        self._emit(
            f"Running {len(groups)} codex exec job(s) with concurrency {config.concurrency}.",
        )
        self._emit(f"Command: {preview}")
        self._emit(f"Logs: {config.log_dir}")

        if inline:
            InlineProgressReporter(tracker=tracker, emit=multiplexer.console_line)
            return scheduler.run(tracker.jobs, backend.run)

        context = RunContext(
            log_dir=config.log_dir,
            concurrency=config.concurrency,
            command_preview=preview,
        )
        with LiveStatusRenderer(tracker=tracker, context=context, console=self._rich_console):
            return scheduler.run(tracker.jobs, backend.run)
