"""Console views of the status table: a rich live board and a linear log."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from codex_mapper.orchestrator.models import JobState, JobStatusView
from codex_mapper.orchestrator.tracker import StatusTracker

STATE_STYLES: dict[JobState, str] = {
    JobState.QUEUED: "dim",
    JobState.RUNNING: "bold cyan",
    JobState.DONE: "bold green",
    JobState.FAILED: "bold red",
}

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class RunContext:
    """Run-level facts shown above the job table."""

    log_dir: Path
    concurrency: int
    command_preview: str


def format_elapsed(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def build_status_view(
    snapshot: Sequence[JobStatusView],
    context: RunContext,
    now: datetime,
) -> Group:
    """Pure function of its inputs; the same snapshot renders the same view."""

    header = Text()
    header.append("codex-mapper", style="bold")
    header.append(f"  concurrency {context.concurrency}\n")
    header.append("Logs: ", style="dim")
    header.append(f"{context.log_dir}\n")
    header.append("Command: ", style="dim")
    header.append(context.command_preview)

    table = Table(expand=True, show_lines=False, header_style="bold")
    table.add_column("Job", no_wrap=True)
    table.add_column("Group")
    table.add_column("State", no_wrap=True)
    table.add_column("Elapsed", justify="right", no_wrap=True)
    table.add_column("Log", overflow="fold")
    for item in snapshot:
        table.add_row(
            item.job_id,
            item.label,
            Text(item.state.value, style=STATE_STYLES[item.state]),
            format_elapsed(item.elapsed_seconds(now)),
            item.log_path.name,
        )

    counts = {state: 0 for state in JobState}
    for item in snapshot:
        counts[item.state] += 1
    footer = Text(
        "  ".join(f"{state.value}: {counts[state]}" for state in JobState),
        style="dim",
    )
    errors = [item for item in snapshot if item.error]
    if not errors:
        return Group(header, table, footer)
    error_text = Text()
    for item in errors:
        error_text.append(f"{item.job_id}: ", style="bold red")
        error_text.append(f"{item.error}\n")
    return Group(header, table, footer, error_text)


class LiveStatusRenderer:
    """Full-screen board redrawn on every transition and on a timer."""

    def __init__(
        self,
        *,
        tracker: StatusTracker,
        context: RunContext,
        console: Console | None = None,
        refresh_per_second: float = 4,
        screen: bool = True,
        clock: Clock | None = None,
    ) -> None:
        self._tracker = tracker
        self._context = context
        self._console = console or Console()
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._live = Live(
            console=self._console,
            get_renderable=self.renderable,
            refresh_per_second=refresh_per_second,
            screen=screen,
            transient=False,
        )
        self._started = False
        tracker.subscribe(self._on_transition)

    def renderable(self) -> Group:
        return build_status_view(self._tracker.snapshot(), self._context, self._clock())

    def start(self) -> None:
        self._live.start(refresh=True)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._live.stop()
        # Alternate screen is gone after stop; leave the final board in scrollback.
        self._console.print(self.renderable())

    def _on_transition(self, _view: JobStatusView) -> None:
        if self._started:
            self._live.refresh()

    def __enter__(self) -> LiveStatusRenderer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class InlineProgressReporter:
    """Linear one-line-per-transition log for the inline UI mode."""

    def __init__(
        self,
        *,
        tracker: StatusTracker,
        emit: Callable[[str], None],
        clock: Clock | None = None,
    ) -> None:
        self._emit = emit
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        tracker.subscribe(self._on_transition)

    def _on_transition(self, view: JobStatusView) -> None:
        self._emit(self.describe(view, self._clock()))

    @staticmethod
    def describe(view: JobStatusView, now: datetime) -> str:
        prefix = f"[{view.job_id}]"
        if view.state is JobState.RUNNING:
            return f"{prefix} running: {view.label} (log: {view.log_path})"
        elapsed = format_elapsed(view.elapsed_seconds(now))
        if view.state is JobState.DONE:
            return f"{prefix} done in {elapsed}"
        if view.state is JobState.FAILED:
            return f"{prefix} failed after {elapsed}: {view.error}"
        return f"{prefix} {view.state.value}"
