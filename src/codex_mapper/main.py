"""CLI entrypoint for codex-mapper."""

import logging
import sys
from pathlib import Path

import rich_click as click

from codex_mapper import __version__
from codex_mapper.config import InvalidConfigurationError, UiMode, parse_concurrency
from codex_mapper.orchestrator.backend import JobRunError
from codex_mapper.orchestrator.catalog import CATALOG, UnknownSelectorError
from codex_mapper.orchestrator.controllers import MapCodebaseCommand, MapperCliController
from codex_mapper.orchestrator.prompts import MissingTemplateError

click.rich_click.USE_MARKDOWN = True

logger = logging.getLogger(__name__)

_GROUPS_HELP = "\n".join(
    f"- `{index}`, `{group.id}`" for index, group in enumerate(CATALOG, start=1)
)


@click.group()
@click.version_option(version=__version__, prog_name="codex-mapper")
def codex_mapper() -> None:
    """Map a codebase into `.planning/codebase` documents with parallel `codex exec` runs."""


@codex_mapper.command("map-codebase", epilog=f"Groups:\n\n{_GROUPS_HELP}")
@click.option("--refresh", is_flag=True, help="Delete existing .planning/codebase before running.")
@click.option(
    "--update",
    default=None,
    help="Update specific groups (comma-separated ids, aliases or numbers).",
)
@click.option("--skip-existing", is_flag=True, help="Exit if .planning/codebase already exists.")
@click.option(
    "--concurrency",
    default=None,
    callback=lambda _ctx, _param, value: _validate_concurrency(value),
    help="Max parallel codex exec runs. Defaults to CODEX_MAPPER_CONCURRENCY or 4.",
)
@click.option(
    "--ui",
    "ui_mode",
    type=click.Choice([mode.value for mode in UiMode]),
    default=None,
    help="`inline` echoes job output with [group] prefixes; `rich-status` shows a live board.",
)
@click.option(
    "--log-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for per-group log files. Defaults to .planning/logs/codebase.",
)
@click.option(
    "--network/--no-network",
    "network_access",
    default=None,
    help="Allow network access inside the codex sandbox.",
)
@click.option(
    "--timeout-seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Terminate a group that runs longer than this. No timeout by default.",
)
@click.option(
    "--templates-dir",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Directory with output templates. Defaults to the bundled templates.",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging on stderr.")
@click.argument("codex_args", nargs=-1, type=click.UNPROCESSED)
def map_codebase(  # noqa: PLR0913
    refresh: bool,
    update: str | None,
    skip_existing: bool,
    concurrency: int | None,
    ui_mode: str | None,
    log_dir: Path | None,
    network_access: bool | None,
    timeout_seconds: int | None,
    templates_dir: Path | None,
    verbose: bool,
    codex_args: tuple[str, ...],
) -> None:
    """Run one `codex exec` job per group, with bounded parallelism.

    Arguments after `--` are passed through to `codex exec`, for example
    `codex-mapper map-codebase -- --model gpt-5.1-codex-max`.
    """

    _configure_logging(verbose)
    controller = MapperCliController(emit=click.echo, ask=_ask)
    try:
        controller.map_codebase(
            MapCodebaseCommand(
                workdir=Path.cwd(),
                refresh=refresh,
                update=update,
                skip_existing=skip_existing,
                concurrency=concurrency,
                ui_mode=UiMode(ui_mode) if ui_mode is not None else None,
                log_dir=log_dir,
                network_access=network_access,
                timeout_seconds=timeout_seconds,
                templates_dir=templates_dir,
                codex_args=codex_args,
            ),
        )
    except (InvalidConfigurationError, UnknownSelectorError) as error:
        raise click.UsageError(str(error)) from error
    except MissingTemplateError as error:
        raise click.ClickException(str(error)) from error
    except JobRunError as error:
        raise click.ClickException(f"Codebase mapping failed: {error}") from error
    except (click.ClickException, click.Abort):
        raise
    except Exception as error:
        logger.debug("Unexpected error while mapping", exc_info=True)
        raise click.ClickException(
            f"Codebase mapping failed: {type(error).__name__}: {error}",
        ) from error


def _validate_concurrency(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return parse_concurrency(value)
    except InvalidConfigurationError as error:
        raise click.BadParameter(str(error), param_hint="--concurrency") from error


def _ask(question: str) -> str:
    return click.prompt(question, default="", show_default=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


if __name__ == "__main__":  # pragma: no cover
    codex_mapper()
