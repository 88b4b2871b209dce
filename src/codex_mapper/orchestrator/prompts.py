"""Instruction text for mapping jobs and template lookup."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from codex_mapper.orchestrator.catalog import JobDescriptor

BUNDLED_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates" / "codebase"

_BASE_RULES: tuple[str, ...] = (
    "Always include file paths in backticks like `src/services/user.ts`.",
    "Use the templates listed below and preserve their structure.",
    'If something is not detected, write "Not detected".',
    "Only edit the output files listed below.",
)
_OFFLINE_RULE = "Do not run network commands."
_SEARCH_RULE = "Prefer rg for searching when possible."


class MissingTemplateError(FileNotFoundError):
    """Output template referenced by the catalog is absent."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Template not found: {path}")
        self.path = path


def template_path(templates_dir: Path, template: str) -> Path:
    return (templates_dir / template).resolve()


def validate_templates(groups: Iterable[JobDescriptor], templates_dir: Path) -> None:
    """Fail before anything runs if a selected group lacks a template."""

    for group in groups:
        for output in group.outputs:
            path = template_path(templates_dir, output.template)
            if not path.is_file():
                raise MissingTemplateError(path)


def build_prompt(
    group: JobDescriptor,
    *,
    planning_dir: Path,
    templates_dir: Path,
    network_access: bool = False,
) -> str:
    """Render the instruction handed to ``codex exec`` for one group."""

    rules = list(_BASE_RULES)
    if not network_access:
        rules.append(_OFFLINE_RULE)
    rules.append(_SEARCH_RULE)

    output_blocks = []
    output_paths = []
    for output in group.outputs:
        output_path = planning_dir / output.name
        output_paths.append(f"- {output_path}")
        output_blocks.append(
            f"- {output.name}\n"
            f"  Template: {template_path(templates_dir, output.template)}\n"
            f"  Output: {output_path}\n"
            f"  Focus: {output.focus}",
        )

    rules_text = "\n".join(f"- {rule}" for rule in rules)
    outputs_text = "\n".join(output_blocks)
    paths_text = "\n".join(output_paths)
    return (
        "You are mapping this codebase.\n"
        "\n"
        "Rules:\n"
        f"{rules_text}\n"
        "\n"
        "Templates and outputs:\n"
        f"{outputs_text}\n"
        "\n"
        "Steps:\n"
        "1. Read each template file.\n"
        "2. Analyze the codebase for the listed focus areas.\n"
        "3. Write the completed templates to the output paths.\n"
        "\n"
        "Output files:\n"
        f"{paths_text}"
    )
