"""Static catalog of codebase mapping groups and selector resolution."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

WILDCARD_TOKEN = "all"


class UnknownSelectorError(ValueError):
    """Selector token that matches no catalog group."""

    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown group: {token}")
        self.token = token


@dataclass(frozen=True, slots=True)
class OutputSpec:
    """One document produced by a mapping job."""

    name: str
    template: str
    focus: str


@dataclass(frozen=True, slots=True)
class JobDescriptor:
    """Immutable description of one mapping group."""

    id: str
    label: str
    outputs: tuple[OutputSpec, ...]


CATALOG: tuple[JobDescriptor, ...] = (
    JobDescriptor(
        id="stack-integrations",
        label="Stack + Integrations",
        outputs=(
            OutputSpec(
                name="STACK.md",
                template="stack.md",
                focus=(
                    "Languages, runtime, package manager, frameworks, key dependencies, "
                    "configuration files"
                ),
            ),
            OutputSpec(
                name="INTEGRATIONS.md",
                template="integrations.md",
                focus=(
                    "External services, APIs, databases, auth providers, "
                    "third-party integrations"
                ),
            ),
        ),
    ),
    JobDescriptor(
        id="architecture-structure",
        label="Architecture + Structure",
        outputs=(
            OutputSpec(
                name="ARCHITECTURE.md",
                template="architecture.md",
                focus="Architecture pattern, layers, data flow, abstractions, entry points",
            ),
            OutputSpec(
                name="STRUCTURE.md",
                template="structure.md",
                focus=(
                    "Directory layout, module boundaries, key locations, "
                    "naming conventions for directories"
                ),
            ),
        ),
    ),
    JobDescriptor(
        id="conventions-testing",
        label="Conventions + Testing",
        outputs=(
            OutputSpec(
                name="CONVENTIONS.md",
                template="conventions.md",
                focus="Code style, naming conventions, documentation patterns, formatting tools",
            ),
            OutputSpec(
                name="TESTING.md",
                template="testing.md",
                focus="Test frameworks, test layout, coverage approach, test tooling",
            ),
        ),
    ),
    JobDescriptor(
        id="concerns",
        label="Concerns",
        outputs=(
            OutputSpec(
                name="CONCERNS.md",
                template="concerns.md",
                focus=(
                    "Technical debt, risky areas, fragility, TODOs, missing tests, "
                    "performance bottlenecks"
                ),
            ),
        ),
    ),
)

GROUP_ALIASES: dict[str, str] = {
    "stack": "stack-integrations",
    "integrations": "stack-integrations",
    "stack+integrations": "stack-integrations",
    "architecture": "architecture-structure",
    "arch": "architecture-structure",
    "structure": "architecture-structure",
    "conventions": "conventions-testing",
    "testing": "conventions-testing",
    "quality": "conventions-testing",
}


def resolve_groups(
    tokens: Iterable[str] | None,
    catalog: tuple[JobDescriptor, ...] = CATALOG,
) -> list[JobDescriptor]:
    """Return the catalog subset named by ``tokens``, in catalog order.

    Tokens may be a 1-based index, a canonical id, or an alias, and are
    matched case-insensitively after trimming. No tokens, only blank
    tokens, or the ``all`` wildcard select the whole catalog. Any token that
    matches nothing raises :class:`UnknownSelectorError`.
    """

    lookup = _build_lookup(catalog)
    selected: set[str] = set()
    for raw in tokens or ():
        token = _normalize_token(raw)
        if not token:
            continue
        if token == WILDCARD_TOKEN:
            return list(catalog)
        group_id = lookup.get(token)
        if group_id is None:
            raise UnknownSelectorError(raw.strip())
        selected.add(group_id)

    if not selected:
        return list(catalog)
    return [group for group in catalog if group.id in selected]


def parse_selector(value: str | None) -> list[str]:
    """Split a comma-separated selector string into raw tokens."""

    if value is None:
        return []
    return value.split(",")


def _build_lookup(catalog: tuple[JobDescriptor, ...]) -> dict[str, str]:
    known_ids = {group.id for group in catalog}
    lookup = {alias: group_id for alias, group_id in GROUP_ALIASES.items() if group_id in known_ids}
    for index, group in enumerate(catalog, start=1):
        lookup[str(index)] = group.id
        lookup[group.id] = group.id
    return lookup


def _normalize_token(token: str) -> str:
    return token.strip().lower()
