"""Parallel codebase mapping on top of the codex CLI."""

__version__ = "0.3.0"
