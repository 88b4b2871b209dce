"""Local stand-in for ``codex`` used by CLI and backend integration tests.

Accepts the same ``exec`` argument vector the runner builds, copies each
template to its output path, and prints a few lines on both streams.

Environment knobs:

- ``CODEX_MAPPER_ECHO_DELAY``: seconds to sleep before doing anything.
- ``CODEX_MAPPER_ECHO_FAIL_ON``: comma-separated output names; a prompt that
  mentions one of them exits with ``CODEX_MAPPER_ECHO_EXIT_CODE`` (default 1).
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Pretend to map the codebase described by the trailing prompt."""

    parser = argparse.ArgumentParser(prog="echo-agent")
    parser.add_argument("command", choices=["exec"])
    _args, rest = parser.parse_known_args(argv)
    if not rest:
        print("echo-agent: missing prompt", file=sys.stderr)
        return 2
    prompt = rest[-1]

    delay = float(os.getenv("CODEX_MAPPER_ECHO_DELAY", "0") or 0)
    if delay > 0:
        time.sleep(delay)

    outputs = _parse_outputs(prompt)
    print(f"echo-agent: flags {' '.join(rest[:-1])}", flush=True)
    print(f"echo-agent: {len(outputs)} output(s) requested", flush=True)

    fail_on = {
        name.strip() for name in os.getenv("CODEX_MAPPER_ECHO_FAIL_ON", "").split(",") if name
    }
    for name, _template, _output in outputs:
        if name in fail_on:
            print(f"echo-agent: refusing to write {name}", file=sys.stderr, flush=True)
            return int(os.getenv("CODEX_MAPPER_ECHO_EXIT_CODE", "1"))

    for name, template, output in outputs:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(template.read_text("utf-8"), "utf-8")
        print(f"echo-agent: wrote {name}", flush=True)
    print("echo-agent: done", file=sys.stderr, flush=True)
    return 0


def _parse_outputs(prompt: str) -> list[tuple[str, Path, Path]]:
    outputs: list[tuple[str, Path, Path]] = []
    name: str | None = None
    template: Path | None = None
    for raw in prompt.splitlines():
        line = raw.strip()
        if raw.startswith("- ") and line.endswith(".md") and "/" not in line:
            name = line[2:]
        elif line.startswith("Template: "):
            template = Path(line.removeprefix("Template: "))
        elif line.startswith("Output: ") and name is not None and template is not None:
            outputs.append((name, template, Path(line.removeprefix("Output: "))))
            name = None
            template = None
    return outputs


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
