"""Bounded-concurrency runner for codex exec mapping jobs.

Each selected catalog group becomes one child process. The scheduler keeps
at most ``concurrency`` of them running, fans their output into per-job log
files (and optionally the console), and records every lifecycle transition
in a shared status table that the live renderer reads.

After the first failure no further jobs are admitted, but jobs that are
already running are left to finish so no child process or half-written log
file is abandoned. The batch reports that first failure once nothing is
running any more.
"""
