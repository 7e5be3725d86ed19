"""Re-running a single test file to confirm a fix."""

from __future__ import annotations

import json
import re
import shlex
from dataclasses import dataclass
from pathlib import Path

from testmedic.shared.infrastructure.execution.command_executor import CommandExecutor, CommandResult
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_PASSED = re.compile(r"(\d+)\s+pass(?:ed|ing)?\b", re.IGNORECASE)
_FAILED = re.compile(r"(\d+)\s+fail(?:ed|ing|ures?)?\b", re.IGNORECASE)
_FLAKY = re.compile(r"(\d+)\s+flaky\b", re.IGNORECASE)


@dataclass
class VerificationResult:
    """Outcome of re-running one test file."""

    passed: bool
    passed_count: int = 0
    failed_count: int = 0
    exit_code: int | None = None
    timed_out: bool = False
    output_tail: str = ""
    duration: float = 0.0

    @property
    def summary(self) -> str:
        if self.timed_out:
            return "verification timed out"
        return f"{self.passed_count} passed, {self.failed_count} failed (exit {self.exit_code})"


def _json_counts(stdout: str) -> tuple[int, int] | None:
    """(passed, failed) from the JSON reporter's stats, if stdout holds the report."""
    start = stdout.find("{")
    if start == -1:
        return None
    try:
        report, _ = json.JSONDecoder().raw_decode(stdout, start)
    except ValueError:
        return None
    stats = report.get("stats") if isinstance(report, dict) else None
    if not isinstance(stats, dict):
        return None
    passed = int(stats.get("expected") or 0)
    # A flaky test failed at least once; that is not a pass
    failed = int(stats.get("unexpected") or 0) + int(stats.get("flaky") or 0)
    return passed, failed


def _text_counts(output: str) -> tuple[int, int]:
    passed = sum(int(m) for m in _PASSED.findall(output))
    failed = sum(int(m) for m in _FAILED.findall(output)) + sum(int(m) for m in _FLAKY.findall(output))
    return passed, failed


def interpret(result: CommandResult) -> VerificationResult:
    """Verified only if the runner exited 0, nothing failed and something passed."""
    counts = _json_counts(result.stdout)
    if counts is None:
        counts = _text_counts(f"{result.stdout}\n{result.stderr}")
    passed_count, failed_count = counts

    passed = result.is_success and failed_count == 0 and passed_count > 0
    tail = (result.stderr or result.stdout)[-500:]
    return VerificationResult(
        passed=passed,
        passed_count=passed_count,
        failed_count=failed_count,
        exit_code=result.exit_code,
        timed_out=result.is_timeout,
        output_tail=tail,
        duration=result.duration,
    )


class PlaywrightTestRunner:
    """Runs ``<command> <file> --reporter=json`` under a bounded timeout."""

    def __init__(
        self,
        command: str = "npx playwright test",
        timeout_seconds: float = 120.0,
        cwd: str | Path | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.command = command
        self.timeout_seconds = timeout_seconds
        self.cwd = cwd
        self._executor = executor or CommandExecutor(default_timeout=timeout_seconds)

    async def run(self, file_path: str | Path) -> VerificationResult:
        args = shlex.split(self.command) + [str(file_path), "--reporter=json"]
        logger.info("verification_started", file=str(file_path), timeout=self.timeout_seconds)

        result = await self._executor.run_async(args, cwd=self.cwd, timeout=self.timeout_seconds)
        verification = interpret(result)

        logger.info(
            "verification_finished",
            file=str(file_path),
            passed=verification.passed,
            summary=verification.summary,
        )
        return verification
