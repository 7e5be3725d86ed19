"""Tests for re-running a patched test file."""

import json
from unittest.mock import AsyncMock

import pytest

from testmedic.healing.verification import PlaywrightTestRunner, interpret
from testmedic.shared.infrastructure.execution import CommandResult


def command_result(stdout="", stderr="", exit_code=0, is_timeout=False):
    return CommandResult(
        command="npx playwright test",
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration=1.5,
        is_timeout=is_timeout,
    )


def json_report(expected=0, unexpected=0, flaky=0):
    return json.dumps({"config": {}, "suites": [], "stats": {"expected": expected, "unexpected": unexpected, "flaky": flaky}})


class TestInterpret:
    def test_json_report_pass(self):
        result = interpret(command_result(stdout=json_report(expected=2)))
        assert result.passed is True
        assert result.passed_count == 2
        assert result.failed_count == 0

    def test_json_report_failure(self):
        result = interpret(command_result(stdout=json_report(expected=1, unexpected=1), exit_code=1))
        assert result.passed is False
        assert result.failed_count == 1

    def test_flaky_counts_as_failure(self):
        result = interpret(command_result(stdout=json_report(expected=1, flaky=1)))
        assert result.passed is False

    def test_report_after_log_noise(self):
        stdout = "Running 1 test using 1 worker\n" + json_report(expected=1)
        assert interpret(command_result(stdout=stdout)).passed is True

    def test_text_fallback(self):
        assert interpret(command_result(stdout="  1 passed (2.3s)\n")).passed is True
        assert interpret(command_result(stdout="  1 failed\n  2 passed\n", exit_code=1)).passed is False

    def test_zero_exit_without_passing_tests_is_not_verified(self):
        assert interpret(command_result(stdout="No tests found")).passed is False

    def test_timeout(self):
        result = interpret(command_result(stderr="Command timed out", exit_code=-1, is_timeout=True))
        assert result.passed is False
        assert result.timed_out is True
        assert result.summary == "verification timed out"

    def test_output_tail_is_bounded(self):
        result = interpret(command_result(stderr="e" * 2000, exit_code=1))
        assert len(result.output_tail) == 500


class TestPlaywrightTestRunner:
    @pytest.mark.asyncio
    async def test_runs_single_file_with_json_reporter(self, tmp_path):
        executor = AsyncMock()
        executor.run_async.return_value = command_result(stdout=json_report(expected=1))
        runner = PlaywrightTestRunner(command="npx playwright test", timeout_seconds=30, cwd=tmp_path, executor=executor)

        result = await runner.run("tests/login.spec.ts")

        assert result.passed is True
        executor.run_async.assert_awaited_once_with(
            ["npx", "playwright", "test", "tests/login.spec.ts", "--reporter=json"],
            cwd=tmp_path,
            timeout=30,
        )
