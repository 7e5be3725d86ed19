"""Tests for CommandExecutor."""

import os
import sys

import pytest

from testmedic.shared.infrastructure.execution import CommandExecutor


class TestCommandExecutor:
    def setup_method(self):
        self.executor = CommandExecutor(default_timeout=10.0)

    @pytest.mark.asyncio
    async def test_captures_output(self):
        result = await self.executor.run_async([sys.executable, "-c", "print('hello')"])
        assert result.is_success
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        result = await self.executor.run_async(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"]
        )
        assert result.is_success is False
        assert result.exit_code == 3
        assert result.stderr == "bad"

    @pytest.mark.asyncio
    async def test_timeout_terminates_process(self):
        result = await self.executor.run_async([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)
        assert result.is_timeout is True
        assert result.exit_code == -1
        assert result.duration < 10

    @pytest.mark.asyncio
    async def test_timeout_kills_process_ignoring_sigterm(self, tmp_path):
        pid_file = tmp_path / "child.pid"
        script = (
            "import os, signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "open(sys.argv[1], 'w').write(str(os.getpid()))\n"
            "time.sleep(30)\n"
        )
        executor = CommandExecutor(default_timeout=10.0, kill_grace=0.3)

        result = await executor.run_async([sys.executable, "-c", script, str(pid_file)], timeout=1.5)

        assert result.is_timeout is True
        assert result.duration < 10
        pid = int(pid_file.read_text())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        result = await self.executor.run_async("definitely-not-a-real-binary-xyz --flag")
        assert result.exit_code == -2
        assert "Execution error" in result.stderr

    @pytest.mark.asyncio
    async def test_env_and_cwd(self, tmp_path):
        result = await self.executor.run_async(
            [sys.executable, "-c", "import os; print(os.environ['HEALER_MARKER'], os.getcwd())"],
            cwd=tmp_path,
            env={"HEALER_MARKER": "marker"},
        )
        value, cwd = result.stdout.split()
        assert value == "marker"
        assert cwd == str(tmp_path.resolve())
