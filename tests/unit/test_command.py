"""
Unit tests for external command execution.

Run with: pytest tests/unit/test_command.py -v
"""

import sys

import pytest

from vitals.core.command import execute_command
from vitals.errors import CommandTimeoutError, ExternalCommandError


PYTHON = f'"{sys.executable}"'


class TestExecuteCommand:
    """Test suite for execute_command"""

    @pytest.mark.asyncio
    async def test_captures_stdout_and_stderr(self):
        result = await execute_command(
            f"{PYTHON} -c \"import sys; print('out'); print('err', file=sys.stderr)\""
        )

        assert result.ok
        assert result.exit_code == 0
        assert result.signal is None
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, tmp_path):
        result = await execute_command(f"{PYTHON} -c \"import os; print(os.getcwd())\"", cwd=tmp_path)

        assert result.stdout.strip() == str(tmp_path)

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self):
        """Test a failing command raises with its exit code and output"""
        with pytest.raises(ExternalCommandError) as exc_info:
            await execute_command(f"{PYTHON} -c \"import sys; print('bad'); sys.exit(3)\"")

        error = exc_info.value
        assert error.exit_code == 3
        assert error.stdout.strip() == "bad"
        assert error.code == "COMMAND_EXECUTION_ERROR"
        assert error.details["exit_code"] == 3

    @pytest.mark.asyncio
    async def test_non_zero_exit_can_be_ignored(self):
        result = await execute_command(f"{PYTHON} -c \"import sys; sys.exit(2)\"", ignore_exit_code=True)

        assert not result.ok
        assert result.exit_code == 2

    @pytest.mark.asyncio
    async def test_timeout_kills_and_raises(self):
        """Test a timeout raises even when exit codes are ignored"""
        with pytest.raises(CommandTimeoutError) as exc_info:
            await execute_command(
                f"{PYTHON} -c \"import time; time.sleep(5)\"",
                timeout=0.2,
                ignore_exit_code=True,
            )

        assert exc_info.value.code == "COMMAND_TIMEOUT_ERROR"
        assert exc_info.value.timeout == 0.2
