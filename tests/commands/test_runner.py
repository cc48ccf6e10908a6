"""Tests for the async subprocess runner.

These run the current Python interpreter as the child process so they
need nothing beyond the test environment itself.
"""

import asyncio
import sys

import pytest

from devpack.commands.runner import CommandResult, _truncate_output, build_env, run_command
from devpack.core.errors import CommandCancelled, CommandError


class TestBuildEnv:
    def test_disables_telemetry_by_default(self, monkeypatch):
        monkeypatch.delenv("NEXT_TELEMETRY_DISABLED", raising=False)
        assert build_env()["NEXT_TELEMETRY_DISABLED"] == "1"

    def test_later_overrides_win(self):
        env = build_env({"A": "1"}, None, {"A": "2", "NEXT_TELEMETRY_DISABLED": "0"})
        assert env["A"] == "2"
        assert env["NEXT_TELEMETRY_DISABLED"] == "0"


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_captures_stdout_and_stderr(self):
        result = await run_command(
            sys.executable,
            ["-c", "import sys; print('out'); print('err', file=sys.stderr)"],
        )
        assert isinstance(result, CommandResult)
        assert result.is_success
        assert "out" in result.output
        assert "err" in result.output

    @pytest.mark.asyncio
    async def test_passes_env_and_cwd(self, tmp_path):
        result = await run_command(
            sys.executable,
            ["-c", "import os; print(os.getcwd()); print(os.environ['DEVPACK_TEST'])"],
            cwd=tmp_path,
            env={"DEVPACK_TEST": "hello"},
        )
        lines = result.output.splitlines()
        assert lines[0] == str(tmp_path.resolve()) or lines[0] == str(tmp_path)
        assert lines[1] == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_with_output(self):
        with pytest.raises(CommandError) as exc_info:
            await run_command(sys.executable, ["-c", "print('boom'); raise SystemExit(3)"])
        assert exc_info.value.exit_code == 3
        assert "boom" in exc_info.value.output

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with pytest.raises(CommandError) as exc_info:
            await run_command("devpack-no-such-binary")
        assert exc_info.value.exit_code == 127

    @pytest.mark.asyncio
    async def test_cancel_event_terminates_child(self):
        cancel = asyncio.Event()

        async def fire() -> None:
            await asyncio.sleep(0.2)
            cancel.set()

        firing = asyncio.create_task(fire())
        with pytest.raises(CommandCancelled):
            await asyncio.wait_for(
                run_command(sys.executable, ["-c", "import time; time.sleep(30)"], cancel=cancel),
                timeout=10,
            )
        await firing

    @pytest.mark.asyncio
    async def test_verbose_echoes_to_stderr(self, capfd):
        await run_command(sys.executable, ["-c", "print('visible')"], verbose=True)
        captured = capfd.readouterr()
        assert "visible" in captured.err
        assert "visible" not in captured.out


class TestTruncateOutput:
    def test_keeps_tail(self):
        text = "\n".join(f"line {i}" for i in range(100))
        tail = _truncate_output(text, max_lines=3)
        assert tail == "line 97\nline 98\nline 99"

    def test_empty(self):
        assert _truncate_output("") == ""
