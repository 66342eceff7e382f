"""
Test configuration and fixtures
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

from adapters.process_runner import CommandResult
from core.config import AppSettings


@dataclass
class RecordedCall:
    command: list[str]
    timeout: Optional[float]
    input_text: Optional[str]
    env: Optional[dict]


class FakeRunner:
    """Stand-in for `run_command`: records every call and answers from rules.

    A rule matches when the command starts with its prefix; the most recently
    added matching rule wins. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._rules: list[tuple[list[str], int, str, str]] = []

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", return_code: int = 0) -> "FakeRunner":
        self._rules.append((list(prefix), return_code, stdout, stderr))
        return self

    def __call__(self, command, *, timeout=None, input_text=None, env=None) -> CommandResult:
        cmd = [str(part) for part in command]
        self.calls.append(RecordedCall(cmd, timeout, input_text, env))
        for prefix, return_code, stdout, stderr in reversed(self._rules):
            if cmd[: len(prefix)] == prefix:
                return CommandResult(
                    command=cmd,
                    return_code=return_code,
                    stdout=stdout,
                    stderr=stderr,
                    success=return_code == 0,
                    execution_time=0.0,
                    error=None if return_code == 0 else (stderr or f"exit code {return_code}"),
                )
        return CommandResult(cmd, 0, "", "", True, 0.0)

    @property
    def commands(self) -> list[list[str]]:
        return [call.command for call in self.calls]


class FakeExportProcess:
    """Mimics the `Popen` returned for `<runtime> export <id>`."""

    def __init__(self, data: bytes = b"rootfs-tar-bytes", return_code: int = 0, stderr: bytes = b"") -> None:
        self.stdout = io.BytesIO(data)
        self.returncode: Optional[int] = None
        self.stderr_bytes = stderr
        self._final_code = return_code
        self.killed = False

    def wait(self):
        self.returncode = self._final_code
        return self._final_code

    def kill(self) -> None:
        self.killed = True


class FakeSpawner:
    def __init__(self, process: FakeExportProcess) -> None:
        self.process = process
        self.commands: list[list[str]] = []

    def __call__(self, command, *, stderr=None):
        self.commands.append([str(part) for part in command])
        if stderr is not None:
            stderr.write(self.process.stderr_bytes)
        return self.process


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        cache_dir=tmp_path / "cache",
        install_root=tmp_path / "instances",
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def executables_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend every external tool is installed."""

    monkeypatch.setattr("adapters.process_runner.shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.fixture
def no_executables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("adapters.process_runner.shutil.which", lambda name: None)
