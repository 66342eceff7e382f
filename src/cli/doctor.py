"""Doctor command for environment diagnostics."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from adapters.process_runner import find_executable, run_command
from core.config import AppSettings

app = typer.Typer(no_args_is_help=False, help="Environment diagnostics: external tools and directories.")

_console = Console()


def _check_executable(name: str, *version_args: str) -> tuple[bool, str]:
    path = find_executable(name)
    if path is None:
        return False, "not found on PATH"

    result = run_command([path, *version_args], timeout=15.0, env={"WSL_UTF8": "1"})
    first_line = next((line.strip() for line in result.stdout.splitlines() if line.strip()), "")
    if result.success and first_line:
        return True, f"{path} ({first_line})"
    return True, path


def _check_writable_dir(path: Path) -> tuple[bool, str]:
    """Crea el directorio si hace falta y prueba a escribir un fichero temporal."""

    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, prefix=".doctor-", delete=True):
            pass
        return True, str(path)
    except OSError as exc:
        return False, f"{path}: {exc}"


@app.callback(invoke_without_command=True)
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="wsl-get doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    ok_runtime, detail_runtime = _check_executable(settings.container_runtime, "--version")
    table.add_row(f"Container runtime ({settings.container_runtime})", "OK" if ok_runtime else "FAIL", detail_runtime)

    ok_wsl, detail_wsl = _check_executable(settings.wsl_executable, "--version")
    table.add_row(f"WSL ({settings.wsl_executable})", "OK" if ok_wsl else "FAIL", detail_wsl)

    ok_cache, detail_cache = _check_writable_dir(settings.resolved_cache_dir())
    table.add_row("Cache directory", "OK" if ok_cache else "FAIL", detail_cache)

    ok_root, detail_root = _check_writable_dir(settings.resolved_install_root())
    table.add_row("Install root", "OK" if ok_root else "FAIL", detail_root)

    timeout = settings.command_timeout_seconds
    table.add_row("Command timeout", "OK", f"{timeout}s" if timeout else "none (wait indefinitely)")

    _console.print(table)

    if not ok_runtime:
        _console.print(
            "\n[yellow]Note:[/yellow] install Docker Desktop or podman, or point "
            "WSL_GET_CONTAINER_RUNTIME at a docker-compatible CLI."
        )
    if not ok_wsl and os.name != "nt":
        _console.print("\n[yellow]Note:[/yellow] `wsl.exe` is only reachable from Windows or from inside WSL.")

    if not (ok_runtime and ok_wsl and ok_cache and ok_root):
        raise typer.Exit(code=1)
