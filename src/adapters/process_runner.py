"""Ejecución de comandos externos.

Por qué un wrapper:
- docker y wsl.exe se invocan igual: capturar exit code/stdout/stderr y
  convertir "ejecutable inexistente" en `DependencyMissing`.
- Facilita testeo: los adaptadores reciben `run_command` y los tests lo
  sustituyen por un stub.
"""

from __future__ import annotations

import codecs
import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import IO, Callable, Mapping, Sequence

from core.domain.errors import DependencyMissing

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Resultado de un comando externo."""

    command: list[str]
    return_code: int
    stdout: str
    stderr: str
    success: bool
    execution_time: float
    error: str | None = None

    @property
    def diagnostic(self) -> str:
        """Texto de diagnóstico de la herramienta, sin reinterpretar."""

        return self.stderr.strip() or self.stdout.strip() or (self.error or "")


Runner = Callable[..., CommandResult]


def decode_output(data: bytes) -> str:
    """Decodifica la salida de un proceso.

    wsl.exe escribe UTF-16LE salvo que `WSL_UTF8=1` esté definido; el resto de
    herramientas escriben UTF-8. Un byte NUL delata UTF-16.
    """

    if not data:
        return ""
    if data.startswith(codecs.BOM_UTF16_LE) or b"\x00" in data:
        text = data.decode("utf-16-le", errors="replace")
    else:
        text = data.decode("utf-8", errors="replace")
    return text.lstrip("\ufeff")


def find_executable(name: str) -> str | None:
    return shutil.which(name)


def require_executable(name: str) -> str:
    """Devuelve la ruta de `name` o lanza `DependencyMissing`."""

    path = find_executable(name)
    if path is None:
        raise DependencyMissing(name)
    return path


def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


def run_command(
    command: Sequence[str | os.PathLike[str]],
    *,
    timeout: float | None = None,
    input_text: str | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Ejecuta `command` y espera a que termine.

    - `timeout=None` espera indefinidamente.
    - Un timeout no lanza: devuelve un resultado fallido con `error`, y cada
      adaptador lo convierte en su propio tipo de error.
    """

    cmd = [os.fspath(part) for part in command]
    start_time = time.time()

    logger.debug(f"Executing: {' '.join(cmd)} (timeout: {timeout}s)")

    try:
        completed = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            input=input_text.encode("utf-8") if input_text is not None else None,
            timeout=timeout,
            env=_merged_env(env),
        )
    except FileNotFoundError as exc:
        raise DependencyMissing(cmd[0], detail=str(exc)) from exc
    except subprocess.TimeoutExpired:
        execution_time = time.time() - start_time
        logger.warning(f"Command timed out after {timeout} seconds: {' '.join(cmd)}")
        return CommandResult(
            command=cmd,
            return_code=-1,
            stdout="",
            stderr="",
            success=False,
            execution_time=execution_time,
            error=f"Command timed out after {timeout} seconds",
        )

    execution_time = time.time() - start_time
    stdout = decode_output(completed.stdout)
    stderr = decode_output(completed.stderr)
    success = completed.returncode == 0

    result = CommandResult(
        command=cmd,
        return_code=completed.returncode,
        stdout=stdout,
        stderr=stderr,
        success=success,
        execution_time=execution_time,
        error=None if success else (stderr.strip() or f"exit code {completed.returncode}"),
    )

    if success:
        logger.debug(f"Command completed in {execution_time:.2f}s")
    else:
        logger.info(
            f"Command failed (code {completed.returncode}) in {execution_time:.2f}s: {' '.join(cmd)}"
        )
    return result


def spawn_stdout_pipe(
    command: Sequence[str | os.PathLike[str]],
    *,
    stderr: int | IO[bytes] = subprocess.PIPE,
) -> subprocess.Popen[bytes]:
    """Lanza `command` con stdout en pipe, para consumir stdout en streaming.

    `stderr` puede ser un fichero abierto: así el proceso nunca se bloquea
    por un pipe de errores que nadie lee mientras se copia stdout.
    """

    cmd = [os.fspath(part) for part in command]
    logger.debug(f"Spawning: {' '.join(cmd)}")
    try:
        return subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=stderr)
    except FileNotFoundError as exc:
        raise DependencyMissing(cmd[0], detail=str(exc)) from exc
