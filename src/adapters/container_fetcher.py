"""Obtención del rootfs con un runtime de contenedores.

Flujo:
- `pull` de la imagen.
- `create` de un contenedor temporal (nunca se arranca).
- `export` del sistema de ficheros del contenedor, comprimido con gzip, a un
  fichero temporal que luego se mueve de forma atómica al destino.
- `rm` del contenedor temporal, siempre, también si el export falla.

Cualquier CLI compatible con docker sirve (docker, podman).
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Callable, Iterator

from adapters.process_runner import (
    CommandResult,
    Runner,
    decode_output,
    require_executable,
    run_command,
    spawn_stdout_pipe,
)
from core.config import AppSettings
from core.domain.errors import FetchFailed, IOFailed
from core.domain.models import DistributionReference
from core.interfaces.runtime import ImageFetcher

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class ContainerFetcher(ImageFetcher):
    """Convierte una imagen de contenedor en un rootfs `.tar.gz`."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        runner: Runner = run_command,
        spawner: Callable[..., subprocess.Popen[bytes]] = spawn_stdout_pipe,
    ) -> None:
        self._settings = settings or AppSettings()
        self._runner = runner
        self._spawner = spawner

    @property
    def runtime(self) -> str:
        return self._settings.container_runtime

    def fetch(self, reference: DistributionReference, destination: Path) -> Path:
        destination = Path(destination)
        require_executable(self.runtime)

        logger.info(f"Pulling {reference.image} with {self.runtime}")
        self._pull(reference)

        with self._temporary_container(reference) as container_id:
            logger.info(f"Exporting rootfs of {reference.image} to {destination}")
            self._export(container_id, destination)

        return destination

    def _run(self, *args: str) -> CommandResult:
        return self._runner(
            [self.runtime, *args],
            timeout=self._settings.command_timeout_seconds,
        )

    def _pull(self, reference: DistributionReference) -> None:
        result = self._run("pull", reference.image)
        if not result.success:
            raise FetchFailed(f"Failed to pull image {reference.image}", detail=result.diagnostic)

    @contextmanager
    def _temporary_container(self, reference: DistributionReference) -> Iterator[str]:
        result = self._run("create", reference.image)
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not result.success or not lines:
            raise FetchFailed(
                f"Failed to create a container from {reference.image}",
                detail=result.diagnostic,
            )

        # `create` imprime el id en la última línea (podman puede añadir avisos antes).
        container_id = lines[-1]
        try:
            yield container_id
        finally:
            removed = self._run("rm", container_id)
            if not removed.success:
                logger.warning(f"Failed to remove temporary container {container_id}: {removed.diagnostic}")

    def _export(self, container_id: str, destination: Path) -> None:
        partial = destination.with_name(f".{destination.name}.part")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            return_code, stderr = self._stream_export(container_id, partial)
            if return_code != 0:
                raise FetchFailed(f"Failed to export container {container_id}", detail=stderr)
            os.replace(partial, destination)
        except OSError as exc:
            raise IOFailed(f"Failed to write rootfs tarball to {destination}", detail=str(exc)) from exc
        finally:
            # Si el padre no es un directorio, `unlink` también falla: manda el error original.
            with suppress(OSError):
                partial.unlink(missing_ok=True)

    def _stream_export(self, container_id: str, target: Path) -> tuple[int, str]:
        # stderr va a un fichero: un pipe sin leer bloquearía el export al llenarse.
        with tempfile.TemporaryFile() as errors:
            process = self._spawner([self.runtime, "export", container_id], stderr=errors)
            try:
                with gzip.open(target, "wb", compresslevel=self._settings.compress_level) as out:
                    shutil.copyfileobj(process.stdout, out, _CHUNK_SIZE)
            except BaseException:
                process.kill()
                process.wait()
                raise

            process.stdout.close()
            return_code = process.wait()
            errors.seek(0)
            return return_code, decode_output(errors.read()).strip()
