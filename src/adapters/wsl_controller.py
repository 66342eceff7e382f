"""Control de WSL a través de `wsl.exe`.

Por qué la CLI y no `wslapi.dll`:
- `WslRegisterDistribution` siempre instala junto al ejecutable que la llama;
  `wsl.exe --import` permite elegir el directorio de cada instancia.
- Un único mecanismo (subprocess) para todas las operaciones.

Los mensajes de error de wsl.exe se adjuntan tal cual al error lanzado.
"""

from __future__ import annotations

import logging
from pathlib import Path

from adapters.process_runner import CommandResult, Runner, run_command
from core.config import AppSettings
from core.domain.errors import (
    ImportFailed,
    IOFailed,
    SetDefaultUserFailed,
    UnregisterFailed,
    UserCreationFailed,
    WslGetError,
)
from core.interfaces.runtime import WslManager

logger = logging.getLogger(__name__)

# wsl.exe sale con error cuando no hay ninguna distribución registrada.
_NO_DISTRIBUTIONS_MARKERS = (
    "WSL_E_DEFAULT_DISTRO_NOT_FOUND",
    "no installed distributions",
)

_SHELL_CANDIDATES = ("/usr/bin/bash", "/bin/bash", "/usr/bin/sh", "/bin/sh")
_ADMIN_GROUPS = ("wheel", "sudo")


class WslController(WslManager):
    """Envoltorio fino sobre `wsl.exe` (list/import/unregister/default user)."""

    def __init__(self, settings: AppSettings | None = None, *, runner: Runner = run_command) -> None:
        self._settings = settings or AppSettings()
        self._runner = runner

    @property
    def executable(self) -> str:
        return self._settings.wsl_executable

    def _run(self, *args: str, input_text: str | None = None) -> CommandResult:
        return self._runner(
            [self.executable, *args],
            timeout=self._settings.command_timeout_seconds,
            input_text=input_text,
            # Salida en UTF-8 en vez de UTF-16LE (WSL >= 0.64).
            env={"WSL_UTF8": "1"},
        )

    def _exec(self, name: str, *args: str, input_text: str | None = None) -> CommandResult:
        """Ejecuta un comando como root dentro de la instancia `name`."""

        return self._run("-d", name, "-u", "root", "--", *args, input_text=input_text)

    def list_instances(self) -> list[str]:
        """Nombres registrados, en el mismo orden que los imprime wsl.exe."""

        result = self._run("--list", "--quiet")
        if not result.success:
            text = f"{result.stdout}\n{result.stderr}"
            if any(marker.lower() in text.lower() for marker in _NO_DISTRIBUTIONS_MARKERS):
                return []
            raise WslGetError("Failed to list WSL distributions", detail=result.diagnostic)

        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def is_registered(self, name: str) -> bool:
        wanted = name.lower()
        return any(existing.lower() == wanted for existing in self.list_instances())

    def import_instance(self, name: str, install_dir: Path, tarball: Path) -> None:
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailed(f"Failed to create install directory {install_dir}", detail=str(exc)) from exc

        result = self._run(
            "--import",
            name,
            str(install_dir),
            str(tarball),
            "--version",
            str(self._settings.wsl_version),
        )
        if not result.success:
            raise ImportFailed(f"Failed to register distribution `{name}`", detail=result.diagnostic)

    def unregister(self, name: str) -> None:
        result = self._run("--unregister", name)
        if not result.success:
            raise UnregisterFailed(f"Failed to unregister distribution `{name}`", detail=result.diagnostic)

    def query_uid(self, name: str, username: str) -> int:
        result = self._exec(name, "id", "-u", username)
        if not result.success:
            raise SetDefaultUserFailed(
                f"Failed to get uid of `{username}` in `{name}`",
                detail=result.diagnostic,
            )
        try:
            return int(result.stdout.strip())
        except ValueError as exc:
            raise SetDefaultUserFailed(
                f"Unexpected output from `id -u {username}`",
                detail=result.stdout,
            ) from exc

    def set_default_user(self, name: str, username: str) -> None:
        uid = self.query_uid(name, username)
        logger.debug(f"Setting default user of {name} to {username} (uid {uid})")

        result = self._run("--manage", name, "--set-default-user", username)
        if not result.success:
            raise SetDefaultUserFailed(
                f"Failed to set default user of `{name}` to `{username}`",
                detail=result.diagnostic,
            )

    def file_exists(self, name: str, path: str) -> bool:
        return self._exec(name, "test", "-e", path).success

    def lookup_shell(self, name: str) -> str | None:
        for candidate in _SHELL_CANDIDATES:
            if self.file_exists(name, candidate):
                return candidate
        return None

    def create_user(self, name: str, username: str, password: str) -> None:
        """Crea `username` con home, le da la misma contraseña que a root y lo
        añade a `wheel`/`sudo` si existen.

        Si algo falla después de `useradd`, el usuario se elimina de nuevo.
        """

        shell = self.lookup_shell(name)

        useradd = ["/usr/sbin/useradd", "-m"]
        if shell:
            useradd += ["-s", shell]
        useradd.append(username)

        result = self._exec(name, *useradd)
        if not result.success:
            raise UserCreationFailed(f"Failed to add user `{username}`", detail=result.diagnostic)

        complete = False
        try:
            self._change_password(name, "root", password)
            self._change_password(name, username, password)
            for group in _ADMIN_GROUPS:
                self._add_to_group_if_exists(name, username, group)
            complete = True
        finally:
            if not complete:
                rollback = self._exec(name, "/usr/sbin/userdel", "--remove", username)
                if not rollback.success:
                    logger.warning(f"Failed to remove user {username} after a failed setup: {rollback.diagnostic}")

    def _change_password(self, name: str, username: str, password: str) -> None:
        result = self._exec(name, "/usr/sbin/chpasswd", input_text=f"{username}:{password}\n")
        if not result.success:
            raise UserCreationFailed(f"Failed to change password of `{username}`", detail=result.diagnostic)

    def _add_to_group_if_exists(self, name: str, username: str, group: str) -> None:
        if not self._exec(name, "getent", "group", group).success:
            logger.debug(f"Group {group} does not exist in {name}")
            return

        result = self._exec(name, "/usr/sbin/usermod", "-aG", group, username)
        if not result.success:
            raise UserCreationFailed(f"Failed to add `{username}` to group `{group}`", detail=result.diagnostic)
