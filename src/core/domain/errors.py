"""Errores del dominio.

Por qué una jerarquía propia:
- Los adaptadores (docker, wsl.exe, filesystem) lanzan estos errores y la CLI
  los presenta en un único punto, sin conocer detalles de cada herramienta.
- `detail` conserva la salida de diagnóstico de la herramienta externa tal cual,
  sin reinterpretarla.
"""

from __future__ import annotations


class WslGetError(Exception):
    """Error base de wsl-get."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.message = message
        self.detail = (detail or "").strip() or None
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}\n{self.detail}"
        return self.message


class InvalidReference(WslGetError):
    """La referencia `name[:tag]` no se pudo interpretar."""


class DependencyMissing(WslGetError):
    """Un ejecutable externo requerido no está en el PATH."""

    def __init__(self, executable: str, *, detail: str | None = None) -> None:
        self.executable = executable
        super().__init__(f"Required executable `{executable}` was not found on PATH", detail=detail)


class FetchFailed(WslGetError):
    """Fallo al obtener/exportar la imagen con el runtime de contenedores."""


class ImportFailed(WslGetError):
    """`wsl.exe --import` falló o el nombre ya está registrado."""


class UnregisterFailed(WslGetError):
    pass


class SetDefaultUserFailed(WslGetError):
    pass


class UserCreationFailed(WslGetError):
    """No se pudo crear el usuario inicial dentro de la instancia."""


class IOFailed(WslGetError):
    """Error de disco al escribir o borrar tarballs."""
