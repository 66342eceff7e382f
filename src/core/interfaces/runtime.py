"""Contratos de las herramientas externas.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Los servicios orquestan docker/wsl.exe a través de estas interfaces, así que
  los tests pueden sustituirlas por dobles sin lanzar procesos.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from core.domain.models import DistributionReference


@runtime_checkable
class ImageFetcher(Protocol):
    """Materializa el rootfs de una imagen de contenedor en un tarball."""

    def fetch(self, reference: DistributionReference, destination: Path) -> Path:
        """Descarga `reference` y deja el rootfs comprimido en `destination`."""

        ...


@runtime_checkable
class WslManager(Protocol):
    """Operaciones sobre instancias WSL.

    Reglas de diseño:
    - Todas bloquean hasta que termina el proceso externo.
    - Ninguna reintenta: el primer fallo se propaga.
    """

    def list_instances(self) -> list[str]:
        ...

    def is_registered(self, name: str) -> bool:
        ...

    def import_instance(self, name: str, install_dir: Path, tarball: Path) -> None:
        ...

    def unregister(self, name: str) -> None:
        ...

    def set_default_user(self, name: str, username: str) -> None:
        ...

    def create_user(self, name: str, username: str, password: str) -> None:
        ...
