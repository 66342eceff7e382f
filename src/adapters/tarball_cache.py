"""Directorio de tarballs por usuario.

Reglas:
- Un fichero por referencia (`<slug>-<tag>.tar.gz`); volver a descargar la
  misma referencia sobrescribe el mismo fichero.
- Sin política de expulsión: solo se borra a petición (`remove`/`clear`) o
  tras una importación correcta.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from core.config import AppSettings
from core.domain.errors import IOFailed
from core.domain.models import CacheEntry, DistributionReference

_TARBALL_GLOB = "*.tar.gz"


class TarballCache:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "TarballCache":
        settings = settings or AppSettings()
        return cls(settings.resolved_cache_dir())

    @property
    def directory(self) -> Path:
        """Directorio de caché (se crea si no existe)."""

        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailed(f"Failed to create cache directory {self._root}", detail=str(exc)) from exc
        return self._root

    def path(self, reference: DistributionReference) -> Path:
        return self.directory / reference.tarball_name

    def exists(self, reference: DistributionReference) -> bool:
        return (self._root / reference.tarball_name).is_file()

    def remove(self, reference: DistributionReference) -> bool:
        """Borra el tarball de `reference`. No es un error si no existe."""

        target = self._root / reference.tarball_name
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise IOFailed(f"Failed to remove cached tarball {target}", detail=str(exc)) from exc
        return True

    def entries(self) -> list[CacheEntry]:
        if not self._root.is_dir():
            return []

        out: list[CacheEntry] = []
        for path in sorted(self._root.glob(_TARBALL_GLOB)):
            if not path.is_file():
                continue
            stat = path.stat()
            out.append(
                CacheEntry(
                    path=path.resolve(),
                    size_bytes=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime),
                )
            )
        return out

    def clear(self) -> int:
        """Borra todos los tarballs de la caché y devuelve cuántos había."""

        removed = 0
        for entry in self.entries():
            try:
                entry.path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise IOFailed(f"Failed to remove cached tarball {entry.path}", detail=str(exc)) from exc
            removed += 1
        return removed
