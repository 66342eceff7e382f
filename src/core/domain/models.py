"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde (lo que escribe el usuario) sin acoplar el
  Core a docker ni a wsl.exe.
- Los modelos son inmutables una vez parseados: la misma referencia siempre
  produce el mismo nombre de imagen, de tarball y de instancia.

Nota:
- Estos modelos describen *qué* se instala, no *cómo* se obtiene.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.errors import InvalidReference

DEFAULT_TAG = "latest"

# Caracteres que Windows no acepta en nombres de fichero (más el separador `/`).
_UNSAFE_CHARS = frozenset('\\/:*?"<>|')


def sanitize_name(value: str) -> str:
    """Convierte `library/ubuntu` en `library-ubuntu` (apto para ficheros e instancias)."""

    out: list[str] = []
    for ch in value.strip():
        if ch in _UNSAFE_CHARS or ch.isspace():
            out.append("-")
        else:
            out.append(ch)
    return "".join(out)


class DistributionReference(BaseModel):
    """Referencia a una distribución: `name[:tag]`.

    Por qué existe:
    - Refleja la sintaxis de referencias de un registry de contenedores.
    - Sin tag se usa `latest`, igual que el propio runtime de contenedores.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Nombre de la imagen (p.ej. 'ubuntu', 'library/debian').",
    )
    tag: str | None = Field(
        default=None,
        min_length=1,
        description="Tag/versión de la imagen; None implica el tag por defecto.",
    )

    @classmethod
    def parse(cls, raw: str) -> "DistributionReference":
        """Divide `raw` en el PRIMER `:`.

        Reglas:
        - Sin `:` el tag queda sin definir.
        - `ubuntu:` (sufijo vacío) también deja el tag sin definir.
        - Nombre vacío -> `InvalidReference`.
        """

        value = (raw or "").strip()
        name, _, tag = value.partition(":")
        if not name:
            raise InvalidReference(f"Invalid distribution reference: {raw!r} (expected name[:tag])")
        return cls(name=name, tag=tag or None)

    @property
    def resolved_tag(self) -> str:
        return self.tag or DEFAULT_TAG

    @property
    def image(self) -> str:
        """Referencia completa que se le pasa al runtime (`name:tag`)."""

        return f"{self.name}:{self.resolved_tag}"

    @property
    def slug(self) -> str:
        return sanitize_name(self.name)

    @property
    def tarball_name(self) -> str:
        return f"{self.slug}-{sanitize_name(self.resolved_tag)}.tar.gz"

    @property
    def default_instance_name(self) -> str:
        return self.slug

    def with_default_tag(self, tag: str) -> "DistributionReference":
        """Devuelve una copia con `tag` si la referencia no trae uno propio."""

        if self.tag:
            return self
        return DistributionReference(name=self.name, tag=tag)

    def __str__(self) -> str:
        return self.image


def parse_reference(raw: str) -> DistributionReference:
    return DistributionReference.parse(raw)


# Mismo criterio que `useradd` (NAME_REGEX por defecto de Debian/Ubuntu).
_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}\$?$")


def is_valid_username(value: str) -> bool:
    return bool(_USERNAME_RE.match(value or ""))


class CacheEntry(BaseModel):
    """Tarball presente en el directorio de caché."""

    path: Path = Field(..., description="Ruta absoluta del tarball.")
    size_bytes: int = Field(..., ge=0, description="Tamaño en bytes.")
    modified_at: datetime = Field(..., description="Última modificación (hora local).")

    @property
    def name(self) -> str:
        return self.path.name
