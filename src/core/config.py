"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que los adaptadores (docker, wsl.exe, caché) lean config de forma consistente.

No hay fichero de configuración: el único estado persistente son los tarballs
del directorio de caché.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "wsl-get"


def get_user_cache_dir() -> Path:
    """Directorio de caché por usuario (cross-platform, sin dependencias).

    Aquí se guardan los tarballs descargados.
    """

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("LOCALAPPDATA", str(Path.home() / "AppData" / "Local")))
        return base / APP_NAME / "cache"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / APP_NAME

    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".cache" / APP_NAME


def get_user_data_dir() -> Path:
    """Directorio de datos por usuario.

    `wsl.exe --import` necesita un directorio donde dejar el disco virtual de
    cada instancia; vive aquí y no en la caché para que limpiar la caché nunca
    borre una instancia.
    """

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("LOCALAPPDATA", str(Path.home() / "AppData" / "Local")))
        return base / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="WSL_GET_",
        extra="ignore",
        case_sensitive=False,
    )

    container_runtime: str = Field(
        default="docker",
        min_length=1,
        description="CLI de contenedores compatible con docker (docker, podman...).",
    )
    wsl_executable: str = Field(
        default="wsl.exe",
        min_length=1,
        description="Ejecutable de gestión de WSL.",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Directorio de tarballs (por defecto, la caché del usuario).",
    )
    install_root: Path | None = Field(
        default=None,
        description="Directorio base donde WSL guarda cada instancia importada.",
    )
    default_tag: str = Field(
        default="latest",
        min_length=1,
        description="Tag usado cuando la referencia no trae uno.",
    )
    wsl_version: int = Field(
        default=2,
        ge=1,
        le=2,
        description="Versión de WSL para `--import --version`.",
    )
    compress_level: int = Field(
        default=1,
        ge=0,
        le=9,
        description="Nivel gzip del rootfs exportado (1 = rápido).",
    )
    command_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Timeout por comando externo (segundos). None = sin límite.",
    )
    keep_tarball: bool = Field(
        default=False,
        description="Conservar el tarball en caché tras una instalación correcta.",
    )

    def resolved_cache_dir(self) -> Path:
        return self.cache_dir or get_user_cache_dir()

    def resolved_install_root(self) -> Path:
        return self.install_root or (get_user_data_dir() / "instances")
