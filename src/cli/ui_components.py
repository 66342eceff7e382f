"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from typing import Iterable

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.errors import WslGetError
from core.domain.models import CacheEntry


def format_size(size_bytes: int) -> str:
    value = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def build_cache_table(entries: Iterable[CacheEntry]) -> Table:
    """Tabla de tarballs en caché."""

    table = Table(title="Cached rootfs tarballs")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Size", style="white", justify="right")
    table.add_column("Modified", style="dim")
    for entry in entries:
        table.add_row(
            entry.name,
            format_size(entry.size_bytes),
            entry.modified_at.isoformat(sep=" ", timespec="seconds"),
        )
    return table


def build_error_panel(error: WslGetError) -> Panel:
    """Panel rojo con el mensaje y, debajo, la salida de la herramienta externa.

    La salida se muestra tal cual (Text plano, sin interpretar markup).
    """

    body = Text(error.message, style="bold")
    if error.detail:
        body.append("\n\n")
        body.append(error.detail, style="dim")
    return Panel(body, title=Text(type(error).__name__, style="bold red"), border_style="red")
