"""Salida JSON para `list --json` y `clean --list --json`.

Por qué JSON:
- Interoperabilidad con scripts (PowerShell, jq) sin parsear tablas Rich.
- El orden de las instancias se conserva tal cual lo devuelve wsl.exe.
"""

from __future__ import annotations

import json
from typing import Iterable, Sequence

from core.domain.models import CacheEntry


def render_instances_json(names: Sequence[str]) -> str:
    """Lista de instancias como JSON UTF-8 con formato estable."""

    return json.dumps({"instances": list(names)}, ensure_ascii=False, indent=2) + "\n"


def render_cache_json(entries: Iterable[CacheEntry]) -> str:
    payload = [entry.model_dump(mode="json") for entry in entries]
    return json.dumps({"tarballs": payload}, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
