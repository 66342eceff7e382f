"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras y estrictas (Pydantic v2) y la
  jerarquía de errores.
- El dominio no conoce subprocess, docker ni wsl.exe: solo conceptos del problema.
"""
