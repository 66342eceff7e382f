"""Adaptadores a herramientas externas: subprocess, docker, wsl.exe, disco."""
