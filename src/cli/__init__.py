"""Capa CLI (Typer + Rich)."""
