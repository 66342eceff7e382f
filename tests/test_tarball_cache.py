"""Tests for the per-user tarball cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from adapters.tarball_cache import TarballCache
from core.config import AppSettings
from core.domain.models import parse_reference


@pytest.fixture
def cache(tmp_path: Path) -> TarballCache:
    return TarballCache(tmp_path / "cache")


def test_directory_is_created_on_demand(cache: TarballCache, tmp_path: Path) -> None:
    assert not (tmp_path / "cache").exists()
    assert cache.directory == tmp_path / "cache"
    assert (tmp_path / "cache").is_dir()


def test_path_is_deterministic(cache: TarballCache, tmp_path: Path) -> None:
    first = cache.path(parse_reference("ubuntu"))
    second = cache.path(parse_reference("ubuntu:latest"))
    assert first == second == tmp_path / "cache" / "ubuntu-latest.tar.gz"
    assert cache.path(parse_reference("ubuntu:20.04")).name == "ubuntu-20.04.tar.gz"


def test_remove_existing_file(cache: TarballCache) -> None:
    ref = parse_reference("debian:12")
    cache.path(ref).write_bytes(b"x")

    assert cache.exists(ref) is True
    assert cache.remove(ref) is True
    assert cache.exists(ref) is False


def test_remove_missing_file_is_a_noop(cache: TarballCache) -> None:
    assert cache.remove(parse_reference("never-downloaded")) is False


def test_entries_and_clear(cache: TarballCache) -> None:
    cache.path(parse_reference("ubuntu")).write_bytes(b"12345")
    cache.path(parse_reference("alpine:3.20")).write_bytes(b"1")
    (cache.directory / "notes.txt").write_text("not a tarball")

    entries = cache.entries()
    assert [entry.name for entry in entries] == ["alpine-3.20.tar.gz", "ubuntu-latest.tar.gz"]
    assert entries[1].size_bytes == 5

    assert cache.clear() == 2
    assert cache.entries() == []
    assert (cache.directory / "notes.txt").exists()


def test_entries_without_directory(tmp_path: Path) -> None:
    assert TarballCache(tmp_path / "missing").entries() == []


def test_from_settings_uses_cache_dir(settings: AppSettings) -> None:
    cache = TarballCache.from_settings(settings)
    assert cache.path(parse_reference("ubuntu")).parent == settings.cache_dir
