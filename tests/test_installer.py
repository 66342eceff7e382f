"""Tests for the install/uninstall orchestration service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest

from adapters.tarball_cache import TarballCache
from core.config import AppSettings
from core.domain.errors import FetchFailed, ImportFailed, UnregisterFailed, UserCreationFailed
from core.domain.models import DistributionReference, parse_reference
from core.interfaces.runtime import ImageFetcher, WslManager
from core.services.installer import InstallerService, InstallRequest, NewUser, ServiceHooks


class RecordingFetcher:
    """Writes a fake tarball and records the call on a shared timeline."""

    def __init__(self, timeline: list[str], error: Optional[Exception] = None) -> None:
        self.timeline = timeline
        self.error = error
        self.calls: list[tuple[DistributionReference, Path]] = []

    def fetch(self, reference: DistributionReference, destination: Path) -> Path:
        self.calls.append((reference, destination))
        self.timeline.append("fetch")
        if self.error:
            raise self.error
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"tarball")
        return destination


@pytest.fixture
def timeline() -> list[str]:
    return []


@pytest.fixture
def fetcher(timeline: list[str]) -> RecordingFetcher:
    return RecordingFetcher(timeline)


@pytest.fixture
def wsl(timeline: list[str]) -> Mock:
    mock = Mock(spec=WslManager)
    mock.is_registered.return_value = False
    mock.list_instances.return_value = ["Ubuntu", "debian"]
    mock.import_instance.side_effect = lambda *args: timeline.append("import")
    return mock


@pytest.fixture
def cache(settings: AppSettings) -> TarballCache:
    return TarballCache.from_settings(settings)


@pytest.fixture
def service(settings: AppSettings, fetcher: RecordingFetcher, wsl: Mock, cache: TarballCache) -> InstallerService:
    return InstallerService(settings=settings, fetcher=fetcher, wsl=wsl, cache=cache)


def test_fake_fetcher_satisfies_protocol(fetcher: RecordingFetcher) -> None:
    assert isinstance(fetcher, ImageFetcher)


class TestInstall:
    def test_one_fetch_then_one_import(
        self, service: InstallerService, fetcher: RecordingFetcher, wsl: Mock, timeline: list[str], settings: AppSettings
    ) -> None:
        result = service.install(InstallRequest(reference=parse_reference("ubuntu:24.04")))

        assert timeline == ["fetch", "import"]
        assert len(fetcher.calls) == 1
        wsl.import_instance.assert_called_once_with(
            "ubuntu",
            settings.install_root / "ubuntu",
            settings.cache_dir / "ubuntu-24.04.tar.gz",
        )
        assert result.instance_name == "ubuntu"

    def test_instance_name_defaults_to_distribution_name(self, service: InstallerService, wsl: Mock) -> None:
        result = service.install(InstallRequest(reference=parse_reference("library/debian")))
        assert result.instance_name == "library-debian"
        assert wsl.import_instance.call_args.args[0] == "library-debian"

    def test_explicit_instance_name(self, service: InstallerService, wsl: Mock) -> None:
        result = service.install(InstallRequest(reference=parse_reference("ubuntu"), instance_name="ubuntu-2"))
        assert result.instance_name == "ubuntu-2"
        wsl.is_registered.assert_called_once_with("ubuntu-2")

    def test_tarball_removed_after_successful_import(self, service: InstallerService, cache: TarballCache) -> None:
        result = service.install(InstallRequest(reference=parse_reference("ubuntu")))

        assert result.tarball_removed is True
        assert not result.tarball.exists()
        assert cache.entries() == []

    def test_keep_tarball(self, service: InstallerService) -> None:
        result = service.install(InstallRequest(reference=parse_reference("ubuntu"), keep_tarball=True))
        assert result.tarball_removed is False
        assert result.tarball.exists()

    def test_already_registered_fails_before_fetch(
        self, service: InstallerService, fetcher: RecordingFetcher, wsl: Mock
    ) -> None:
        wsl.is_registered.return_value = True

        with pytest.raises(ImportFailed, match="ubuntu-2"):
            service.install(InstallRequest(reference=parse_reference("ubuntu"), instance_name="ubuntu-2"))

        assert fetcher.calls == []
        wsl.import_instance.assert_not_called()

    def test_failed_import_keeps_tarball(
        self, service: InstallerService, wsl: Mock, cache: TarballCache, settings: AppSettings
    ) -> None:
        wsl.import_instance.side_effect = ImportFailed("Failed to register distribution `ubuntu-2`", detail="already exists")

        with pytest.raises(ImportFailed) as excinfo:
            service.install(InstallRequest(reference=parse_reference("ubuntu"), instance_name="ubuntu-2"))

        assert excinfo.value.detail == "already exists"
        assert cache.exists(parse_reference("ubuntu"))
        assert not (settings.install_root / "ubuntu-2").exists()

    def test_fetch_failure_skips_import(self, settings: AppSettings, wsl: Mock, cache: TarballCache, timeline: list[str]) -> None:
        fetcher = RecordingFetcher(timeline, error=FetchFailed("Failed to pull image nope:latest"))
        service = InstallerService(settings=settings, fetcher=fetcher, wsl=wsl, cache=cache)

        with pytest.raises(FetchFailed):
            service.install(InstallRequest(reference=parse_reference("nope")))

        wsl.import_instance.assert_not_called()

    def test_creates_user_and_sets_default(self, service: InstallerService, wsl: Mock) -> None:
        result = service.install(
            InstallRequest(reference=parse_reference("ubuntu"), user=NewUser(username="alice", password="pw"))
        )

        wsl.create_user.assert_called_once_with("ubuntu", "alice", "pw")
        wsl.set_default_user.assert_called_once_with("ubuntu", "alice")
        assert result.default_user == "alice"

    def test_invalid_username_rejected_before_anything_runs(
        self, service: InstallerService, fetcher: RecordingFetcher
    ) -> None:
        with pytest.raises(UserCreationFailed):
            service.install(
                InstallRequest(reference=parse_reference("ubuntu"), user=NewUser(username="Bad Name", password="pw"))
            )
        assert fetcher.calls == []

    def test_hooks_receive_progress(self, service: InstallerService) -> None:
        messages: list[str] = []
        service.install(InstallRequest(reference=parse_reference("ubuntu")), ServiceHooks(step=messages.append))
        assert messages == [
            "Downloading rootfs image ubuntu:latest...",
            "Registering distribution ubuntu...",
        ]

    def test_default_tag_from_settings(self, settings: AppSettings, fetcher: RecordingFetcher, wsl: Mock, cache: TarballCache) -> None:
        settings = settings.model_copy(update={"default_tag": "stable"})
        service = InstallerService(settings=settings, fetcher=fetcher, wsl=wsl, cache=cache)

        service.install(InstallRequest(reference=parse_reference("debian")))

        reference, destination = fetcher.calls[0]
        assert reference.image == "debian:stable"
        assert destination.name == "debian-stable.tar.gz"


class TestDownload:
    def test_writes_to_cache_path_without_wsl(
        self, service: InstallerService, wsl: Mock, settings: AppSettings
    ) -> None:
        saved = service.download(parse_reference("ubuntu"))

        assert saved == settings.cache_dir / "ubuntu-latest.tar.gz"
        assert saved.exists()
        assert wsl.mock_calls == []

    def test_output_file(self, service: InstallerService, tmp_path: Path) -> None:
        target = tmp_path / "rootfs.tar.gz"
        assert service.download(parse_reference("alpine"), target) == target

    def test_output_directory(self, service: InstallerService, tmp_path: Path) -> None:
        out_dir = tmp_path / "exports"
        out_dir.mkdir()
        assert service.download(parse_reference("alpine:3.20"), out_dir) == out_dir / "alpine-3.20.tar.gz"


class TestUninstall:
    def test_unregisters_existing_instance(self, service: InstallerService, wsl: Mock, settings: AppSettings) -> None:
        wsl.is_registered.return_value = True
        (settings.install_root / "ubuntu").mkdir(parents=True)

        service.uninstall("ubuntu")

        wsl.unregister.assert_called_once_with("ubuntu")
        assert not (settings.install_root / "ubuntu").exists()

    def test_nonexistent_name_leaves_cache_untouched(
        self, service: InstallerService, wsl: Mock, cache: TarballCache
    ) -> None:
        cache.path(parse_reference("ubuntu")).write_bytes(b"tarball")

        with pytest.raises(UnregisterFailed):
            service.uninstall("nonexistent-name")

        wsl.unregister.assert_not_called()
        assert [entry.name for entry in cache.entries()] == ["ubuntu-latest.tar.gz"]


def test_list_is_an_idempotent_read(service: InstallerService) -> None:
    assert service.list_instances() == service.list_instances() == ["Ubuntu", "debian"]


def test_set_default_user_delegates(service: InstallerService, wsl: Mock) -> None:
    service.set_default_user("ubuntu", "alice")
    wsl.set_default_user.assert_called_once_with("ubuntu", "alice")


def test_clean_single_and_all(service: InstallerService, cache: TarballCache) -> None:
    cache.path(parse_reference("ubuntu")).write_bytes(b"1")
    cache.path(parse_reference("debian:12")).write_bytes(b"2")

    assert service.clean(parse_reference("ubuntu")) == 1
    assert service.clean(parse_reference("ubuntu")) == 0
    assert service.clean() == 1
