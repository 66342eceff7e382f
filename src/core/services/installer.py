"""Install/uninstall orchestration.

This module owns the control flow of every subcommand: parse the reference,
fetch the rootfs into the cache, import it into WSL and clean up. The CLI
only collects arguments and renders results, which keeps side-effects
(printing, prompts, spinners) out of the core logic and lets tests drive the
flow with fake fetchers and WSL managers.

Tarball policy: the cached tarball is removed only after a successful
import. When the import fails it stays in the cache so a retry does not
need to pull the image again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from adapters.container_fetcher import ContainerFetcher
from adapters.tarball_cache import TarballCache
from adapters.wsl_controller import WslController
from core.config import AppSettings
from core.domain.errors import ImportFailed, UnregisterFailed, UserCreationFailed
from core.domain.models import CacheEntry, DistributionReference, is_valid_username
from core.interfaces.runtime import ImageFetcher, WslManager

logger = logging.getLogger(__name__)


@dataclass
class NewUser:
    """Initial UNIX account created right after the import."""

    username: str
    password: str


@dataclass
class InstallRequest:
    """Parameters that control an install."""

    reference: DistributionReference
    instance_name: str | None = None
    keep_tarball: bool = False
    user: NewUser | None = None


@dataclass
class ServiceHooks:
    """Optional callbacks for UI layers (progress messages)."""

    step: Callable[[str], None] | None = None


@dataclass
class InstallResult:
    instance_name: str
    reference: DistributionReference
    install_dir: Path
    tarball: Path
    tarball_removed: bool
    default_user: str | None = None


def _remove_empty_dir(path: Path) -> None:
    try:
        path.rmdir()
    except OSError:
        # Missing, or WSL left files behind: leave it alone.
        pass


class InstallerService:
    def __init__(
        self,
        *,
        settings: AppSettings,
        fetcher: ImageFetcher,
        wsl: WslManager,
        cache: TarballCache,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher
        self._wsl = wsl
        self._cache = cache

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "InstallerService":
        settings = settings or AppSettings()
        return cls(
            settings=settings,
            fetcher=ContainerFetcher(settings),
            wsl=WslController(settings),
            cache=TarballCache.from_settings(settings),
        )

    @property
    def cache(self) -> TarballCache:
        return self._cache

    def resolve(self, raw: str) -> DistributionReference:
        """Parse `raw` and apply the configured default tag."""

        return DistributionReference.parse(raw).with_default_tag(self._settings.default_tag)

    def install_dir_for(self, instance_name: str) -> Path:
        return self._settings.resolved_install_root() / instance_name

    def install(self, request: InstallRequest, hooks: ServiceHooks | None = None) -> InstallResult:
        """Fetch the rootfs and register it as a new WSL instance.

        Exactly one fetch followed by exactly one import. The name check runs
        first so an already registered name fails before anything is pulled.
        """

        hooks = hooks or ServiceHooks()
        reference = request.reference.with_default_tag(self._settings.default_tag)
        instance_name = request.instance_name or reference.default_instance_name

        if request.user is not None and not is_valid_username(request.user.username):
            raise UserCreationFailed(f"Invalid UNIX username: {request.user.username!r}")

        if self._wsl.is_registered(instance_name):
            raise ImportFailed(f"Distribution `{instance_name}` is already registered")

        tarball = self._cache.path(reference)
        self._notify(hooks, f"Downloading rootfs image {reference.image}...")
        self._fetcher.fetch(reference, tarball)

        install_dir = self.install_dir_for(instance_name)
        self._notify(hooks, f"Registering distribution {instance_name}...")
        try:
            self._wsl.import_instance(instance_name, install_dir, tarball)
        except ImportFailed:
            _remove_empty_dir(install_dir)
            logger.info(f"Import failed; keeping {tarball} for a retry")
            raise

        tarball_removed = False
        if not (request.keep_tarball or self._settings.keep_tarball):
            tarball_removed = self._cache.remove(reference)

        default_user = None
        if request.user is not None:
            self._notify(hooks, f"Creating user {request.user.username}...")
            self._wsl.create_user(instance_name, request.user.username, request.user.password)
            self._wsl.set_default_user(instance_name, request.user.username)
            default_user = request.user.username

        return InstallResult(
            instance_name=instance_name,
            reference=reference,
            install_dir=install_dir,
            tarball=tarball,
            tarball_removed=tarball_removed,
            default_user=default_user,
        )

    def download(
        self,
        reference: DistributionReference,
        output: Path | None = None,
        hooks: ServiceHooks | None = None,
    ) -> Path:
        """Fetch the rootfs without touching WSL.

        Without `output` the tarball goes to the cache path of `reference`; an
        existing directory receives the cache file name inside it.
        """

        hooks = hooks or ServiceHooks()
        reference = reference.with_default_tag(self._settings.default_tag)

        if output is None:
            destination = self._cache.path(reference)
        elif output.is_dir():
            destination = output / reference.tarball_name
        else:
            destination = output

        self._notify(hooks, f"Downloading rootfs image {reference.image}...")
        return self._fetcher.fetch(reference, destination)

    def uninstall(self, instance_name: str, hooks: ServiceHooks | None = None) -> None:
        hooks = hooks or ServiceHooks()
        if not self._wsl.is_registered(instance_name):
            raise UnregisterFailed(f"Distribution `{instance_name}` is not installed")

        self._notify(hooks, f"Uninstalling {instance_name}...")
        self._wsl.unregister(instance_name)
        _remove_empty_dir(self.install_dir_for(instance_name))

    def is_installed(self, instance_name: str) -> bool:
        return self._wsl.is_registered(instance_name)

    def list_instances(self) -> list[str]:
        return self._wsl.list_instances()

    def set_default_user(self, instance_name: str, username: str) -> None:
        self._wsl.set_default_user(instance_name, username)

    def cached_tarballs(self) -> list[CacheEntry]:
        return self._cache.entries()

    def clean(self, reference: DistributionReference | None = None) -> int:
        """Remove one cached tarball (or all of them). Returns how many were removed."""

        if reference is None:
            return self._cache.clear()
        reference = reference.with_default_tag(self._settings.default_tag)
        return 1 if self._cache.remove(reference) else 0

    @staticmethod
    def _notify(hooks: ServiceHooks, message: str) -> None:
        logger.debug(message)
        if hooks.step:
            hooks.step(message)
