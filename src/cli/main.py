"""CLI de wsl-get (Typer).

Por qué una capa fina:
- Aquí solo se validan argumentos, se pregunta al usuario y se pinta el
  resultado; el flujo vive en `core.services.installer`.
- Todos los errores del dominio se convierten en un único punto en un panel
  rojo + exit code 1. Los errores de uso (argumentos) los gestiona Typer/Click
  con exit code 2, antes de lanzar ningún proceso.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import render_cache_json, render_instances_json
from cli import doctor
from cli.ui_components import build_cache_table, build_error_panel
from core.config import AppSettings
from core.domain.errors import ImportFailed, UnregisterFailed, WslGetError
from core.domain.models import is_valid_username
from core.services.installer import InstallerService, InstallRequest, NewUser, ServiceHooks

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Install Linux distributions into WSL2 from container images.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _get_version() -> str:
    try:
        return package_version("wsl-get")
    except PackageNotFoundError:
        return "0+unknown"


def configure_logging(verbose: bool) -> None:
    """Logs a stderr con Rich. WARNING por defecto, DEBUG con --verbose."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"wsl-get {_get_version()}")
        raise typer.Exit()


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs (external commands)."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    configure_logging(verbose)


@contextmanager
def _handled_errors() -> Iterator[None]:
    try:
        yield
    except WslGetError as exc:
        _err_console.print(build_error_panel(exc))
        raise typer.Exit(code=1) from exc


def _build_service() -> InstallerService:
    try:
        settings = AppSettings()
    except ValidationError as exc:
        _err_console.print(f"[red]Invalid WSL_GET_* environment configuration:[/red]\n{exc}")
        raise typer.Exit(code=1) from exc
    return InstallerService.from_settings(settings)


def _prompt_new_user() -> NewUser:
    username = typer.prompt("Enter new UNIX username").strip()
    if not is_valid_username(username):
        raise typer.BadParameter(f"invalid UNIX username: {username!r}")
    password = typer.prompt(
        "New password",
        hide_input=True,
        confirmation_prompt="Retype new password",
    )
    return NewUser(username=username, password=password)


@app.command()
def install(
    distribution: str = typer.Argument(..., help="Distribution to install (e.g. ubuntu, ubuntu:24.04)."),
    instance_name: Optional[str] = typer.Argument(
        None, help="Name of the WSL instance (defaults to the distribution name)."
    ),
    no_user: bool = typer.Option(False, "--no-user", help="Do not add a user after installation."),
    keep_tarball: bool = typer.Option(
        False, "--keep-tarball", help="Keep the rootfs tarball in the cache after a successful import."
    ),
) -> None:
    """Install a distribution as a new WSL instance."""

    with _handled_errors():
        service = _build_service()
        reference = service.resolve(distribution)
        name = instance_name or reference.default_instance_name

        # Antes de pedir usuario/contraseña: no tiene sentido preguntar si va a fallar.
        if service.is_installed(name):
            raise ImportFailed(f"Distribution `{name}` is already registered")

        user = None if no_user else _prompt_new_user()

        _console.print(f"Installing [cyan]{reference.image}[/cyan] as [bold]{name}[/bold]")
        with _console.status("Preparing...") as status:
            hooks = ServiceHooks(step=status.update)
            result = service.install(
                InstallRequest(
                    reference=reference,
                    instance_name=name,
                    keep_tarball=keep_tarball,
                    user=user,
                ),
                hooks,
            )

        if not result.tarball_removed:
            _console.print(f"Rootfs tarball kept at {result.tarball}", style="dim")
        if result.default_user:
            _console.print(f"Default user: [bold]{result.default_user}[/bold]")
        _console.print("[green]Complete![/green]")


@app.command()
def uninstall(
    instance_name: str = typer.Argument(..., help="Name of the WSL instance to uninstall."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to all questions."),
) -> None:
    """Unregister a WSL instance and delete its disk."""

    with _handled_errors():
        service = _build_service()
        if not service.is_installed(instance_name):
            raise UnregisterFailed(f"Distribution `{instance_name}` is not installed")

        if not yes and not typer.confirm(f"Do you really want to uninstall {instance_name}?"):
            _console.print("Cancelled.")
            return

        service.uninstall(instance_name)
        _console.print("[green]Complete![/green]")


@app.command(name="list")
def list_(
    json_output: bool = typer.Option(False, "--json", help="Print the list as JSON."),
) -> None:
    """List installed WSL instances (in WSL's own order)."""

    with _handled_errors():
        names = _build_service().list_instances()

    if json_output:
        typer.echo(render_instances_json(names), nl=False)
        return

    if not names:
        _err_console.print("No distributions installed.", style="dim")
        return
    for name in names:
        typer.echo(name)


@app.command(name="set-default-user")
def set_default_user(
    instance_name: str = typer.Argument(..., help="Name of the WSL instance."),
    username: str = typer.Argument(..., help="Existing user inside the instance."),
) -> None:
    """Set the default login user of a WSL instance."""

    with _handled_errors():
        _build_service().set_default_user(instance_name, username)
        _console.print(f"Default user of [bold]{instance_name}[/bold] set to [bold]{username}[/bold]")


@app.command()
def download(
    distribution: str = typer.Argument(..., help="Distribution to download (e.g. ubuntu, ubuntu:24.04)."),
    output_path: Optional[Path] = typer.Argument(
        None, help="File or directory to write to (defaults to the cache directory)."
    ),
) -> None:
    """Download the rootfs tarball of a distribution without installing it."""

    with _handled_errors():
        service = _build_service()
        reference = service.resolve(distribution)
        with _console.status("Preparing...") as status:
            saved = service.download(reference, output_path, ServiceHooks(step=status.update))
        _console.print(f"Saved rootfs to {saved}")


@app.command()
def clean(
    distribution: Optional[str] = typer.Argument(
        None, help="Remove only the tarball of this distribution (default: all)."
    ),
    list_only: bool = typer.Option(False, "--list", help="Only list cached tarballs."),
    json_output: bool = typer.Option(False, "--json", help="With --list, print JSON."),
) -> None:
    """Remove (or list) cached rootfs tarballs."""

    with _handled_errors():
        service = _build_service()
        if list_only:
            entries = service.cached_tarballs()
            if json_output:
                typer.echo(render_cache_json(entries), nl=False)
            else:
                _console.print(build_cache_table(entries))
            return

        reference = service.resolve(distribution) if distribution else None
        removed = service.clean(reference)
        _console.print(f"Removed {removed} cached tarball(s).")


@app.command(name="help")
def help_(ctx: typer.Context) -> None:
    """Show this message."""

    parent = ctx.parent or ctx
    typer.echo(parent.get_help())


def run() -> None:
    app(prog_name="wsl-get")
