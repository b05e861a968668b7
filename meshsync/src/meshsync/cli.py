"""meshsync command-line interface for configuration maintenance.

What:
  Provide a Typer-based entry point to create, check, migrate, display and
  compare node configuration files without starting a node.

Why:
  Operators upgrading a node want to see what the new release will make of
  their configuration (migrations applied, folders disabled, devices
  dropped) before it runs, and scripts need exit codes they can act on.

How:
  Every command resolves the configuration path (``--config``, then
  ``MESHSYNC_CONFIG_PATH``, then the default locations) and the local
  identity (``--device-id`` or ``MESHSYNC_DEVICE_ID``), then delegates to
  :mod:`meshsync.config`. Diagnostics go to ``stderr`` as JSON lines; results
  go to ``stdout``.

Interfaces:
  ``app`` (Typer application) with ``generate``, ``check``, ``migrate``,
  ``show`` and ``diff``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - ``migrate`` refuses to overwrite a file that did not decode cleanly
    unless ``--force`` is given.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import typer
import yaml

from .config import (
    ConfigDecodeError,
    Configuration,
    load,
    new,
    resolve_config_path,
    restart_reasons,
)
from .protocol.device_id import DeviceID, InvalidDeviceID
from .utils.logging import get_logger


app = typer.Typer(help="meshsync configuration maintenance")

LOGGER = get_logger("cli")


def _device_id(text: str) -> DeviceID:
    try:
        return DeviceID.from_string(text)
    except InvalidDeviceID as exc:
        raise typer.BadParameter(str(exc), param_hint="--device-id") from exc


def _load(path: Path, my_id: DeviceID) -> Tuple[Configuration, List[str]]:
    """Load ``path`` and return the configuration with any decode problems.

    Exits with code 1 when the file cannot be read at all.
    """

    try:
        return load(path, my_id, logger=LOGGER), []
    except ConfigDecodeError as exc:
        return exc.config, exc.problems  # type: ignore[return-value]
    except OSError as exc:
        typer.echo(f"cannot read {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("generate")
def generate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    device_id: str = typer.Option(..., "--device-id", envvar="MESHSYNC_DEVICE_ID", help="Identity of the local device"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a fresh default configuration."""

    path = resolve_config_path(config)
    if path.exists() and not force:
        typer.echo(f"{path} already exists; use --force to overwrite", err=True)
        raise typer.Exit(code=1)
    path.parent.mkdir(parents=True, exist_ok=True)
    cfg = new(path, _device_id(device_id), logger=LOGGER)
    try:
        cfg.save(logger=LOGGER)
    except OSError as exc:
        raise typer.Exit(code=1) from exc
    typer.echo(str(path))


@app.command("check")
def check(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    device_id: str = typer.Option(..., "--device-id", envvar="MESHSYNC_DEVICE_ID", help="Identity of the local device"),
) -> None:
    """Report decode problems and disabled folders; exit 1 when any exist."""

    path = resolve_config_path(config)
    cfg, problems = _load(path, _device_id(device_id))
    for problem in problems:
        typer.echo(f"decode: {problem}")
    invalid = [folder for folder in cfg.folders if folder.invalid]
    for folder in invalid:
        typer.echo(f"folder {folder.id!r}: {folder.invalid}")
    if problems or invalid:
        raise typer.Exit(code=1)
    typer.echo(f"{path}: ok ({len(cfg.folders)} folders, {len(cfg.devices)} devices)")


@app.command("migrate")
def migrate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    device_id: str = typer.Option(..., "--device-id", envvar="MESHSYNC_DEVICE_ID", help="Identity of the local device"),
    force: bool = typer.Option(False, "--force", help="Save even if the file had decode problems"),
) -> None:
    """Upgrade the file to the current schema version in place."""

    path = resolve_config_path(config)
    cfg, problems = _load(path, _device_id(device_id))
    if problems and not force:
        for problem in problems:
            typer.echo(f"decode: {problem}", err=True)
        typer.echo("refusing to overwrite a damaged file; use --force", err=True)
        raise typer.Exit(code=1)
    try:
        cfg.save(logger=LOGGER)
    except OSError as exc:
        raise typer.Exit(code=1) from exc
    typer.echo(f"{path}: saved at version {cfg.version}")


@app.command("show")
def show(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    device_id: str = typer.Option(..., "--device-id", envvar="MESHSYNC_DEVICE_ID", help="Identity of the local device"),
) -> None:
    """Print the normalised configuration as YAML."""

    cfg, _problems = _load(resolve_config_path(config), _device_id(device_id))
    typer.echo(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False), nl=False)


@app.command("diff")
def diff(
    old: Path = typer.Argument(..., help="Configuration currently in use"),
    new_path: Path = typer.Argument(..., metavar="NEW", help="Proposed configuration"),
    device_id: str = typer.Option(..., "--device-id", envvar="MESHSYNC_DEVICE_ID", help="Identity of the local device"),
) -> None:
    """Tell whether replacing OLD with NEW requires a restart."""

    my_id = _device_id(device_id)
    before, _ = _load(old, my_id)
    after, _ = _load(new_path, my_id)
    reasons = restart_reasons(before, after)
    if not reasons:
        typer.echo("no restart required")
        return
    typer.echo("restart required")
    for reason in reasons:
        typer.echo(f"  {reason}")


if __name__ == "__main__":  # pragma: no cover
    app()
