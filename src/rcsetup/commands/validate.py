"""Validate command -- check a setup file without touching the network."""

from __future__ import annotations

from typing import Optional

import typer

from rcsetup.commands import exit_on_error
from rcsetup.output import info, success, suggest


def validate_command(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Setup file (JSON or YAML)."
    ),
) -> None:
    """Validate a setup file offline.

    Parses the file, then checks product ids, bundle ids, package names and
    every product reference. All problems are reported together.

    Example::

        rcsetup validate --config revenuecat.yaml
    """
    from rcsetup.config import apply_overrides, load_setup, resolve_settings
    from rcsetup.validation import validate_setup

    with exit_on_error():
        settings = resolve_settings(cli_setup_file=config)
        info(f"Validating {settings.setup_file}")
        setup = apply_overrides(load_setup(settings.setup_file), settings)
        validate_setup(setup)

    success(
        f"Setup is valid: {len(setup.products)} product(s), "
        f"{len(setup.entitlements)} entitlement(s), "
        f"{len(setup.offerings)} offering(s)."
    )
    suggest(f"Provision it: rcsetup provision --config {settings.setup_file}")
