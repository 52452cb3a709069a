"""Init command -- write a starter setup file.

Implements the ``rcsetup init`` top-level command. This is the typical
entry point for first-time setup: it derives a product id prefix from the
app name, builds the standard preset (monthly and annual subscriptions
with a 7-day trial, a ``pro`` entitlement granted by both, and a current
``default`` offering), validates it, and writes it as YAML or JSON.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import typer

from rcsetup.commands import exit_on_error
from rcsetup.models import (
    AppSpec,
    EntitlementSpec,
    OfferingSpec,
    PackageSpec,
    PackageType,
    ProductSpec,
    ProductType,
    SetupConfig,
    SubscriptionDuration,
)
from rcsetup.output import debug, info, success, suggest

_PREFIX_MAX_LENGTH = 20
STARTER_TRIAL_DAYS = 7


def init_command(
    ctx: typer.Context,
    app_name: str = typer.Option(
        ..., "--app-name", "-a", help="App display name; also seeds the product ids."
    ),
    bundle_id: Optional[str] = typer.Option(
        None, "--bundle-id", help="iOS bundle id, e.g. com.example.app."
    ),
    package_name: Optional[str] = typer.Option(
        None, "--package-name", help="Android package name, e.g. com.example.app."
    ),
    project_id: Optional[str] = typer.Option(
        None, "--project-id", help="Existing RevenueCat project id."
    ),
    project_name: Optional[str] = typer.Option(
        None,
        "--project-name",
        help="Name of a project to create (defaults to the app name).",
    ),
    output: str = typer.Option(
        "revenuecat.yaml", "--output", "-o", help="Where to write the setup file."
    ),
) -> None:
    """Write the standard starter setup file.

    Args:
        ctx: Typer context; the global ``--force`` flag allows overwriting
            an existing file.
        app_name: Human-readable app name. Lowercased and stripped of
            anything but ``[a-z0-9]`` to form the product id prefix.
        bundle_id: iOS bundle id. Omit for Android-only apps.
        package_name: Android package name. Omit for iOS-only apps.
        project_id: Provision into this existing project.
        project_name: Create a project with this name. Ignored when
            *project_id* is given.
        output: Destination path. ``.yaml``/``.yml`` writes YAML, anything
            else JSON.

    Example::

        rcsetup init --app-name "My App" --bundle-id com.example.myapp
        rcsetup init -a "My App" --package-name com.example.myapp -o setup.json
    """
    from rcsetup.config import save_setup
    from rcsetup.exceptions import InvalidUsageError
    from rcsetup.validation import validate_setup

    options = ctx.obj or {}

    with exit_on_error():
        path = Path(output)
        if path.exists() and not options.get("force"):
            raise InvalidUsageError(
                f"{path} already exists; pass --force to overwrite it"
            )

        setup = build_starter_setup(
            app_name,
            bundle_id=bundle_id,
            package_name=package_name,
            project_id=project_id,
            project_name=project_name,
        )
        validate_setup(setup)
        debug(f"Product prefix: {product_prefix(app_name)}")

        save_setup(setup, path)

    for product in setup.products:
        info(f"Product: {product.id} ({product.display_name})")
    success(f"Setup file written to {path}")
    suggest(f"Review it, then run: rcsetup provision --config {path}")


def product_prefix(app_name: str) -> str:
    """Derive a product id prefix from an app name.

    >>> product_prefix("My Great App!")
    'mygreatapp'
    """
    prefix = re.sub(r"\s+", "", app_name.lower())
    prefix = re.sub(r"[^a-z0-9]", "", prefix)
    return prefix[:_PREFIX_MAX_LENGTH] or "app"


def build_starter_setup(
    app_name: str,
    bundle_id: Optional[str] = None,
    package_name: Optional[str] = None,
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
) -> SetupConfig:
    """Build the standard preset for *app_name*."""
    prefix = product_prefix(app_name)
    monthly = ProductSpec(
        id=f"{prefix}_pro_monthly",
        display_name="Pro Monthly",
        type=ProductType.SUBSCRIPTION,
        duration=SubscriptionDuration.MONTHLY,
        trial_period_days=STARTER_TRIAL_DAYS,
    )
    annual = ProductSpec(
        id=f"{prefix}_pro_annual",
        display_name="Pro Annual",
        type=ProductType.SUBSCRIPTION,
        duration=SubscriptionDuration.ANNUAL,
        trial_period_days=STARTER_TRIAL_DAYS,
    )

    app = None
    if bundle_id or package_name:
        app = AppSpec(
            display_name=app_name,
            ios_bundle_id=bundle_id,
            android_package_name=package_name,
        )

    return SetupConfig(
        project_id=project_id,
        project_name=None if project_id else (project_name or app_name),
        app=app,
        products=[monthly, annual],
        entitlements=[
            EntitlementSpec(
                id="pro",
                display_name="Pro Access",
                product_ids=[monthly.id, annual.id],
            )
        ],
        offerings=[
            OfferingSpec(
                id="default",
                is_current=True,
                packages=[
                    PackageSpec(type=PackageType.MONTHLY, product_id=monthly.id),
                    PackageSpec(type=PackageType.ANNUAL, product_id=annual.id),
                ],
            )
        ],
    )
