"""Provision command -- create everything a setup file declares.

Implements ``rcsetup provision``: resolve settings, load and validate the
setup file, show the plan, ask for confirmation, resolve the API key, run
the :class:`~rcsetup.provisioning.orchestrator.Provisioner`, and print a
summary. Re-running against the same project is safe: existing resources
are reported as ``already_existed`` instead of being duplicated.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from rcsetup.commands import exit_on_error
from rcsetup.models import ProvisioningReport, ResourceKind, ResourceStatus, SetupConfig
from rcsetup.output import (
    OutputFormat,
    get_output,
    info,
    print_json,
    print_table,
    section,
    success,
    suggest,
)


def provision_command(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Setup file (JSON or YAML)."
    ),
    project_id: Optional[str] = typer.Option(
        None, "--project-id", help="Existing RevenueCat project id."
    ),
    api_key_source: Optional[str] = typer.Option(
        None,
        "--api-key-source",
        help="Where to read the secret API key: env:VAR, file:/path or prompt.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the API base URL."
    ),
    report: Optional[str] = typer.Option(
        None, "--report", help="Write the provisioning report (JSON) to this path."
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Provision without asking for confirmation."
    ),
) -> None:
    """Provision apps, products, entitlements and offerings.

    Args:
        ctx: Typer context; honours the global ``--force`` and
            ``--no-input`` flags.
        config: Setup file path (default: ``revenuecat.yaml``).
        project_id: Provision into this project instead of the one in the
            setup file.
        api_key_source: Credential source for the secret API key.
        base_url: Override for the API base URL.
        report: Path of a JSON report to write after a successful run.
        yes: Skip the confirmation prompt.

    Example::

        export REVENUECAT_API_KEY=sk_...
        rcsetup provision --config revenuecat.yaml --yes
    """
    from rcsetup.config import (
        apply_overrides,
        load_setup,
        resolve_credential,
        resolve_settings,
        save_report,
    )
    from rcsetup.exceptions import InvalidUsageError, UserCancelled
    from rcsetup.provisioning import provision
    from rcsetup.validation import validate_setup

    options = ctx.obj or {}

    with exit_on_error():
        settings = resolve_settings(
            cli_setup_file=config,
            cli_api_key_source=api_key_source,
            cli_project_id=project_id,
            cli_base_url=base_url,
        )
        setup = apply_overrides(load_setup(settings.setup_file), settings)
        validate_setup(setup)

        _show_plan(setup)

        if not (yes or options.get("force")):
            if options.get("no_input"):
                raise InvalidUsageError(
                    "Confirmation required: pass --yes to provision without prompting"
                )
            try:
                confirmed = typer.confirm("Provision these resources?", default=True)
            except typer.Abort:
                confirmed = False
            if not confirmed:
                raise UserCancelled("Setup cancelled by user")

        api_key = resolve_credential(settings.api_key_source)
        result = asyncio.run(provision(setup, api_key))

        _show_summary(result)

        if report:
            save_report(result, report)
            info(f"Report written to {report}")

    success("Provisioning complete.")
    if result.sdk_keys:
        suggest("Configure the SDK with the public keys listed above")
    suggest("Check the RevenueCat dashboard: https://app.revenuecat.com")


def _show_plan(setup: SetupConfig) -> None:
    section("Plan")
    if setup.project_id:
        info(f"Project: {setup.project_id}")
    else:
        info(f"Project: create {setup.project_name!r}")
    if setup.app is not None:
        if setup.app.ios_bundle_id:
            info(f"iOS app: {setup.app.ios_bundle_id}")
        if setup.app.android_package_name:
            info(f"Android app: {setup.app.android_package_name}")
    for product in setup.products:
        cadence = f", {product.duration.value}" if product.duration else ""
        info(f"Product: {product.effective_store_identifier} ({product.type.value}{cadence})")
    for entitlement in setup.entitlements:
        info(f"Entitlement: {entitlement.id} <- {', '.join(entitlement.product_ids) or '-'}")
    for offering in setup.offerings:
        current = " (current)" if offering.is_current else ""
        kinds = ", ".join(p.type.value for p in offering.packages) or "no packages"
        info(f"Offering: {offering.id}{current}: {kinds}")


def _show_summary(report: ProvisioningReport) -> None:
    if get_output().format == OutputFormat.JSON:
        print_json(report.model_dump(mode="json"))
        return

    section("Summary")
    rows = [
        [o.kind.value, o.identifier, o.status.value, o.remote_id or "-"]
        for o in report.outcomes()
    ]
    print_table(["kind", "identifier", "status", "remote_id"], rows, title="Provisioned resources")

    for kind in (
        ResourceKind.PRODUCT,
        ResourceKind.ENTITLEMENT,
        ResourceKind.OFFERING,
        ResourceKind.PACKAGE,
    ):
        created = report.count(kind, ResourceStatus.CREATED)
        existed = report.count(kind, ResourceStatus.ALREADY_EXISTED)
        if created or existed:
            info(f"{kind.value}s: {created} created, {existed} already existed")

    for platform, key in report.sdk_keys.items():
        info(f"{platform} public SDK key: {key}")
