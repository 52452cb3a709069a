"""Provisioning orchestrator.

Runs the provisioners in dependency order and threads the ids each stage
produces into the next::

    project -> apps -> products -> entitlements -> offerings -> SDK keys
                          |             ^              ^
                          +-- id map ---+--------------+

The API key is checked once, before the first creation call. The product
id map is complete and frozen before any consumer reads it. The first
exception from any stage ends the run and propagates unchanged;
retries happen per remote call, never per stage.
"""

from __future__ import annotations

from typing import Optional

import httpx

from rcsetup.client.async_client import AsyncClient
from rcsetup.client.revenuecat import RevenueCatClient
from rcsetup.exceptions import AuthError
from rcsetup.models import ProvisioningReport, SetupConfig
from rcsetup.output import debug, info, section
from rcsetup.provisioning.apps import fetch_sdk_keys, provision_apps, provision_project
from rcsetup.provisioning.entitlements import provision_entitlements
from rcsetup.provisioning.offerings import provision_offerings
from rcsetup.provisioning.products import provision_products
from rcsetup.retry import retry_with_backoff


class Provisioner:
    """Provision everything a :class:`~rcsetup.models.SetupConfig` declares.

    Args:
        client: Client for the target API. Its ``project_id`` is set (or
            overwritten) by the project stage.
        setup: Validated setup; see :func:`~rcsetup.validation.validate_setup`.
        fetch_keys: Retrieve public SDK keys for the apps after provisioning.
    """

    def __init__(
        self,
        client: RevenueCatClient,
        setup: SetupConfig,
        fetch_keys: bool = True,
    ) -> None:
        self._client = client
        self._setup = setup
        self._fetch_keys = fetch_keys

    async def run(self) -> ProvisioningReport:
        """Run every stage in order and return the report.

        Raises:
            AuthError: If the API rejects the key.
            RcsetupError: Whatever the failing stage raised, unchanged.
        """
        setup = self._setup
        retry = setup.retry
        report = ProvisioningReport()

        valid = await retry_with_backoff(
            self._client.validate_api_key, retry, description="validate API key"
        )
        if not valid:
            raise AuthError("HTTP 401: RevenueCat rejected the API key", 401)
        debug("API key accepted")

        section("Project")
        report.project = await provision_project(
            self._client, setup.project_id, setup.project_name, retry
        )
        report.project_id = self._client.project_id

        app_ids: dict[str, str] = {}
        owner_app_id: Optional[str] = None
        if setup.app is not None:
            section("Apps")
            apps = await provision_apps(self._client, setup.app, retry)
            report.apps = apps.outcomes
            app_ids = apps.app_ids
            owner_app_id = apps.primary_app_id

        section("Products")
        products = await provision_products(
            self._client, setup.products, owner_app_id, retry
        )
        report.products = products.outcomes
        info(f"{products.created_count} of {len(setup.products)} product(s) created")
        report.product_ids = dict(products.id_map)

        section("Entitlements")
        report.entitlements = await provision_entitlements(
            self._client, setup.entitlements, products.id_map, retry
        )

        section("Offerings")
        offerings = await provision_offerings(
            self._client, setup.offerings, products.id_map, retry
        )
        report.offerings = offerings.offerings
        report.packages = offerings.packages

        if self._fetch_keys and app_ids:
            section("SDK keys")
            report.sdk_keys = await fetch_sdk_keys(self._client, app_ids)

        return report


async def provision(
    setup: SetupConfig,
    api_key: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    fetch_keys: bool = True,
) -> ProvisioningReport:
    """Open a client for *setup* and run a :class:`Provisioner`.

    Args:
        setup: Validated setup.
        api_key: Secret API key.
        transport: Optional httpx transport (tests).
        fetch_keys: Retrieve public SDK keys after provisioning.
    """
    async with AsyncClient(api_key, setup.api, transport=transport) as http:
        client = RevenueCatClient(http, project_id=setup.project_id)
        return await Provisioner(client, setup, fetch_keys=fetch_keys).run()
