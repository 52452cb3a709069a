"""Offering and package provisioning.

Each offering is provisioned in three steps:

1. create the offering shell;
2. for every package, in order: create the package shell, then attach its
   product -- but only when the package was created by this run. A package
   recovered from a 409 is assumed to have been attached by the run that
   created it;
3. mark the offering current when requested.

An offering that already existed is looked up by its lookup key so an
interrupted run can be finished by running again. When the lookup finds
nothing, its packages and current flag are left as they are.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from rcsetup.client.revenuecat import RevenueCatClient
from rcsetup.models import (
    Created,
    OfferingSpec,
    PackageSpec,
    ResourceKind,
    ResourceOutcome,
    RetryConfig,
)
from rcsetup.output import debug, error, warning
from rcsetup.provisioning.identifiers import RemoteIdentifierMap
from rcsetup.retry import retry_with_backoff


@dataclass
class OfferingProvisioning:
    """Result of :func:`provision_offerings`."""

    offerings: list[ResourceOutcome] = field(default_factory=list)
    packages: list[ResourceOutcome] = field(default_factory=list)


async def provision_offerings(
    client: RevenueCatClient,
    offerings: list[OfferingSpec],
    id_map: RemoteIdentifierMap,
    retry: Optional[RetryConfig] = None,
) -> OfferingProvisioning:
    """Create *offerings* with their packages and product attachments.

    Args:
        client: Client scoped to the target project.
        offerings: Offerings to create, in order.
        id_map: Frozen store identifier -> remote product id map. Unmapped
            product references are sent as-is.
        retry: Retry schedule for every remote call.

    Returns:
        Outcomes for every offering and every package that was processed.
    """
    result = OfferingProvisioning()

    for offering in offerings:
        created = await retry_with_backoff(
            lambda: client.create_offering(offering.id, offering.display_name),
            retry,
            description=f"create offering {offering.id}",
        )
        offering_id = created.remote_id
        if offering_id is None:
            existing = await client.find_offering_by_lookup_key(offering.id)
            offering_id = existing.get("id") if existing else None
            debug(f"Found existing offering: {offering.id} -> {offering_id}")
        result.offerings.append(
            ResourceOutcome.from_result(
                ResourceKind.OFFERING, offering.id, created, offering_id
            )
        )

        if offering_id is None:
            if offering.packages or offering.is_current:
                warning(
                    f"Could not resolve existing offering {offering.id}; "
                    "leaving its packages and current flag unchanged"
                )
            continue

        for package in offering.packages:
            outcome = await _provision_package(
                client, offering, offering_id, package, id_map, retry
            )
            result.packages.append(outcome)

        if offering.is_current:
            await retry_with_backoff(
                lambda: client.set_current_offering(offering_id),
                retry,
                description=f"set current offering {offering.id}",
            )

    return result


async def _provision_package(
    client: RevenueCatClient,
    offering: OfferingSpec,
    offering_id: str,
    package: PackageSpec,
    id_map: RemoteIdentifierMap,
    retry: Optional[RetryConfig],
) -> ResourceOutcome:
    lookup_key = package.type.lookup_key
    label = f"{offering.id}/{lookup_key}"
    product_id = id_map.resolve(package.product_id)

    try:
        created = await retry_with_backoff(
            lambda: client.create_package(offering_id, lookup_key, package.type.display_name),
            retry,
            description=f"create package {label}",
        )

        if isinstance(created, Created):
            package_id: Optional[str] = created.remote_id
            await retry_with_backoff(
                lambda: client.attach_product_to_package(created.remote_id, product_id),
                retry,
                description=f"attach product {package.product_id} to package {label}",
            )
        else:
            existing = await client.find_package_by_lookup_key(offering_id, lookup_key)
            package_id = existing.get("id") if existing else None
            if package_id is None:
                warning(f"Could not resolve existing package {label}")
    except Exception:
        error(f"Provisioning package {label} failed")
        raise

    return ResourceOutcome.from_result(ResourceKind.PACKAGE, label, created, package_id)
