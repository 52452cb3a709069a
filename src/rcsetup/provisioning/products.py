"""Product provisioning.

Creates each configured product and records its remote id under the
product's store identifier. Products that already exist are looked up by
store identifier so that later stages can still reference them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from rcsetup.client.revenuecat import RevenueCatClient
from rcsetup.models import (
    Created,
    ProductSpec,
    ProductType,
    ResourceKind,
    ResourceOutcome,
    RetryConfig,
)
from rcsetup.output import debug, warning
from rcsetup.provisioning.identifiers import RemoteIdentifierMap
from rcsetup.retry import retry_with_backoff


@dataclass
class ProductProvisioning:
    """Result of :func:`provision_products`."""

    id_map: RemoteIdentifierMap
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    created_count: int = 0


def build_product_payload(product: ProductSpec, app_id: Optional[str] = None) -> dict[str, Any]:
    """Build the ``POST /products`` body for *product*.

    Subscriptions with a monthly or annual cadence carry an ISO 8601
    ``subscription.duration``. Trial lengths are not sent: they are
    configured in App Store Connect / Google Play.
    """
    payload: dict[str, Any] = {
        "store_identifier": product.effective_store_identifier,
        "type": product.type.value,
        "display_name": product.display_name,
    }
    if app_id:
        payload["app_id"] = app_id

    if product.type == ProductType.SUBSCRIPTION and product.duration is not None:
        iso_duration = product.duration.iso8601
        if iso_duration:
            payload["subscription"] = {"duration": iso_duration}

    return payload


async def provision_products(
    client: RevenueCatClient,
    products: list[ProductSpec],
    app_id: Optional[str] = None,
    retry: Optional[RetryConfig] = None,
) -> ProductProvisioning:
    """Create *products* in order and map store identifiers to remote ids.

    Args:
        client: Client scoped to the target project.
        products: Products to create, in order.
        app_id: Remote id of the app that owns the products.
        retry: Retry schedule for each creation call.

    Returns:
        The frozen identifier map, per-product outcomes, and the number of
        products created by this run.
    """
    id_map = RemoteIdentifierMap()
    result = ProductProvisioning(id_map=id_map)

    for product in products:
        store_identifier = product.effective_store_identifier
        payload = build_product_payload(product, app_id)

        created = await retry_with_backoff(
            lambda: client.create_product(payload),
            retry,
            description=f"create product {store_identifier}",
        )

        if isinstance(created, Created):
            remote_id: Optional[str] = created.remote_id
            result.created_count += 1
        else:
            remote_id = created.remote_id
            if remote_id is None:
                existing = await client.find_product_by_store_identifier(store_identifier)
                remote_id = existing.get("id") if existing else None
                debug(f"Found existing product: {store_identifier} -> {remote_id}")

        if remote_id:
            id_map.record(store_identifier, remote_id)
            debug(f"Mapped: {store_identifier} -> {remote_id}")
        else:
            warning(
                f"No remote id found for product {store_identifier}; "
                "references to it will use the store identifier as-is"
            )

        result.outcomes.append(
            ResourceOutcome.from_result(
                ResourceKind.PRODUCT, store_identifier, created, remote_id
            )
        )

    id_map.freeze()
    return result
