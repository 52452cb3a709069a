"""Entitlement provisioning.

The API does not accept products when an entitlement is created, so each
entitlement takes two steps: create the shell, then attach all of its
products in a single call. The attach step runs whether the shell was just
created or already existed; a 409 on attach means the products were
already there.
"""

from __future__ import annotations

from typing import Optional

from rcsetup.client.revenuecat import RevenueCatClient
from rcsetup.models import (
    Created,
    EntitlementSpec,
    ResourceKind,
    ResourceOutcome,
    RetryConfig,
)
from rcsetup.output import debug, warning
from rcsetup.provisioning.identifiers import RemoteIdentifierMap
from rcsetup.retry import retry_with_backoff


async def provision_entitlements(
    client: RevenueCatClient,
    entitlements: list[EntitlementSpec],
    id_map: RemoteIdentifierMap,
    retry: Optional[RetryConfig] = None,
) -> list[ResourceOutcome]:
    """Create *entitlements* and attach their products.

    Args:
        client: Client scoped to the target project.
        entitlements: Entitlements to create, in order.
        id_map: Frozen store identifier -> remote product id map.
        retry: Retry schedule for creation and attach calls.

    Returns:
        One outcome per entitlement.
    """
    outcomes: list[ResourceOutcome] = []

    for entitlement in entitlements:
        result = await retry_with_backoff(
            lambda: client.create_entitlement(entitlement.id, entitlement.display_name),
            retry,
            description=f"create entitlement {entitlement.id}",
        )

        if isinstance(result, Created):
            entitlement_id: Optional[str] = result.remote_id
        else:
            entitlement_id = result.remote_id
            if entitlement_id is None:
                existing = await client.find_entitlement_by_lookup_key(entitlement.id)
                entitlement_id = existing.get("id") if existing else None

        outcomes.append(
            ResourceOutcome.from_result(
                ResourceKind.ENTITLEMENT, entitlement.id, result, entitlement_id
            )
        )

        if entitlement_id is None:
            warning(
                f"Could not resolve entitlement {entitlement.id}; "
                "skipping product attachment"
            )
            continue

        product_ids = [id_map.resolve(ref) for ref in entitlement.product_ids]
        if not product_ids:
            debug(f"Entitlement {entitlement.id} has no products to attach")
            continue

        await retry_with_backoff(
            lambda: client.attach_products_to_entitlement(entitlement_id, product_ids),
            retry,
            description=f"attach products to entitlement {entitlement.id}",
        )

    return outcomes
