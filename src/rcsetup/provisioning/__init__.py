"""Idempotent provisioning of RevenueCat resources.

Each module provisions one resource kind through
:class:`~rcsetup.client.revenuecat.RevenueCatClient`, wrapping every remote
call in :func:`~rcsetup.retry.retry_with_backoff`:

- :mod:`~rcsetup.provisioning.apps` -- project, store apps, SDK keys.
- :mod:`~rcsetup.provisioning.products` -- products and the id map.
- :mod:`~rcsetup.provisioning.entitlements` -- entitlements + attachment.
- :mod:`~rcsetup.provisioning.offerings` -- offerings, packages, current flag.
- :mod:`~rcsetup.provisioning.orchestrator` -- runs them in order.
"""

from rcsetup.provisioning.identifiers import RemoteIdentifierMap
from rcsetup.provisioning.orchestrator import Provisioner, provision

__all__ = ["Provisioner", "RemoteIdentifierMap", "provision"]
