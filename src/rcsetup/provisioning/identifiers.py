"""Store identifier to remote product id mapping.

The product provisioner is the only writer of a :class:`RemoteIdentifierMap`;
it freezes the map before handing it to the entitlement and offering
provisioners, which only read from it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Optional


class RemoteIdentifierMap(Mapping[str, str]):
    """Read-mostly mapping of store identifier -> remote product id.

    Example::

        ids = RemoteIdentifierMap()
        ids.record("app_pro_monthly", "prod1a2b3c")
        ids.freeze()
        ids.resolve("app_pro_monthly")   # "prod1a2b3c"
        ids.resolve("never_created")     # "never_created"
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._frozen = False

    def record(self, store_identifier: str, remote_id: str) -> None:
        """Map *store_identifier* to *remote_id*.

        Raises:
            RuntimeError: If the map has been frozen.
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot record {store_identifier!r}: identifier map is frozen"
            )
        self._entries[store_identifier] = remote_id

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, identifier: str) -> str:
        """Return the remote id for *identifier*, or *identifier* itself when unmapped.

        The fallback lets the remote API reject an unknown id instead of
        silently dropping the reference.
        """
        return self._entries.get(identifier, identifier)

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"RemoteIdentifierMap({self._entries!r}, {state})"
