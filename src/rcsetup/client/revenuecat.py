"""Resource-level operations against the RevenueCat REST API v2.

:class:`RevenueCatClient` exposes one coroutine per remote operation on top
of :class:`~rcsetup.client.async_client.AsyncClient`. It applies the
idempotency policy the provisioners rely on:

* **creation calls** return :class:`~rcsetup.models.Created` with the remote
  id on success, or :class:`~rcsetup.models.AlreadyExisted` when the API
  answers 409. Every other error status raises.
* **attachment calls** treat 409 as "already attached" and return
  ``AlreadyExisted`` instead of raising.
* **list and lookup calls** are best-effort: any failure is logged at debug
  level and yields an empty list or ``None``. Lists follow ``next_page``
  cursors until the last page.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from rcsetup.client.async_client import AsyncClient
from rcsetup.exceptions import APIError, AuthError, ConflictError, ProvisioningError, RcsetupError
from rcsetup.models import AlreadyExisted, Created, CreateResult, ListPage, RemoteResource
from rcsetup.output import debug, success, warning


class RevenueCatClient:
    """Per-resource RevenueCat operations scoped to one project.

    Args:
        http: An entered :class:`AsyncClient`.
        project_id: Remote project id. May be set later (after
            :meth:`create_project`) through :attr:`project_id`.

    Example::

        async with AsyncClient(api_key) as http:
            client = RevenueCatClient(http, project_id="proj1a2b3c")
            result = await client.create_entitlement("pro", "Pro Access")
    """

    def __init__(self, http: AsyncClient, project_id: Optional[str] = None) -> None:
        self._http = http
        self.project_id = project_id

    def _project_path(self, suffix: str = "") -> str:
        if not self.project_id:
            raise ProvisioningError("No project id set on the RevenueCat client")
        return f"/projects/{self.project_id}{suffix}"

    # ------------------------------------------------------------------ #
    # Projects and apps
    # ------------------------------------------------------------------ #

    async def validate_api_key(self) -> bool:
        """Return ``False`` when the API rejects the key, ``True`` otherwise.

        Errors other than 401/403 propagate.
        """
        try:
            await self._http.get("/projects")
        except AuthError:
            return False
        return True

    async def create_project(self, name: str) -> CreateResult:
        return await self._create("/projects", {"name": name}, name, f"project {name}")

    async def create_ios_app(self, bundle_id: str, name: str) -> CreateResult:
        body = {"name": name, "type": "app_store", "app_store": {"bundle_id": bundle_id}}
        return await self._create(
            self._project_path("/apps"), body, bundle_id, f"iOS app {name}"
        )

    async def create_android_app(self, package_name: str, name: str) -> CreateResult:
        body = {
            "name": name,
            "type": "play_store",
            "play_store": {"package_name": package_name},
        }
        return await self._create(
            self._project_path("/apps"), body, package_name, f"Android app {name}"
        )

    async def list_apps(self) -> list[dict[str, Any]]:
        return await self._list(self._project_path("/apps"), "apps")

    async def find_app_by_bundle_id(self, bundle_id: str) -> Optional[dict[str, Any]]:
        for app in await self.list_apps():
            if (app.get("app_store") or {}).get("bundle_id") == bundle_id:
                return app
        return None

    async def find_app_by_package_name(self, package_name: str) -> Optional[dict[str, Any]]:
        for app in await self.list_apps():
            if (app.get("play_store") or {}).get("package_name") == package_name:
                return app
        return None

    async def get_app_details(self, app_id: str) -> Optional[dict[str, Any]]:
        """Fetch one app; ``None`` when the lookup fails."""
        try:
            body = await self._http.get(self._project_path(f"/apps/{app_id}"))
        except RcsetupError as exc:
            debug(f"Fetching app {app_id} failed: {exc}")
            return None
        return body if isinstance(body, dict) else None

    async def get_app_keys(self, app_id: str) -> list[dict[str, Any]]:
        """List the public SDK keys of an app."""
        return await self._list(self._project_path(f"/apps/{app_id}/api_keys"), "API keys")

    # ------------------------------------------------------------------ #
    # Products
    # ------------------------------------------------------------------ #

    async def create_product(self, payload: dict[str, Any]) -> CreateResult:
        """Create a product from a payload built by the product provisioner.

        ``payload["store_identifier"]`` identifies the product in the
        ``AlreadyExisted`` result.
        """
        identifier = payload["store_identifier"]
        return await self._create(
            self._project_path("/products"), payload, identifier, f"product {identifier}"
        )

    async def list_products(self) -> list[dict[str, Any]]:
        return await self._list(self._project_path("/products"), "products")

    async def find_product_by_store_identifier(
        self, store_identifier: str
    ) -> Optional[dict[str, Any]]:
        for product in await self.list_products():
            if product.get("store_identifier") == store_identifier:
                return product
        return None

    # ------------------------------------------------------------------ #
    # Entitlements
    # ------------------------------------------------------------------ #

    async def create_entitlement(self, lookup_key: str, display_name: str) -> CreateResult:
        body = {"lookup_key": lookup_key, "display_name": display_name}
        return await self._create(
            self._project_path("/entitlements"), body, lookup_key, f"entitlement {lookup_key}"
        )

    async def list_entitlements(self) -> list[dict[str, Any]]:
        return await self._list(self._project_path("/entitlements"), "entitlements")

    async def find_entitlement_by_lookup_key(
        self, lookup_key: str
    ) -> Optional[dict[str, Any]]:
        for entitlement in await self.list_entitlements():
            if entitlement.get("lookup_key") == lookup_key:
                return entitlement
        return None

    async def attach_products_to_entitlement(
        self, entitlement_id: str, product_ids: list[str]
    ) -> CreateResult:
        """Associate *product_ids* with an entitlement in one call.

        A 409 means the products are already attached and is reported as
        ``AlreadyExisted``.
        """
        path = self._project_path(f"/entitlements/{entitlement_id}/actions/attach_products")
        return await self._attach(
            path,
            {"product_ids": list(product_ids)},
            entitlement_id,
            f"{len(product_ids)} product(s) to entitlement {entitlement_id}",
        )

    # ------------------------------------------------------------------ #
    # Offerings and packages
    # ------------------------------------------------------------------ #

    async def create_offering(self, lookup_key: str, display_name: str) -> CreateResult:
        body = {"lookup_key": lookup_key, "display_name": display_name}
        return await self._create(
            self._project_path("/offerings"), body, lookup_key, f"offering {lookup_key}"
        )

    async def list_offerings(self) -> list[dict[str, Any]]:
        return await self._list(self._project_path("/offerings"), "offerings")

    async def find_offering_by_lookup_key(self, lookup_key: str) -> Optional[dict[str, Any]]:
        for offering in await self.list_offerings():
            if offering.get("lookup_key") == lookup_key:
                return offering
        return None

    async def set_current_offering(self, offering_id: str) -> Any:
        body = await self._http.post(
            self._project_path(f"/offerings/{offering_id}"), json_body={"is_current": True}
        )
        success(f"Set offering {offering_id} as current")
        return body

    async def create_package(
        self, offering_id: str, lookup_key: str, display_name: str
    ) -> CreateResult:
        body = {"lookup_key": lookup_key, "display_name": display_name}
        return await self._create(
            self._project_path(f"/offerings/{offering_id}/packages"),
            body,
            lookup_key,
            f"package {lookup_key}",
        )

    async def list_packages(self, offering_id: str) -> list[dict[str, Any]]:
        return await self._list(
            self._project_path(f"/offerings/{offering_id}/packages"), "packages"
        )

    async def find_package_by_lookup_key(
        self, offering_id: str, lookup_key: str
    ) -> Optional[dict[str, Any]]:
        for package in await self.list_packages(offering_id):
            if package.get("lookup_key") == lookup_key:
                return package
        return None

    async def attach_product_to_package(self, package_id: str, product_id: str) -> CreateResult:
        """Bind a product to a package; 409 means it is already attached."""
        path = self._project_path(f"/packages/{package_id}/actions/attach_products")
        body = {"products": [{"product_id": product_id, "eligibility_criteria": "all"}]}
        return await self._attach(
            path, body, package_id, f"product {product_id} to package {package_id}"
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _create(
        self, path: str, body: dict[str, Any], identifier: str, label: str
    ) -> CreateResult:
        """POST a creation body; 409 becomes ``AlreadyExisted``."""
        try:
            data = await self._http.post(path, json_body=body)
        except ConflictError:
            warning(f"{label[:1].upper()}{label[1:]} already exists, skipping...")
            return AlreadyExisted(identifier=identifier)

        resource = _parse_resource(data, label)
        success(f"Created {label}")
        return Created(remote_id=resource.id, data=data)

    async def _attach(
        self, path: str, body: dict[str, Any], target_id: str, label: str
    ) -> CreateResult:
        try:
            data = await self._http.post(path, json_body=body)
        except ConflictError:
            debug(f"Already attached: {label}")
            return AlreadyExisted(identifier=target_id, remote_id=target_id)

        success(f"Attached {label}")
        return Created(remote_id=target_id, data=data if isinstance(data, dict) else {})

    async def _list(self, path: str, label: str) -> list[dict[str, Any]]:
        """GET every page of a list endpoint; empty on any failure."""
        items: list[dict[str, Any]] = []
        params: Optional[dict[str, Any]] = None
        seen_cursors: set[str] = set()
        try:
            while True:
                body = await self._http.get(path, params=params)
                page = ListPage.model_validate(body)
                items.extend(page.items)

                cursor = _next_cursor(page.next_page)
                if cursor is None or cursor in seen_cursors:
                    break
                seen_cursors.add(cursor)
                params = {"starting_after": cursor}
        except (RcsetupError, PydanticValidationError) as exc:
            debug(f"Listing {label} failed: {exc}")
            return []
        return items


def _parse_resource(data: Any, label: str) -> RemoteResource:
    """Validate a creation response; a 2xx without a top-level ``id`` is an error."""
    try:
        return RemoteResource.model_validate(data)
    except PydanticValidationError as exc:
        raise APIError(
            f"Unexpected response creating {label}: no resource id", body=data
        ) from exc


def _next_cursor(next_page: Optional[str]) -> Optional[str]:
    """Extract the ``starting_after`` cursor from a ``next_page`` URL."""
    if not next_page:
        return None
    return httpx.URL(next_page).params.get("starting_after")
