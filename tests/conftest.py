"""Shared test fixtures for rcsetup.

Provides an in-memory fake of the RevenueCat REST API served through
:class:`httpx.MockTransport`, setup fixtures, config isolation, output
state management, and a CLI runner. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
import pytest

from rcsetup.client import AsyncClient, RevenueCatClient
from rcsetup.models import (
    ApiSettings,
    AppSpec,
    EntitlementSpec,
    OfferingSpec,
    PackageSpec,
    ProductSpec,
    RetryConfig,
    SetupConfig,
)
from rcsetup.output import OutputFormat, OutputManager, reset_output, set_output

BASE_URL = "https://api.revenuecat.test/v2"
API_KEY = "sk_test_secret"
PROJECT_ID = "proj_test"

# Zero delays so retry paths never sleep in tests.
FAST_RETRY = RetryConfig(max_retries=2, base_delay_ms=0, max_delay_ms=0)
NO_RETRY = RetryConfig(max_retries=0, base_delay_ms=0, max_delay_ms=0)


# ---------------------------------------------------------------------------
# Fake RevenueCat API
# ---------------------------------------------------------------------------


Failure = Union[int, Exception]


class FakeRevenueCat:
    """Stateful, single-tenant stand-in for the RevenueCat v2 API.

    Creation endpoints answer 409 for a duplicate key, exactly like the real
    API; list endpoints paginate with ``starting_after`` cursors. Use
    :meth:`fail_next` to inject error statuses or network errors.
    """

    _ROUTES = [
        ("GET", r"/projects", "_list_projects"),
        ("POST", r"/projects", "_create_project"),
        ("GET", r"/projects/[^/]+/apps", "_list_apps"),
        ("POST", r"/projects/[^/]+/apps", "_create_app"),
        ("GET", r"/projects/[^/]+/apps/(?P<app_id>[^/]+)", "_get_app"),
        ("GET", r"/projects/[^/]+/apps/(?P<app_id>[^/]+)/api_keys", "_list_app_keys"),
        ("GET", r"/projects/[^/]+/products", "_list_products"),
        ("POST", r"/projects/[^/]+/products", "_create_product"),
        ("GET", r"/projects/[^/]+/entitlements", "_list_entitlements"),
        ("POST", r"/projects/[^/]+/entitlements", "_create_entitlement"),
        (
            "POST",
            r"/projects/[^/]+/entitlements/(?P<entitlement_id>[^/]+)/actions/attach_products",
            "_attach_entitlement_products",
        ),
        ("GET", r"/projects/[^/]+/offerings", "_list_offerings"),
        ("POST", r"/projects/[^/]+/offerings", "_create_offering"),
        ("POST", r"/projects/[^/]+/offerings/(?P<offering_id>[^/]+)", "_update_offering"),
        ("GET", r"/projects/[^/]+/offerings/(?P<offering_id>[^/]+)/packages", "_list_packages"),
        ("POST", r"/projects/[^/]+/offerings/(?P<offering_id>[^/]+)/packages", "_create_package"),
        (
            "POST",
            r"/projects/[^/]+/packages/(?P<package_id>[^/]+)/actions/attach_products",
            "_attach_package_product",
        ),
    ]

    def __init__(self, api_key: str = API_KEY, page_size: int = 20) -> None:
        self.base_url = BASE_URL
        self.api_key = api_key
        self.page_size = page_size
        self.projects: dict[str, dict[str, Any]] = {}
        self.apps: dict[str, dict[str, Any]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.entitlements: dict[str, dict[str, Any]] = {}
        self.offerings: dict[str, dict[str, Any]] = {}
        self.packages: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self._failures: dict[tuple[str, str], list[Failure]] = {}
        self._ids = itertools.count(1)

    # -- test helpers ------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail_next(self, method: str, path: str, *failures: Failure) -> None:
        """Answer the next requests to *path* with *failures*, in order.

        Each failure is an HTTP status code or an exception to raise.
        """
        self._failures.setdefault((method, path), []).extend(failures)

    def calls_to(self, method: str, pattern: str) -> list[tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] == method and re.fullmatch(pattern, c[1])]

    def add_product(self, store_identifier: str, **fields: Any) -> dict[str, Any]:
        product = {
            "id": self._new_id("prod"),
            "object": "product",
            "store_identifier": store_identifier,
            **fields,
        }
        self.products[product["id"]] = product
        return product

    # -- transport ---------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/v2"):
            path = path[len("/v2"):]
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))

        pending = self._failures.get((request.method, path))
        if pending:
            failure = pending.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return _error(failure, "injected failure")

        if request.headers.get("Authorization") != f"Bearer {self.api_key}":
            return _error(401, "Invalid API key")

        for method, pattern, handler_name in self._ROUTES:
            if method != request.method:
                continue
            match = re.fullmatch(pattern, path)
            if match:
                return getattr(self, handler_name)(request, body, path, **match.groupdict())
        return _error(404, f"No route for {request.method} {path}")

    # -- handlers ----------------------------------------------------------

    def _list_projects(self, request, body, path):
        return self._page(request, list(self.projects.values()), path)

    def _create_project(self, request, body, path):
        if any(p["name"] == body["name"] for p in self.projects.values()):
            return _conflict("project")
        project = {"id": self._new_id("proj"), "object": "project", "name": body["name"]}
        self.projects[project["id"]] = project
        return httpx.Response(201, json=project)

    def _list_apps(self, request, body, path):
        return self._page(request, list(self.apps.values()), path)

    def _create_app(self, request, body, path):
        for app in self.apps.values():
            if app["type"] == body["type"] and app[body["type"]] == body[body["type"]]:
                return _conflict("app")
        app = {"id": self._new_id("app"), "object": "app", **body}
        prefix = "appl" if body["type"] == "app_store" else "goog"
        app["_keys"] = [{"id": self._new_id("key"), "key": f"{prefix}_{app['id']}"}]
        self.apps[app["id"]] = app
        return httpx.Response(201, json=_public(app))

    def _get_app(self, request, body, path, app_id):
        if app_id not in self.apps:
            return _error(404, "App not found")
        return httpx.Response(200, json=_public(self.apps[app_id]))

    def _list_app_keys(self, request, body, path, app_id):
        if app_id not in self.apps:
            return _error(404, "App not found")
        return self._page(request, self.apps[app_id]["_keys"], path)

    def _list_products(self, request, body, path):
        return self._page(request, list(self.products.values()), path)

    def _create_product(self, request, body, path):
        identifier = body["store_identifier"]
        if any(p["store_identifier"] == identifier for p in self.products.values()):
            return _conflict("product")
        fields = {k: v for k, v in body.items() if k != "store_identifier"}
        return httpx.Response(201, json=self.add_product(identifier, **fields))

    def _list_entitlements(self, request, body, path):
        return self._page(request, list(self.entitlements.values()), path)

    def _create_entitlement(self, request, body, path):
        if any(e["lookup_key"] == body["lookup_key"] for e in self.entitlements.values()):
            return _conflict("entitlement")
        entitlement = {
            "id": self._new_id("entl"),
            "object": "entitlement",
            "product_ids": [],
            **body,
        }
        self.entitlements[entitlement["id"]] = entitlement
        return httpx.Response(201, json=entitlement)

    def _attach_entitlement_products(self, request, body, path, entitlement_id):
        entitlement = self.entitlements.get(entitlement_id)
        if entitlement is None:
            return _error(404, "Entitlement not found")
        product_ids = body["product_ids"]
        unknown = [p for p in product_ids if p not in self.products]
        if unknown:
            return _error(404, f"Unknown products: {', '.join(unknown)}")
        if all(p in entitlement["product_ids"] for p in product_ids):
            return _conflict("attachment")
        for product_id in product_ids:
            if product_id not in entitlement["product_ids"]:
                entitlement["product_ids"].append(product_id)
        return httpx.Response(200, json=entitlement)

    def _list_offerings(self, request, body, path):
        return self._page(request, list(self.offerings.values()), path)

    def _create_offering(self, request, body, path):
        if any(o["lookup_key"] == body["lookup_key"] for o in self.offerings.values()):
            return _conflict("offering")
        offering = {
            "id": self._new_id("ofrng"),
            "object": "offering",
            "is_current": False,
            **body,
        }
        self.offerings[offering["id"]] = offering
        return httpx.Response(201, json=offering)

    def _update_offering(self, request, body, path, offering_id):
        offering = self.offerings.get(offering_id)
        if offering is None:
            return _error(404, "Offering not found")
        if body.get("is_current"):
            for other in self.offerings.values():
                other["is_current"] = False
        offering.update(body)
        return httpx.Response(200, json=offering)

    def _list_packages(self, request, body, path, offering_id):
        items = [p for p in self.packages.values() if p["offering_id"] == offering_id]
        return self._page(request, items, path)

    def _create_package(self, request, body, path, offering_id):
        if offering_id not in self.offerings:
            return _error(404, "Offering not found")
        for package in self.packages.values():
            if package["offering_id"] == offering_id and package["lookup_key"] == body["lookup_key"]:
                return _conflict("package")
        package = {
            "id": self._new_id("pkge"),
            "object": "package",
            "offering_id": offering_id,
            "product_id": None,
            **body,
        }
        self.packages[package["id"]] = package
        return httpx.Response(201, json=package)

    def _attach_package_product(self, request, body, path, package_id):
        package = self.packages.get(package_id)
        if package is None:
            return _error(404, "Package not found")
        product_id = body["products"][0]["product_id"]
        if product_id not in self.products:
            return _error(404, f"Unknown product: {product_id}")
        if package["product_id"] == product_id:
            return _conflict("attachment")
        package["product_id"] = product_id
        return httpx.Response(200, json=package)

    # -- internals ---------------------------------------------------------

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _page(self, request: httpx.Request, items: list[dict[str, Any]], path: str) -> httpx.Response:
        cursor = request.url.params.get("starting_after")
        start = 0
        if cursor:
            ids = [item["id"] for item in items]
            start = ids.index(cursor) + 1 if cursor in ids else len(items)
        chunk = [_public(item) for item in items[start : start + self.page_size]]
        next_page = None
        if start + self.page_size < len(items):
            next_page = f"/v2{path}?starting_after={chunk[-1]['id']}"
        return httpx.Response(
            200, json={"object": "list", "items": chunk, "next_page": next_page}
        )


def _public(resource: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in resource.items() if not k.startswith("_")}


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"type": "error", "message": message})


def _conflict(kind: str) -> httpx.Response:
    return httpx.Response(
        409,
        json={"type": "resource_already_exists", "message": f"The {kind} already exists"},
    )


@pytest.fixture
def fake_api() -> FakeRevenueCat:
    """A fresh fake RevenueCat API."""
    return FakeRevenueCat()


@pytest.fixture
def run_client(fake_api: FakeRevenueCat) -> Callable[..., Any]:
    """Run a coroutine against a :class:`RevenueCatClient` wired to *fake_api*.

    Usage::

        result = run_client(lambda client: client.create_entitlement("pro", "Pro"))
    """

    def _run(
        operation: Callable[[RevenueCatClient], Awaitable[Any]],
        project_id: Optional[str] = PROJECT_ID,
    ) -> Any:
        async def _main() -> Any:
            settings = ApiSettings(base_url=BASE_URL)
            async with AsyncClient(API_KEY, settings, transport=fake_api.transport()) as http:
                return await operation(RevenueCatClient(http, project_id=project_id))

        return asyncio.run(_main())

    return _run


# ---------------------------------------------------------------------------
# Setup fixtures
# ---------------------------------------------------------------------------


def make_setup(**overrides: Any) -> SetupConfig:
    """The standard two-subscription setup pointed at the fake API."""
    data: dict[str, Any] = {
        "project_id": PROJECT_ID,
        "app": AppSpec(display_name="Demo", ios_bundle_id="com.example.demo"),
        "products": [
            ProductSpec(
                id="demo_pro_monthly",
                display_name="Pro Monthly",
                duration="monthly",
                trial_period_days=7,
            ),
            ProductSpec(
                id="demo_pro_annual",
                display_name="Pro Annual",
                duration="annual",
                trial_period_days=7,
            ),
        ],
        "entitlements": [
            EntitlementSpec(
                id="pro",
                display_name="Pro Access",
                product_ids=["demo_pro_monthly", "demo_pro_annual"],
            )
        ],
        "offerings": [
            OfferingSpec(
                id="default",
                is_current=True,
                packages=[
                    PackageSpec(type="monthly", product_id="demo_pro_monthly"),
                    PackageSpec(type="annual", product_id="demo_pro_annual"),
                ],
            )
        ],
        "api": ApiSettings(base_url=BASE_URL),
        "retry": FAST_RETRY,
    }
    data.update(overrides)
    return SetupConfig(**data)


@pytest.fixture
def demo_setup() -> SetupConfig:
    return make_setup()


@pytest.fixture
def setup_factory() -> Callable[..., SetupConfig]:
    """Build the demo setup with field overrides, e.g. ``setup_factory(app=None)``."""
    return make_setup


@pytest.fixture
def setup_file(isolated_config: Path) -> Path:
    """The demo setup written as YAML into the isolated working directory."""
    from rcsetup.config import save_setup

    path = isolated_config / "revenuecat.yaml"
    save_setup(make_setup(), path)
    return path


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME into tmp_path, clears all RCSETUP_* variables and
    the default API key variable, and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "RCSETUP_CONFIG",
        "RCSETUP_API_KEY_SOURCE",
        "RCSETUP_PROJECT_ID",
        "RCSETUP_BASE_URL",
        "REVENUECAT_API_KEY",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a PLAIN-format, colourless OutputManager with debug enabled."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
