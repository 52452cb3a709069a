"""Tests for RevenueCatClient -- idempotent creation, attachment, lookups."""

from __future__ import annotations

import httpx
import pytest

from rcsetup.exceptions import APIError, AuthError, ProvisioningError, ServerError
from rcsetup.models import AlreadyExisted, Created


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreate:
    def test_created_carries_remote_id(self, fake_api, run_client) -> None:
        result = run_client(lambda c: c.create_entitlement("pro", "Pro Access"))
        assert isinstance(result, Created)
        assert result.remote_id in fake_api.entitlements
        assert result.data["lookup_key"] == "pro"

    def test_conflict_becomes_already_existed(self, fake_api, run_client) -> None:
        run_client(lambda c: c.create_entitlement("pro", "Pro Access"))
        result = run_client(lambda c: c.create_entitlement("pro", "Pro Access"))
        assert result == AlreadyExisted(identifier="pro")
        assert len(fake_api.entitlements) == 1

    def test_conflict_logs_skip_warning(self, fake_api, run_client, plain_output, capsys) -> None:
        run_client(lambda c: c.create_offering("default", "Default"))
        run_client(lambda c: c.create_offering("default", "Default"))
        assert "Offering default already exists, skipping..." in capsys.readouterr().err

    def test_other_errors_propagate(self, fake_api, run_client) -> None:
        fake_api.fail_next("POST", "/projects/proj_test/entitlements", 500)
        with pytest.raises(ServerError):
            run_client(lambda c: c.create_entitlement("pro", "Pro Access"))

    def test_success_without_id_is_an_error(self, run_client, fake_api) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"object": "entitlement"})

        fake_api.handle = handler
        with pytest.raises(APIError, match="no resource id"):
            run_client(lambda c: c.create_entitlement("pro", "Pro Access"))

    def test_product_identifier_is_store_identifier(self, run_client) -> None:
        payload = {"store_identifier": "demo_pro_monthly", "type": "subscription"}
        run_client(lambda c: c.create_product(payload))
        result = run_client(lambda c: c.create_product(payload))
        assert result == AlreadyExisted(identifier="demo_pro_monthly")

    def test_ios_and_android_app_bodies(self, fake_api, run_client) -> None:
        run_client(lambda c: c.create_ios_app("com.example.demo", "Demo (iOS)"))
        run_client(lambda c: c.create_android_app("com.example.demo", "Demo (Android)"))
        bodies = [body for _, _, body in fake_api.calls_to("POST", r"/projects/proj_test/apps")]
        assert bodies[0] == {
            "name": "Demo (iOS)",
            "type": "app_store",
            "app_store": {"bundle_id": "com.example.demo"},
        }
        assert bodies[1]["play_store"] == {"package_name": "com.example.demo"}
        assert len(fake_api.apps) == 2

    def test_project_scoped_call_requires_project_id(self, run_client) -> None:
        with pytest.raises(ProvisioningError):
            run_client(lambda c: c.create_entitlement("pro", "Pro"), project_id=None)


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


class TestAttach:
    def test_attach_products_to_entitlement(self, fake_api, run_client) -> None:
        product = fake_api.add_product("demo_pro_monthly")
        entitlement = run_client(lambda c: c.create_entitlement("pro", "Pro"))

        result = run_client(
            lambda c: c.attach_products_to_entitlement(entitlement.remote_id, [product["id"]])
        )
        assert isinstance(result, Created)
        assert fake_api.entitlements[entitlement.remote_id]["product_ids"] == [product["id"]]
        _, path, body = fake_api.calls[-1]
        assert path.endswith(f"/entitlements/{entitlement.remote_id}/actions/attach_products")
        assert body == {"product_ids": [product["id"]]}

    def test_attach_conflict_is_success(self, fake_api, run_client) -> None:
        product = fake_api.add_product("demo_pro_monthly")
        entitlement = run_client(lambda c: c.create_entitlement("pro", "Pro"))
        attach = lambda c: c.attach_products_to_entitlement(  # noqa: E731
            entitlement.remote_id, [product["id"]]
        )
        run_client(attach)
        result = run_client(attach)
        assert isinstance(result, AlreadyExisted)
        assert result.remote_id == entitlement.remote_id

    def test_attach_product_to_package_body(self, fake_api, run_client) -> None:
        product = fake_api.add_product("demo_pro_monthly")
        offering = run_client(lambda c: c.create_offering("default", "Default"))
        package = run_client(
            lambda c: c.create_package(offering.remote_id, "$rc_monthly", "Monthly")
        )
        result = run_client(
            lambda c: c.attach_product_to_package(package.remote_id, product["id"])
        )
        assert isinstance(result, Created)
        _, path, body = fake_api.calls[-1]
        assert path == f"/projects/proj_test/packages/{package.remote_id}/actions/attach_products"
        assert body == {"products": [{"product_id": product["id"], "eligibility_criteria": "all"}]}

    def test_attach_other_errors_propagate(self, fake_api, run_client) -> None:
        with pytest.raises(APIError) as exc_info:
            run_client(lambda c: c.attach_product_to_package("pkge_missing", "prod_x"))
        assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# Lists and lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_list_follows_pagination(self, fake_api, run_client) -> None:
        fake_api.page_size = 2
        for i in range(5):
            fake_api.add_product(f"product_{i}")

        products = run_client(lambda c: c.list_products())
        assert [p["store_identifier"] for p in products] == [f"product_{i}" for i in range(5)]
        assert len(fake_api.calls_to("GET", r"/projects/proj_test/products")) == 3

    def test_find_product_on_later_page(self, fake_api, run_client) -> None:
        fake_api.page_size = 1
        fake_api.add_product("first")
        wanted = fake_api.add_product("second")
        assert run_client(lambda c: c.find_product_by_store_identifier("second")) == wanted

    def test_find_returns_none_when_missing(self, fake_api, run_client) -> None:
        fake_api.add_product("first")
        assert run_client(lambda c: c.find_product_by_store_identifier("nope")) is None

    def test_list_failure_yields_empty(self, fake_api, run_client) -> None:
        fake_api.add_product("first")
        fake_api.fail_next("GET", "/projects/proj_test/products", 500)
        assert run_client(lambda c: c.list_products()) == []

    def test_list_malformed_body_yields_empty(self, fake_api, run_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["not", "a", "page"])

        fake_api.handle = handler
        assert run_client(lambda c: c.list_entitlements()) == []

    def test_repeated_cursor_stops_pagination(self, fake_api, run_client) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                200,
                json={
                    "items": [{"id": "prod_1"}],
                    "next_page": "/v2/projects/proj_test/products?starting_after=prod_1",
                },
            )

        fake_api.handle = handler
        items = run_client(lambda c: c.list_products())
        assert len(calls) == 2
        assert len(items) == 2

    def test_find_app_by_bundle_id_and_package_name(self, fake_api, run_client) -> None:
        ios = run_client(lambda c: c.create_ios_app("com.example.demo", "Demo"))
        android = run_client(lambda c: c.create_android_app("com.example.demo", "Demo"))
        assert run_client(lambda c: c.find_app_by_bundle_id("com.example.demo"))["id"] == ios.remote_id
        found = run_client(lambda c: c.find_app_by_package_name("com.example.demo"))
        assert found["id"] == android.remote_id
        assert run_client(lambda c: c.find_app_by_bundle_id("com.other")) is None

    def test_find_entitlement_by_lookup_key(self, run_client) -> None:
        created = run_client(lambda c: c.create_entitlement("pro", "Pro"))
        found = run_client(lambda c: c.find_entitlement_by_lookup_key("pro"))
        assert found["id"] == created.remote_id

    def test_find_offering_by_lookup_key(self, run_client) -> None:
        run_client(lambda c: c.create_offering("promo", "Promo"))
        created = run_client(lambda c: c.create_offering("default", "Default"))
        found = run_client(lambda c: c.find_offering_by_lookup_key("default"))
        assert found["id"] == created.remote_id
        assert run_client(lambda c: c.find_offering_by_lookup_key("missing")) is None

    def test_find_package_by_lookup_key(self, run_client) -> None:
        offering = run_client(lambda c: c.create_offering("default", "Default"))
        package = run_client(
            lambda c: c.create_package(offering.remote_id, "$rc_annual", "Annual")
        )
        found = run_client(
            lambda c: c.find_package_by_lookup_key(offering.remote_id, "$rc_annual")
        )
        assert found["id"] == package.remote_id

    def test_get_app_details_failure_is_none(self, run_client) -> None:
        assert run_client(lambda c: c.get_app_details("app_missing")) is None

    def test_get_app_keys(self, run_client) -> None:
        app = run_client(lambda c: c.create_ios_app("com.example.demo", "Demo"))
        keys = run_client(lambda c: c.get_app_keys(app.remote_id))
        assert keys[0]["key"] == f"appl_{app.remote_id}"


# ---------------------------------------------------------------------------
# Key validation and offerings
# ---------------------------------------------------------------------------


class TestMisc:
    def test_validate_api_key(self, fake_api, run_client) -> None:
        assert run_client(lambda c: c.validate_api_key(), project_id=None) is True
        fake_api.api_key = "sk_other"
        assert run_client(lambda c: c.validate_api_key(), project_id=None) is False

    def test_validate_api_key_other_errors_propagate(self, fake_api, run_client) -> None:
        fake_api.fail_next("GET", "/projects", 500)
        with pytest.raises(ServerError):
            run_client(lambda c: c.validate_api_key())

    def test_invalid_key_raises_auth_error_on_create(self, fake_api, run_client) -> None:
        fake_api.api_key = "sk_other"
        with pytest.raises(AuthError):
            run_client(lambda c: c.create_entitlement("pro", "Pro"))

    def test_set_current_offering(self, fake_api, run_client) -> None:
        first = run_client(lambda c: c.create_offering("default", "Default"))
        second = run_client(lambda c: c.create_offering("promo", "Promo"))
        run_client(lambda c: c.set_current_offering(first.remote_id))
        run_client(lambda c: c.set_current_offering(second.remote_id))
        assert fake_api.offerings[first.remote_id]["is_current"] is False
        assert fake_api.offerings[second.remote_id]["is_current"] is True
        _, path, body = fake_api.calls[-1]
        assert path == f"/projects/proj_test/offerings/{second.remote_id}"
        assert body == {"is_current": True}

    def test_create_project(self, fake_api, run_client) -> None:
        result = run_client(lambda c: c.create_project("Demo"), project_id=None)
        assert isinstance(result, Created)
        assert fake_api.projects[result.remote_id]["name"] == "Demo"
        again = run_client(lambda c: c.create_project("Demo"), project_id=None)
        assert again == AlreadyExisted(identifier="Demo")
