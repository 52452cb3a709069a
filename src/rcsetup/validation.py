"""Local validation of identifiers and cross-references.

Everything here runs before the first network call. The single-value
checks (:func:`validate_product_id`, :func:`validate_bundle_id`,
:func:`validate_package_name`) return ``True``/``False``; the
``assert_valid_*`` variants raise :class:`~rcsetup.exceptions.ValidationError`.
:func:`validate_setup` checks a whole setup file and reports every problem
at once.
"""

from __future__ import annotations

import re

from rcsetup.exceptions import ValidationError
from rcsetup.models import SetupConfig

PRODUCT_ID_PATTERN = re.compile(r"^[a-z0-9_]+$")
PRODUCT_ID_MAX_LENGTH = 255

# com.company.app; segments start with a letter
BUNDLE_ID_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*(\.[a-zA-Z][a-zA-Z0-9-]*)+$")

# Like a bundle id but lowercase, underscores allowed
PACKAGE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)+$")


def validate_product_id(product_id: str) -> bool:
    return (
        0 < len(product_id) <= PRODUCT_ID_MAX_LENGTH
        and PRODUCT_ID_PATTERN.match(product_id) is not None
    )


def validate_bundle_id(bundle_id: str) -> bool:
    return BUNDLE_ID_PATTERN.match(bundle_id) is not None


def validate_package_name(package_name: str) -> bool:
    return PACKAGE_NAME_PATTERN.match(package_name) is not None


def assert_valid_product_id(product_id: str, field: str = "product_id") -> None:
    if not validate_product_id(product_id):
        raise ValidationError(
            f"Invalid product id {product_id!r}: use lowercase letters, numbers "
            f"and underscores only, max {PRODUCT_ID_MAX_LENGTH} chars "
            "(e.g. app_pro_monthly)",
            field,
        )


def assert_valid_bundle_id(bundle_id: str, field: str = "ios_bundle_id") -> None:
    if not validate_bundle_id(bundle_id):
        raise ValidationError(
            f"Invalid iOS bundle id {bundle_id!r}: must look like com.company.app",
            field,
        )


def assert_valid_package_name(package_name: str, field: str = "android_package_name") -> None:
    if not validate_package_name(package_name):
        raise ValidationError(
            f"Invalid Android package name {package_name!r}: "
            "must be lowercase like com.company.app",
            field,
        )


def collect_setup_errors(setup: SetupConfig) -> list[str]:
    """Return a human-readable message for every problem in *setup*."""
    errors: list[str] = []

    def check(assertion, value: str, field: str) -> None:  # noqa: ANN001
        try:
            assertion(value, field)
        except ValidationError as exc:
            errors.append(f"{field}: {exc}")

    if not setup.project_id and not setup.project_name:
        errors.append("project: set project_id or project_name")

    if setup.app is not None:
        if setup.app.ios_bundle_id:
            check(assert_valid_bundle_id, setup.app.ios_bundle_id, "app.ios_bundle_id")
        if setup.app.android_package_name:
            check(
                assert_valid_package_name,
                setup.app.android_package_name,
                "app.android_package_name",
            )
        if not setup.app.ios_bundle_id and not setup.app.android_package_name:
            errors.append("app: set ios_bundle_id and/or android_package_name")

    store_identifiers: set[str] = set()
    local_ids: dict[str, str] = {}
    for i, product in enumerate(setup.products):
        check(assert_valid_product_id, product.id, f"products[{i}].id")
        store_identifier = product.effective_store_identifier
        if store_identifier in store_identifiers:
            errors.append(
                f"products[{i}]: duplicate store identifier {store_identifier!r}"
            )
        store_identifiers.add(store_identifier)
        local_ids[product.id] = store_identifier

    def check_reference(ref: str, field: str) -> None:
        if ref in store_identifiers:
            return
        if ref in local_ids:
            errors.append(
                f"{field}: {ref!r} is a local product id; reference the store "
                f"identifier {local_ids[ref]!r} instead"
            )
        else:
            errors.append(f"{field}: unknown product {ref!r}")

    for i, entitlement in enumerate(setup.entitlements):
        for j, ref in enumerate(entitlement.product_ids):
            check_reference(ref, f"entitlements[{i}].product_ids[{j}]")

    current = [o.id for o in setup.offerings if o.is_current]
    if len(current) > 1:
        errors.append(f"offerings: only one offering can be current (got {', '.join(current)})")

    for i, offering in enumerate(setup.offerings):
        seen_types: set[str] = set()
        for j, package in enumerate(offering.packages):
            check_reference(package.product_id, f"offerings[{i}].packages[{j}].product_id")
            if package.type.value in seen_types:
                errors.append(
                    f"offerings[{i}].packages[{j}]: duplicate {package.type.value} package"
                )
            seen_types.add(package.type.value)

    return errors


def validate_setup(setup: SetupConfig) -> None:
    """Check identifiers and cross-references in *setup*.

    Raises:
        ValidationError: Listing every problem found, one per line.
    """
    errors = collect_setup_errors(setup)
    if errors:
        raise ValidationError(
            "Invalid setup:\n" + "\n".join(f"  - {e}" for e in errors)
        )
