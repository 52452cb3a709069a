"""Project and app provisioning, plus public SDK key retrieval.

Unlike products, a project or app whose id cannot be resolved is fatal:
products must be owned by an app, and every later call is scoped to the
project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from rcsetup.client.revenuecat import RevenueCatClient
from rcsetup.exceptions import ProvisioningError
from rcsetup.models import (
    AppSpec,
    Created,
    CreateResult,
    ResourceKind,
    ResourceOutcome,
    RetryConfig,
)
from rcsetup.output import debug, warning
from rcsetup.retry import retry_with_backoff

IOS = "ios"
ANDROID = "android"


@dataclass
class AppProvisioning:
    """Result of :func:`provision_apps`: remote app id per platform."""

    app_ids: dict[str, str] = field(default_factory=dict)
    outcomes: list[ResourceOutcome] = field(default_factory=list)

    @property
    def primary_app_id(self) -> Optional[str]:
        """The app that owns created products: iOS when present, else Android."""
        return self.app_ids.get(IOS) or self.app_ids.get(ANDROID)


async def provision_project(
    client: RevenueCatClient,
    project_id: Optional[str],
    project_name: Optional[str],
    retry: Optional[RetryConfig] = None,
) -> Optional[ResourceOutcome]:
    """Point *client* at the target project, creating it when no id is given.

    Returns:
        The project outcome when a project was created, ``None``
        when an explicit *project_id* was used.

    Raises:
        ProvisioningError: When neither argument is set, or the project
            already exists under *project_name* (the API cannot look
            projects up by name).
    """
    if project_id:
        client.project_id = project_id
        return None
    if not project_name:
        raise ProvisioningError("Either a project id or a project name is required")

    result = await retry_with_backoff(
        lambda: client.create_project(project_name),
        retry,
        description=f"create project {project_name}",
    )
    if not isinstance(result, Created):
        raise ProvisioningError(
            f"Project {project_name!r} already exists; "
            "set project_id (or --project-id) to provision into it"
        )
    client.project_id = result.remote_id
    return ResourceOutcome.from_result(ResourceKind.PROJECT, project_name, result)


async def provision_apps(
    client: RevenueCatClient,
    app: AppSpec,
    retry: Optional[RetryConfig] = None,
) -> AppProvisioning:
    """Create (or find) the iOS and Android apps declared in *app*.

    Raises:
        ProvisioningError: When an app already exists but cannot be found
            by its bundle id / package name.
    """
    result = AppProvisioning()

    if app.ios_bundle_id:
        bundle_id = app.ios_bundle_id
        created = await retry_with_backoff(
            lambda: client.create_ios_app(bundle_id, f"{app.display_name} (iOS)"),
            retry,
            description=f"create iOS app {bundle_id}",
        )
        app_id = await _resolve_app_id(
            created, lambda: client.find_app_by_bundle_id(bundle_id)
        )
        if app_id is None:
            raise ProvisioningError(f"Could not resolve the iOS app id for {bundle_id}")
        result.app_ids[IOS] = app_id
        result.outcomes.append(
            ResourceOutcome.from_result(ResourceKind.APP, bundle_id, created, app_id)
        )

    if app.android_package_name:
        package_name = app.android_package_name
        created = await retry_with_backoff(
            lambda: client.create_android_app(package_name, f"{app.display_name} (Android)"),
            retry,
            description=f"create Android app {package_name}",
        )
        app_id = await _resolve_app_id(
            created, lambda: client.find_app_by_package_name(package_name)
        )
        if app_id is None:
            raise ProvisioningError(
                f"Could not resolve the Android app id for {package_name}"
            )
        result.app_ids[ANDROID] = app_id
        result.outcomes.append(
            ResourceOutcome.from_result(ResourceKind.APP, package_name, created, app_id)
        )

    return result


async def _resolve_app_id(
    created: CreateResult,
    lookup: Callable[[], Awaitable[Optional[dict[str, Any]]]],
) -> Optional[str]:
    if created.remote_id:
        return created.remote_id
    existing = await lookup()
    return existing.get("id") if existing else None


async def fetch_sdk_keys(client: RevenueCatClient, app_ids: dict[str, str]) -> dict[str, str]:
    """Retrieve the public SDK key of each app, best effort.

    The app details are tried first (``public_key`` or ``api_key``), then
    the first entry of the app's API key list. Missing keys are warnings.

    Args:
        client: Client scoped to the target project.
        app_ids: Remote app id per platform.

    Returns:
        Public SDK key per platform, for the platforms where one was found.
    """
    keys: dict[str, str] = {}
    for platform, app_id in app_ids.items():
        key = None
        details = await client.get_app_details(app_id)
        if details:
            key = details.get("public_key") or details.get("api_key")
        if not key:
            entries = await client.get_app_keys(app_id)
            if entries:
                key = entries[0].get("key")

        if key:
            keys[platform] = key
            debug(f"{platform} SDK key: {key[:15]}...")
        else:
            warning(
                f"No public SDK key found for the {platform} app; "
                "copy it from the RevenueCat dashboard"
            )
    return keys
