"""Canonical Pydantic models shared across all rcsetup modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Setup models** -- parsed from the user's setup file (JSON or YAML):
    :class:`ProductSpec`, :class:`EntitlementSpec`, :class:`PackageSpec`,
    :class:`OfferingSpec`, :class:`AppSpec`, :class:`ApiSettings`,
    :class:`RetryConfig`, :class:`SetupConfig`, and :class:`RunSettings`.

**API result models** -- returned by the transport client:
    :class:`RemoteResource`, :class:`ListPage`, :class:`Created`,
    :class:`AlreadyExisted`, and the :data:`CreateResult` union.

**Report models** -- produced by the provisioning orchestrator:
    :class:`ResourceKind`, :class:`ResourceStatus`, :class:`ResourceOutcome`,
    and :class:`ProvisioningReport`.

Spec models are frozen: once a run starts, nothing mutates them.
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://api.revenuecat.com/v2"


# --- Setup enums ---


class ProductType(str, enum.Enum):
    """Kind of purchasable product as understood by the app stores."""

    SUBSCRIPTION = "subscription"
    NON_CONSUMABLE = "non_consumable"
    CONSUMABLE = "consumable"


class SubscriptionDuration(str, enum.Enum):
    """Billing cadence of a subscription product."""

    MONTHLY = "monthly"
    ANNUAL = "annual"
    LIFETIME = "lifetime"
    CUSTOM = "custom"

    @property
    def iso8601(self) -> Optional[str]:
        """ISO 8601 duration sent to the API, or ``None`` when the store decides."""
        return _ISO_DURATIONS.get(self)


_ISO_DURATIONS = {
    SubscriptionDuration.MONTHLY: "P1M",
    SubscriptionDuration.ANNUAL: "P1Y",
}


class PackageType(str, enum.Enum):
    """Package kind inside an offering.

    Each kind maps to one fixed lookup key in the remote ``$rc_`` namespace,
    which is how an existing package is recognised on a re-run.
    """

    MONTHLY = "monthly"
    ANNUAL = "annual"
    LIFETIME = "lifetime"
    CUSTOM = "custom"

    @property
    def lookup_key(self) -> str:
        return f"$rc_{self.value}"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


# --- Setup models ---


class ProductSpec(BaseModel):
    """A product to register with the remote project.

    The ``store_identifier`` is the id registered with App Store Connect /
    Google Play; when omitted the local ``id`` doubles as the store id.
    Entitlements and packages reference products by this store identifier.

    Example::

        ProductSpec(
            id="app_pro_monthly",
            display_name="Pro Monthly",
            type="subscription",
            duration="monthly",
            trial_period_days=7,
        )
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Local product id, e.g. app_pro_monthly")
    display_name: str
    type: ProductType = ProductType.SUBSCRIPTION
    duration: Optional[SubscriptionDuration] = None
    trial_period_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Trial length; informational, trials are configured in the store",
    )
    store_identifier: Optional[str] = Field(
        default=None, description="Store product id when it differs from id"
    )

    @property
    def effective_store_identifier(self) -> str:
        return self.store_identifier or self.id


class EntitlementSpec(BaseModel):
    """A named access level granted by any of its products."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Entitlement lookup key, e.g. pro")
    display_name: str
    product_ids: list[str] = Field(
        default_factory=list, description="Store identifiers of the granting products"
    )


class PackageSpec(BaseModel):
    """One purchasable option inside an offering, bound to a single product."""

    model_config = ConfigDict(frozen=True)

    type: PackageType
    product_id: str = Field(description="Store identifier of the bound product")


class OfferingSpec(BaseModel):
    """A presentable bundle of packages shown on the paywall."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Offering lookup key, e.g. default")
    is_current: bool = False
    packages: list[PackageSpec] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.id[:1].upper() + self.id[1:]


class AppSpec(BaseModel):
    """Store apps that own the project's products."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    ios_bundle_id: Optional[str] = None
    android_package_name: Optional[str] = None


class ApiSettings(BaseModel):
    """HTTP settings for the remote API."""

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API base URL")
    timeout: float = Field(default=30.0, gt=0, description="Per-call timeout in seconds")


class RetryConfig(BaseModel):
    """Exponential-backoff settings applied to every remote call.

    The delay before retry number ``n`` (zero-based) is
    ``min(base_delay_ms * backoff_multiplier ** n, max_delay_ms)``.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=10000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)


class SetupConfig(BaseModel):
    """The whole setup file: what to provision and how to reach the API.

    Either ``project_id`` (an existing project) or ``project_name`` (a
    project to create) must be given; see
    :func:`~rcsetup.validation.validate_setup`.
    """

    project_id: Optional[str] = None
    project_name: Optional[str] = None
    app: Optional[AppSpec] = None
    products: list[ProductSpec] = Field(default_factory=list)
    entitlements: list[EntitlementSpec] = Field(default_factory=list)
    offerings: list[OfferingSpec] = Field(default_factory=list)
    api: ApiSettings = Field(default_factory=ApiSettings)
    retry: RetryConfig = Field(default_factory=RetryConfig)


class RunSettings(BaseModel):
    """Effective settings for one command, after precedence resolution.

    See :func:`~rcsetup.config.resolve_settings` for the precedence chain.
    """

    setup_file: str = Field(default="revenuecat.yaml", description="Setup file path")
    api_key_source: str = Field(
        default="env:REVENUECAT_API_KEY",
        description="Credential source: env:VAR, file:/path, prompt",
    )
    project_id: Optional[str] = None
    base_url: Optional[str] = None


# --- API result models ---


class RemoteResource(BaseModel):
    """Minimal schema shared by every object the API returns.

    The top-level ``id`` is the only source of a resource's remote id.
    Other fields are kept in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    object: Optional[str] = None


class ListPage(BaseModel):
    """One page of a list endpoint.

    ``next_page`` is a URL carrying a ``starting_after`` cursor, or ``None``
    on the last page.
    """

    items: list[dict[str, Any]] = Field(default_factory=list)
    next_page: Optional[str] = None


class Created(BaseModel):
    """A creation call succeeded and returned the new resource."""

    model_config = ConfigDict(frozen=True)

    remote_id: str
    data: dict[str, Any] = Field(default_factory=dict)


class AlreadyExisted(BaseModel):
    """A creation call answered 409; the resource was there before this run.

    ``identifier`` is the local key that was submitted (store identifier,
    lookup key, bundle id, ...). ``remote_id`` is only set when a lookup
    managed to resolve it.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    remote_id: Optional[str] = None


CreateResult = Union[Created, AlreadyExisted]


# --- Report models ---


class ResourceKind(str, enum.Enum):
    PROJECT = "project"
    APP = "app"
    PRODUCT = "product"
    ENTITLEMENT = "entitlement"
    OFFERING = "offering"
    PACKAGE = "package"


class ResourceStatus(str, enum.Enum):
    CREATED = "created"
    ALREADY_EXISTED = "already_existed"


class ResourceOutcome(BaseModel):
    """Per-resource result of a provisioning run."""

    kind: ResourceKind
    identifier: str
    status: ResourceStatus
    remote_id: Optional[str] = None

    @classmethod
    def from_result(
        cls,
        kind: ResourceKind,
        identifier: str,
        result: CreateResult,
        remote_id: Optional[str] = None,
    ) -> ResourceOutcome:
        """Build an outcome from a :data:`CreateResult`.

        Args:
            kind: Resource kind being reported.
            identifier: Local identifier of the resource.
            result: What the creation call returned.
            remote_id: Id resolved after the fact (e.g. by a lookup);
                overrides the id carried by *result*.
        """
        if isinstance(result, Created):
            return cls(
                kind=kind,
                identifier=identifier,
                status=ResourceStatus.CREATED,
                remote_id=remote_id or result.remote_id,
            )
        return cls(
            kind=kind,
            identifier=identifier,
            status=ResourceStatus.ALREADY_EXISTED,
            remote_id=remote_id or result.remote_id,
        )


class ProvisioningReport(BaseModel):
    """Everything a provisioning run created, found, or resolved.

    Serialised to JSON by ``rcsetup provision --report``.
    """

    project_id: Optional[str] = None
    project: Optional[ResourceOutcome] = Field(
        default=None, description="Set only when this run created the project"
    )
    apps: list[ResourceOutcome] = Field(default_factory=list)
    sdk_keys: dict[str, str] = Field(
        default_factory=dict, description="Public SDK key per platform (ios, android)"
    )
    products: list[ResourceOutcome] = Field(default_factory=list)
    product_ids: dict[str, str] = Field(
        default_factory=dict, description="Store identifier -> remote product id"
    )
    entitlements: list[ResourceOutcome] = Field(default_factory=list)
    offerings: list[ResourceOutcome] = Field(default_factory=list)
    packages: list[ResourceOutcome] = Field(default_factory=list)

    def outcomes(self) -> list[ResourceOutcome]:
        """All outcomes in provisioning order."""
        return [
            *([self.project] if self.project else []),
            *self.apps,
            *self.products,
            *self.entitlements,
            *self.offerings,
            *self.packages,
        ]

    def count(self, kind: ResourceKind, status: ResourceStatus) -> int:
        return sum(
            1 for o in self.outcomes() if o.kind == kind and o.status == status
        )
