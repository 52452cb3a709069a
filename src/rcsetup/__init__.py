"""rcsetup -- Provision a RevenueCat monetization backend from a setup file.

This package reads a declarative setup file (apps, products, entitlements,
offerings) and creates the matching resources through the RevenueCat REST
API v2. Every step is idempotent: resources that already exist are
reconciled instead of duplicated, so a run can be repeated safely.

Typical workflow::

    rcsetup init --app-name "My App" --bundle-id com.acme.myapp
    rcsetup validate
    rcsetup provision

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for setup files, API responses and reports.
    config: Setup file loading, precedence resolution and credentials.
    retry: Exponential-backoff retry wrapper for remote calls.
    validation: Local identifier and reference checks.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
