"""Error types raised while provisioning cross-tenant subscriptions."""
from __future__ import annotations

from typing import Any, Iterable, Optional


class ProvisioningError(RuntimeError):
    """Base class for every failure surfaced by the provisioner."""


class ConfigurationError(ProvisioningError):
    """Raised before any network call when required configuration is missing."""

    def __init__(self, missing_keys: Iterable[str] = (), detail: Optional[str] = None) -> None:
        self.missing_keys = list(missing_keys)
        super().__init__(detail or "Missing required configuration value(s): " + ", ".join(self.missing_keys))


class AuthenticationError(ProvisioningError):
    """Raised when the client credential exchange fails for a tenant."""

    def __init__(self, tenant_id: str, provider_message: str) -> None:
        self.tenant_id = tenant_id
        self.provider_message = provider_message
        super().__init__(f"Failed to acquire token for tenant '{tenant_id}': {provider_message}")


class BillingRequestError(ProvisioningError):
    """Raised when a billing API call returns an error payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class TransientRequestError(BillingRequestError):
    """Throttling (429), server-side (5xx) or transport failure worth retrying."""


class NotFoundError(BillingRequestError):
    """Raised when the requested invoice section does not exist."""

    def __init__(self, name: str, available: Iterable[str]) -> None:
        self.name = name
        self.available = list(available)
        listing = ", ".join(f"'{item}'" for item in self.available) or "<none>"
        super().__init__(f"Invoice section '{name}' not found. Available invoice sections: {listing}")


class AliasCreationError(BillingRequestError):
    """Raised when the subscription alias cannot be created; nothing exists to own."""

    def __init__(self, alias_id: str, message: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        self.alias_id = alias_id
        detail = f"Subscription alias '{alias_id}' failed: {message}"
        if payload:
            detail = f"{detail} | provider response: {payload}"
        super().__init__(detail, status_code=status_code, payload=payload)


class OwnershipAcceptanceError(BillingRequestError):
    """Raised when the destination tenant cannot accept the created subscription."""

    def __init__(
        self,
        subscription_id: str,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        self.subscription_id = subscription_id
        detail = f"Ownership acceptance for subscription '{subscription_id}' failed: {message}"
        if payload:
            detail = f"{detail} | provider response: {payload}"
        super().__init__(detail, status_code=status_code, payload=payload)
