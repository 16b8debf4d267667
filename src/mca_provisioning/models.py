"""Domain models for cross-tenant subscription provisioning."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Workload(str, Enum):
    PRODUCTION = "Production"
    DEVELOPMENT = "Development"

    @property
    def alias_value(self) -> str:
        """Workload name understood by the subscription alias API."""
        return "Production" if self is Workload.PRODUCTION else "DevTest"


class ProvisioningStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    PARTIAL_SUCCESS = "PartialSuccess"
    FAILED = "Failed"


@dataclass(frozen=True, slots=True)
class TenantCredentials:
    tenant_id: str
    client_id: str
    client_secret: str

    def __repr__(self) -> str:
        return f"TenantCredentials(tenant_id={self.tenant_id!r}, client_id={self.client_id!r}, client_secret='***')"


@dataclass(frozen=True, slots=True)
class ProvisioningRequest:
    """Everything needed to create and hand over one subscription."""

    subscription_name: str
    workload: Workload
    source_credentials: TenantCredentials
    dest_credentials: TenantCredentials
    dest_owner_principal_id: str
    billing_account_id: str
    billing_profile_id: str
    invoice_section_name: str

    def __post_init__(self) -> None:
        if not self.subscription_name or not self.subscription_name.strip():
            raise ValueError("subscription_name must be a non-empty string")


@dataclass(frozen=True, slots=True)
class AccessToken:
    token: str
    tenant_id: str
    expires_at: float

    def __repr__(self) -> str:
        return f"AccessToken(tenant_id={self.tenant_id!r}, expires_at={self.expires_at!r})"


@dataclass(frozen=True, slots=True)
class InvoiceSection:
    display_name: str
    identifier: str
    resource_id: str = ""


@dataclass(slots=True)
class SubscriptionAlias:
    alias_id: str
    billing_scope: str
    subscription_id: Optional[str] = None
    provisioning_state: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        """True once polling can stop: failed, canceled, or succeeded with an id."""
        if self.provisioning_state in {"Failed", "Canceled"}:
            return True
        return self.provisioning_state == "Succeeded" and bool(self.subscription_id)


@dataclass(frozen=True, slots=True)
class AcceptanceResult:
    subscription_id: str
    status_code: int
    acceptance_state: Optional[str] = None


@dataclass(slots=True)
class ProvisioningResult:
    """Terminal record handed to the calling pipeline."""

    subscription_id: Optional[str]
    subscription_name: str
    status: ProvisioningStatus
    workload: Workload
    source_tenant_id: str
    dest_tenant_id: str
    billing_account_id: str
    billing_profile_id: str
    invoice_section_id: Optional[str] = None
    alias_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "subscriptionId": self.subscription_id,
            "subscriptionName": self.subscription_name,
            "status": self.status.value,
            "workload": self.workload.value,
            "sourceTenantId": self.source_tenant_id,
            "destinationTenantId": self.dest_tenant_id,
            "billingAccountId": self.billing_account_id,
            "billingProfileId": self.billing_profile_id,
            "invoiceSectionId": self.invoice_section_id,
            "aliasId": self.alias_id,
            "error": self.error,
        }

    def output_variables(self) -> Dict[str, str]:
        return {
            "CreatedSubscriptionId": self.subscription_id or "",
            "CreatedSubscriptionName": self.subscription_name,
            "CreatedSubscriptionStatus": self.status.value,
        }
