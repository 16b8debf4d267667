"""Configuration loading for the cross-tenant subscription provisioner."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .models import ProvisioningRequest, TenantCredentials, Workload

# Required key -> ProvisionerConfig field
REQUIRED_KEYS: Dict[str, str] = {
    "SOURCE_TENANT_ID": "source_tenant_id",
    "SOURCE_CLIENT_ID": "source_client_id",
    "SOURCE_CLIENT_SECRET": "source_client_secret",
    "DEST_TENANT_ID": "dest_tenant_id",
    "DEST_CLIENT_ID": "dest_client_id",
    "DEST_CLIENT_SECRET": "dest_client_secret",
    "DEST_SP_OBJECT_ID": "dest_sp_object_id",
    "BILLING_ACCOUNT_ID": "billing_account_id",
    "BILLING_PROFILE_ID": "billing_profile_id",
    "INVOICE_SECTION_NAME": "invoice_section_name",
}

OPTIONAL_KEYS: Dict[str, str] = {
    "MCA_MANAGEMENT_URL": "management_url",
    "MCA_AUTHORITY_URL": "authority_url",
    "MCA_REQUEST_TIMEOUT": "request_timeout",
    "MCA_POLL_FOR_COMPLETION": "poll_for_completion",
    "MCA_POLL_INTERVAL": "poll_interval",
    "MCA_POLL_TIMEOUT": "poll_timeout",
}


class ProvisionerConfig(BaseModel):
    source_tenant_id: str
    source_client_id: str
    source_client_secret: str = Field(repr=False)
    dest_tenant_id: str
    dest_client_id: str
    dest_client_secret: str = Field(repr=False)
    dest_sp_object_id: str = Field(description="Object ID of the service principal that will own the subscription")
    billing_account_id: str
    billing_profile_id: str
    invoice_section_name: str = Field(description="Display name of the invoice section to bill")
    management_url: str = Field("https://management.azure.com", description="Azure Resource Manager endpoint")
    authority_url: str = Field("https://login.microsoftonline.com", description="Microsoft Entra authority")
    request_timeout: float = Field(60.0, gt=0, description="Per-request timeout in seconds")
    poll_for_completion: bool = Field(True, description="Wait for the alias to reach a terminal state")
    poll_interval: float = Field(10.0, gt=0, description="Seconds between alias status checks")
    poll_timeout: float = Field(900.0, gt=0, description="Upper bound on alias polling in seconds")

    @field_validator("management_url", "authority_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def source_credentials(self) -> TenantCredentials:
        return TenantCredentials(self.source_tenant_id, self.source_client_id, self.source_client_secret)

    @property
    def dest_credentials(self) -> TenantCredentials:
        return TenantCredentials(self.dest_tenant_id, self.dest_client_id, self.dest_client_secret)

    def build_request(self, subscription_name: str, workload: Workload = Workload.PRODUCTION) -> ProvisioningRequest:
        return ProvisioningRequest(
            subscription_name=subscription_name,
            workload=workload,
            source_credentials=self.source_credentials,
            dest_credentials=self.dest_credentials,
            dest_owner_principal_id=self.dest_sp_object_id,
            billing_account_id=self.billing_account_id,
            billing_profile_id=self.billing_profile_id,
            invoice_section_name=self.invoice_section_name,
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ProvisionerConfig":
        """Validate required keys, then build the model.

        Keys may be given either as environment names (``SOURCE_TENANT_ID``)
        or as field names (``source_tenant_id``).
        """

        resolved: Dict[str, Any] = {}
        missing: list[str] = []
        for key, field_name in REQUIRED_KEYS.items():
            value = _clean(_lookup(values, key, field_name))
            if value is None:
                missing.append(key)
            else:
                resolved[field_name] = value
        if missing:
            raise ConfigurationError(missing)

        for key, field_name in OPTIONAL_KEYS.items():
            value = _clean(_lookup(values, key, field_name))
            if value is not None:
                resolved[field_name] = value

        try:
            return cls.model_validate(resolved)
        except ValidationError as exc:
            problems = "; ".join(
                f"{_env_key(str(error['loc'][0]))}: {error['msg']}" for error in exc.errors() if error["loc"]
            )
            raise ConfigurationError(detail=f"Invalid configuration value(s): {problems}") from exc


def _lookup(values: Mapping[str, Any], key: str, field_name: str) -> Any:
    if key in values:
        return values[key]
    return values.get(field_name)


def _env_key(field_name: str) -> str:
    for mapping in (REQUIRED_KEYS, OPTIONAL_KEYS):
        for key, name in mapping.items():
            if name == field_name:
                return key
    return field_name


def _clean(value: Any) -> Optional[Any]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or (stripped.startswith("<") and stripped.endswith(">")):
            return None
        return stripped
    return value


def load_config_from_env(environ: Mapping[str, str]) -> ProvisionerConfig:
    """Build a ProvisionerConfig from an environment-style mapping."""
    return ProvisionerConfig.from_mapping(environ)


def load_config(path: str | Path) -> ProvisionerConfig:
    """Load a ProvisionerConfig from a YAML file."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    data = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")
    return ProvisionerConfig.from_mapping(data)
