"""Client credential authentication against Microsoft Entra tenants."""
from __future__ import annotations

import logging
import time

import requests

from .errors import AuthenticationError
from .http import UnexpectedResponseError, error_message, error_payload, parse_json
from .models import AccessToken, TenantCredentials

logger = logging.getLogger(__name__)

AZURE_MANAGEMENT_SCOPE = "https://management.azure.com/.default"
DEFAULT_AUTHORITY = "https://login.microsoftonline.com"


class ClientCredentialProvider:
    """Mints one management-plane token per call; tokens are never cached."""

    def __init__(
        self,
        credentials: TenantCredentials,
        authority_url: str = DEFAULT_AUTHORITY,
        timeout: float = 30,
    ) -> None:
        self.credentials = credentials
        self._authority = authority_url.rstrip("/")
        self._timeout = timeout

    @property
    def tenant_id(self) -> str:
        return self.credentials.tenant_id

    def acquire_token(self, scope: str = AZURE_MANAGEMENT_SCOPE) -> AccessToken:
        token_url = f"{self._authority}/{self.tenant_id}/oauth2/v2.0/token"
        payload = {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "scope": scope,
            "grant_type": "client_credentials",
        }
        logger.info("Requesting access token for tenant '%s'", self.tenant_id)
        try:
            response = requests.post(token_url, data=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise AuthenticationError(self.tenant_id, str(exc)) from exc

        if not 200 <= response.status_code < 300:
            message = error_message(error_payload(response))
            logger.error("Failed to acquire token for tenant '%s': %s", self.tenant_id, message)
            raise AuthenticationError(self.tenant_id, message)

        try:
            body = parse_json(response)
        except UnexpectedResponseError as exc:
            raise AuthenticationError(self.tenant_id, str(exc)) from exc
        if "access_token" not in body:
            raise AuthenticationError(self.tenant_id, "token response did not contain an access_token")
        expires_in = int(body.get("expires_in", 3600))
        return AccessToken(token=body["access_token"], tenant_id=self.tenant_id, expires_at=time.time() + expires_in)


def acquire_token(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    authority_url: str = DEFAULT_AUTHORITY,
    timeout: float = 30,
) -> AccessToken:
    """Run a single client credential exchange for the management audience."""
    provider = ClientCredentialProvider(
        TenantCredentials(tenant_id, client_id, client_secret),
        authority_url=authority_url,
        timeout=timeout,
    )
    return provider.acquire_token()
