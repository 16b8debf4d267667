"""Azure billing and subscription alias API client."""
from __future__ import annotations

import logging
import math
import time
import uuid
from typing import Any, Callable, Dict, Iterator, Optional

import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from .errors import (
    AliasCreationError,
    BillingRequestError,
    NotFoundError,
    OwnershipAcceptanceError,
    TransientRequestError,
)
from .http import UnexpectedResponseError, error_message, error_payload, parse_json
from .models import (
    AcceptanceResult,
    AccessToken,
    InvoiceSection,
    ProvisioningRequest,
    SubscriptionAlias,
)

logger = logging.getLogger(__name__)

BILLING_API_VERSION = "2020-05-01"
SUBSCRIPTION_API_VERSION = "2021-10-01"


def build_billing_scope(billing_account_id: str, billing_profile_id: str, invoice_section_id: str) -> str:
    return (
        f"/billingAccounts/{billing_account_id}"
        f"/billingProfiles/{billing_profile_id}"
        f"/invoiceSections/{invoice_section_id}"
    )


def build_alias_body(request: ProvisioningRequest, billing_scope: str) -> Dict[str, Any]:
    return {
        "properties": {
            "displayName": request.subscription_name,
            "workload": request.workload.alias_value,
            "billingScope": billing_scope,
            "subscriptionId": None,
            "additionalProperties": {
                "managementGroupId": None,
                "subscriptionTenantId": request.dest_credentials.tenant_id,
                "subscriptionOwnerId": request.dest_owner_principal_id,
            },
        }
    }


class BillingClient:
    """Calls the Microsoft.Billing and Microsoft.Subscription resource providers."""

    def __init__(
        self,
        management_url: str = "https://management.azure.com",
        timeout: float = 60,
        poll_interval: float = 10,
        poll_timeout: float = 900,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._mgmt_url = management_url.rstrip("/")
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._sleep = sleep
        # attempt cap keeps the poll bounded even when sleep is not wall-clock time
        self._max_poll_attempts = max(1, math.ceil(poll_timeout / poll_interval)) + 1

    def list_invoice_sections(
        self, token: AccessToken, billing_account_id: str, billing_profile_id: str
    ) -> Iterator[InvoiceSection]:
        url: Optional[str] = (
            f"{self._mgmt_url}/providers/Microsoft.Billing/billingAccounts/{billing_account_id}"
            f"/billingProfiles/{billing_profile_id}/invoiceSections?api-version={BILLING_API_VERSION}"
        )
        while url:
            response = self._authorized_request(token, "GET", url)
            if response.status_code >= 400:
                payload = error_payload(response)
                logger.error("Listing invoice sections failed: %s", response.text)
                raise BillingRequestError(
                    f"Failed to list invoice sections for billing profile '{billing_profile_id}': "
                    f"{error_message(payload)}",
                    status_code=response.status_code,
                    payload=payload,
                )
            try:
                body = parse_json(response)
            except UnexpectedResponseError as exc:
                raise BillingRequestError(
                    f"Failed to list invoice sections for billing profile '{billing_profile_id}': {exc}",
                    status_code=response.status_code,
                ) from exc
            for item in body.get("value", []):
                properties = item.get("properties") or {}
                yield InvoiceSection(
                    display_name=properties.get("displayName", ""),
                    identifier=item.get("name", ""),
                    resource_id=item.get("id", ""),
                )
            url = body.get("nextLink")

    def resolve_invoice_section(
        self, token: AccessToken, billing_account_id: str, billing_profile_id: str, name: str
    ) -> InvoiceSection:
        logger.info("Resolving invoice section '%s' under billing profile '%s'", name, billing_profile_id)
        sections = list(self.list_invoice_sections(token, billing_account_id, billing_profile_id))
        matches = [section for section in sections if section.display_name == name]
        if not matches:
            raise NotFoundError(name, [section.display_name for section in sections])
        if len(matches) > 1:
            logger.warning(
                "Invoice section name '%s' is ambiguous (%s); using '%s'",
                name,
                ", ".join(section.identifier for section in matches),
                matches[0].identifier,
            )
        logger.info("Invoice section '%s' resolved to '%s'", name, matches[0].identifier)
        return matches[0]

    def create_alias(
        self, token: AccessToken, request: ProvisioningRequest, invoice_section: InvoiceSection
    ) -> SubscriptionAlias:
        alias_id = str(uuid.uuid4())
        billing_scope = build_billing_scope(
            request.billing_account_id, request.billing_profile_id, invoice_section.identifier
        )
        body = build_alias_body(request, billing_scope)
        logger.info(
            "Creating subscription alias '%s' for '%s' on billing scope '%s'",
            alias_id,
            request.subscription_name,
            billing_scope,
        )
        try:
            response = self._authorized_request(token, "PUT", self._alias_url(alias_id), json=body)
        except BillingRequestError as exc:
            raise AliasCreationError(alias_id, str(exc)) from exc
        if response.status_code not in {200, 201, 202}:
            payload = error_payload(response)
            logger.error("Subscription alias creation failed: %s", response.text)
            raise AliasCreationError(
                alias_id, f"HTTP {response.status_code}", status_code=response.status_code, payload=payload
            )

        alias = SubscriptionAlias(alias_id=alias_id, billing_scope=billing_scope)
        if response.content:
            try:
                self._apply_alias_payload(alias, parse_json(response))
            except UnexpectedResponseError as exc:
                raise AliasCreationError(alias_id, str(exc), status_code=response.status_code) from exc
        if alias.subscription_id:
            logger.info(
                "Alias '%s' returned subscription '%s' (state: %s)",
                alias_id,
                alias.subscription_id,
                alias.provisioning_state,
            )
        else:
            logger.warning("Alias '%s' accepted without a subscription id yet (state: %s)", alias_id, alias.provisioning_state)
        return alias

    def get_alias(self, token: AccessToken, alias: SubscriptionAlias) -> SubscriptionAlias:
        """Refresh ``alias`` in place from the alias resource.

        Throttling, 5xx and transport failures raise TransientRequestError so
        the poll can retry them; any other failure is an AliasCreationError.
        """

        response = self._authorized_request(token, "GET", self._alias_url(alias.alias_id))
        if response.status_code == 429 or response.status_code >= 500:
            payload = error_payload(response)
            logger.warning("Alias '%s' status check returned HTTP %s; will retry", alias.alias_id, response.status_code)
            raise TransientRequestError(
                f"Alias '{alias.alias_id}' status check returned HTTP {response.status_code}: {error_message(payload)}",
                status_code=response.status_code,
                payload=payload,
            )
        if response.status_code >= 400:
            payload = error_payload(response)
            raise AliasCreationError(
                alias.alias_id,
                f"status check returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        try:
            self._apply_alias_payload(alias, parse_json(response))
        except UnexpectedResponseError as exc:
            raise AliasCreationError(alias.alias_id, str(exc), status_code=response.status_code) from exc
        logger.info(
            "Alias '%s' state=%s subscriptionId=%s", alias.alias_id, alias.provisioning_state, alias.subscription_id
        )
        return alias

    def wait_for_alias(self, token: AccessToken, alias: SubscriptionAlias) -> SubscriptionAlias:
        """Poll the alias until it is terminal and carries a subscription id.

        Transient status-check failures are retried on the same schedule as
        pending states. The alias is updated in place, so a subscription id
        reported before a failure stays visible to the caller.
        """

        if alias.provisioning_state == "Succeeded" and alias.subscription_id:
            return alias

        retryer = Retrying(
            stop=stop_after_delay(self._poll_timeout) | stop_after_attempt(self._max_poll_attempts),
            wait=wait_fixed(self._poll_interval),
            retry=retry_if_result(lambda current: not current.is_settled)
            | retry_if_exception_type(TransientRequestError),
            sleep=self._sleep,
        )
        try:
            alias = retryer(self.get_alias, token, alias)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            detail = f"; last error: {last_error}" if last_error else ""
            raise AliasCreationError(
                alias.alias_id,
                f"timed out after {self._poll_timeout:.0f}s waiting for provisioning "
                f"(last state: {alias.provisioning_state}){detail}",
            ) from exc

        if alias.provisioning_state != "Succeeded" or not alias.subscription_id:
            raise AliasCreationError(
                alias.alias_id, f"provisioning ended in state '{alias.provisioning_state}'"
            )
        return alias

    def accept_ownership(self, token: AccessToken, subscription_id: str, display_name: str) -> AcceptanceResult:
        if not subscription_id:
            raise OwnershipAcceptanceError("<none>", "no subscription id was supplied")
        url = (
            f"{self._mgmt_url}/providers/Microsoft.Subscription/subscriptions/{subscription_id}"
            f"/acceptOwnership?api-version={SUBSCRIPTION_API_VERSION}"
        )
        body = {"properties": {"displayName": display_name, "managementGroupId": None}}
        logger.info("Accepting ownership of subscription '%s' in tenant '%s'", subscription_id, token.tenant_id)
        try:
            response = self._authorized_request(token, "POST", url, json=body)
        except BillingRequestError as exc:
            raise OwnershipAcceptanceError(subscription_id, str(exc)) from exc
        if response.status_code not in {200, 202}:
            payload = error_payload(response)
            logger.error("Ownership acceptance failed: %s", response.text)
            raise OwnershipAcceptanceError(
                subscription_id,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        state = None
        if response.content:
            try:
                body = parse_json(response)
            except UnexpectedResponseError as exc:
                logger.warning("Ownership acceptance response was not JSON: %s", exc)
                body = None
            if isinstance(body, dict):
                state = (body.get("properties") or {}).get("acceptOwnershipState")
        return AcceptanceResult(subscription_id=subscription_id, status_code=response.status_code, acceptance_state=state)

    def get_acceptance_status(self, token: AccessToken, subscription_id: str) -> Dict[str, Any]:
        url = (
            f"{self._mgmt_url}/providers/Microsoft.Subscription/subscriptions/{subscription_id}"
            f"/acceptOwnershipStatus?api-version={SUBSCRIPTION_API_VERSION}"
        )
        try:
            response = self._authorized_request(token, "GET", url)
        except BillingRequestError as exc:
            raise OwnershipAcceptanceError(subscription_id, str(exc)) from exc
        if response.status_code >= 400:
            payload = error_payload(response)
            raise OwnershipAcceptanceError(
                subscription_id,
                f"status check returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        try:
            return parse_json(response)
        except UnexpectedResponseError as exc:
            raise OwnershipAcceptanceError(subscription_id, str(exc), status_code=response.status_code) from exc

    def _alias_url(self, alias_id: str) -> str:
        return (
            f"{self._mgmt_url}/providers/Microsoft.Subscription/aliases/{alias_id}"
            f"?api-version={SUBSCRIPTION_API_VERSION}"
        )

    @staticmethod
    def _apply_alias_payload(alias: SubscriptionAlias, payload: Any) -> None:
        properties = (payload or {}).get("properties") or {}
        alias.subscription_id = properties.get("subscriptionId") or alias.subscription_id
        alias.provisioning_state = properties.get("provisioningState") or alias.provisioning_state

    def _authorized_request(self, token: AccessToken, method: str, url: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token.token}"
        headers.setdefault("Content-Type", "application/json")
        headers.setdefault("Accept", "application/json")
        try:
            return requests.request(method, url, headers=headers, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransientRequestError(f"{method} {url.split('?')[0]} failed: {exc}") from exc
