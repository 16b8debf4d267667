"""Two-phase orchestration: create in the source tenant, accept in the destination."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from .auth import ClientCredentialProvider
from .billing import BillingClient
from .config import ProvisionerConfig
from .errors import AliasCreationError
from .models import (
    AccessToken,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStatus,
    SubscriptionAlias,
    TenantCredentials,
)
from .workflow import WorkflowRunner

logger = logging.getLogger(__name__)

TokenProviderFactory = Callable[[TenantCredentials], ClientCredentialProvider]


class CrossTenantSubscriptionProvisioner:
    """Creates an MCA subscription for another tenant and hands ownership over."""

    def __init__(
        self,
        config: ProvisionerConfig,
        billing_client: Optional[BillingClient] = None,
        token_provider_factory: Optional[TokenProviderFactory] = None,
    ) -> None:
        self._config = config
        self._billing = billing_client or BillingClient(
            management_url=config.management_url,
            timeout=config.request_timeout,
            poll_interval=config.poll_interval,
            poll_timeout=config.poll_timeout,
        )
        self._token_provider_factory = token_provider_factory or self._default_token_provider

    def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Run both phases.

        Returns a Succeeded or PartialSuccess result. Failures before a
        subscription id is known are raised to the caller; once ARM has
        reported an id, any later failure downgrades to PartialSuccess.
        """

        runner = WorkflowRunner()
        result = ProvisioningResult(
            subscription_id=None,
            subscription_name=request.subscription_name,
            status=ProvisioningStatus.FAILED,
            workload=request.workload,
            source_tenant_id=request.source_credentials.tenant_id,
            dest_tenant_id=request.dest_credentials.tenant_id,
            billing_account_id=request.billing_account_id,
            billing_profile_id=request.billing_profile_id,
        )
        logger.info(
            "Provisioning subscription '%s' (%s) from tenant '%s' for tenant '%s'",
            request.subscription_name,
            request.workload.value,
            result.source_tenant_id,
            result.dest_tenant_id,
        )

        source_token = runner.run_step(
            "acquire-source-token", lambda: self._acquire(request.source_credentials)
        ).unwrap()
        section = runner.run_step(
            "resolve-invoice-section",
            lambda: self._billing.resolve_invoice_section(
                source_token,
                request.billing_account_id,
                request.billing_profile_id,
                request.invoice_section_name,
            ),
        ).unwrap()
        result.invoice_section_id = section.identifier

        alias = runner.run_step(
            "create-subscription-alias",
            lambda: self._billing.create_alias(source_token, request, section),
        ).unwrap()
        result.alias_id = alias.alias_id
        result.subscription_id = alias.subscription_id

        awaited = runner.run_step("await-subscription", lambda: self._await_subscription(source_token, alias))
        if not awaited.ok:
            if not alias.subscription_id:
                awaited.unwrap()
            # polling updates the alias in place, so the id may be newer than the PUT response
            result.subscription_id = alias.subscription_id
            return self._partial(result, awaited.error)
        alias = awaited.unwrap()
        result.subscription_id = alias.subscription_id
        logger.info("Subscription '%s' created; billing is active in the source tenant", alias.subscription_id)

        dest_token_step = runner.run_step(
            "acquire-destination-token", lambda: self._acquire(request.dest_credentials)
        )
        if not dest_token_step.ok:
            return self._partial(result, dest_token_step.error)

        acceptance = runner.run_step(
            "accept-ownership",
            lambda: self._billing.accept_ownership(
                dest_token_step.unwrap(), alias.subscription_id, request.subscription_name
            ),
        )
        if not acceptance.ok:
            return self._partial(result, acceptance.error)

        result.status = ProvisioningStatus.SUCCEEDED
        logger.info(
            "Subscription '%s' is owned by tenant '%s'", result.subscription_id, result.dest_tenant_id
        )
        return result

    def _await_subscription(self, token: AccessToken, alias: SubscriptionAlias) -> SubscriptionAlias:
        if self._config.poll_for_completion:
            alias = self._billing.wait_for_alias(token, alias)
        if not alias.subscription_id:
            raise AliasCreationError(
                alias.alias_id,
                f"no subscription id was returned (state: {alias.provisioning_state})",
            )
        return alias

    def _acquire(self, credentials: TenantCredentials) -> AccessToken:
        return self._token_provider_factory(credentials).acquire_token()

    def _default_token_provider(self, credentials: TenantCredentials) -> ClientCredentialProvider:
        return ClientCredentialProvider(
            credentials,
            authority_url=self._config.authority_url,
            timeout=self._config.request_timeout,
        )

    @staticmethod
    def _partial(result: ProvisioningResult, error: Optional[Exception]) -> ProvisioningResult:
        result.status = ProvisioningStatus.PARTIAL_SUCCESS
        result.error = str(error)
        logger.warning(
            "Subscription '%s' exists but the handover did not complete; manual remediation required: %s",
            result.subscription_id,
            error,
        )
        return result
