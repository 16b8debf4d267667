"""CLI entrypoint for cross-tenant MCA subscription provisioning."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import NoReturn, Optional

import typer
from dotenv import load_dotenv

from .auth import ClientCredentialProvider
from .billing import BillingClient
from .config import ProvisionerConfig, load_config, load_config_from_env
from .errors import ProvisioningError
from .models import ProvisioningStatus, Workload
from .pipeline import OutputFormat, publish_outputs
from .provisioner import CrossTenantSubscriptionProvisioner

EXIT_FAILED = 1
EXIT_PARTIAL_SUCCESS = 2


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level_name: str) -> int:
    """Configure root logging for a pipeline run and return the effective level.

    An unknown level name falls back to INFO so a mistyped pipeline variable
    does not abort provisioning.
    """

    level = logging.getLevelName(level_name.strip().upper())
    unknown = not isinstance(level, int)
    if unknown:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # urllib3 logs each ARM URL at DEBUG; only surface it when explicitly asked for
    logging.getLogger("urllib3").setLevel(level if level <= logging.DEBUG else logging.WARNING)
    if unknown:
        logging.getLogger(__name__).warning("Unrecognized log level '%s'; defaulting to INFO", level_name)
    return level


app = typer.Typer(help="Create an MCA subscription in one tenant and hand it over to another")


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO", envvar="MCA_PROVISIONING_LOG_LEVEL", help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    configure_logging(log_level)


def _resolve_config(config: Optional[Path], env_file: Optional[Path]) -> ProvisionerConfig:
    if env_file is not None:
        load_dotenv(env_file, override=False)
    if config is not None:
        return load_config(config)
    return load_config_from_env(os.environ)


def _fail(exc: Exception, output_format: OutputFormat, subscription_name: str = "") -> NoReturn:
    typer.secho(str(exc), fg=typer.colors.RED, err=True)
    publish_outputs(
        {
            "CreatedSubscriptionId": "",
            "CreatedSubscriptionName": subscription_name,
            "CreatedSubscriptionStatus": ProvisioningStatus.FAILED.value,
        },
        output_format,
        typer.echo,
        github_output=os.getenv("GITHUB_OUTPUT"),
    )
    raise typer.Exit(code=EXIT_FAILED) from exc


@app.command("create")
def create_subscription(
    subscription_name: str = typer.Argument(..., help="Display name of the new subscription"),
    workload: Workload = typer.Option(Workload.PRODUCTION, case_sensitive=False, help="Subscription workload type"),
    config: Optional[Path] = typer.Option(
        None, exists=True, readable=True, help="YAML file with configuration values (defaults to environment)"
    ),
    env_file: Optional[Path] = typer.Option(None, exists=True, readable=True, help=".env file to load first"),
    poll: Optional[bool] = typer.Option(None, "--poll/--no-poll", help="Wait for alias provisioning to finish"),
    output_format: OutputFormat = typer.Option(
        OutputFormat.AZURE_DEVOPS, help="How to publish output variables for the calling pipeline"
    ),
    result_file: Optional[Path] = typer.Option(None, help="Also write the result record to this JSON file"),
) -> None:
    """Create the subscription in the source tenant and accept it in the destination tenant."""

    try:
        provisioner_config = _resolve_config(config, env_file)
        if poll is not None:
            provisioner_config = provisioner_config.model_copy(update={"poll_for_completion": poll})
        request = provisioner_config.build_request(subscription_name, workload)
        provisioner = CrossTenantSubscriptionProvisioner(provisioner_config)
        result = provisioner.provision(request)
    except (ProvisioningError, ValueError) as exc:
        _fail(exc, output_format, subscription_name)

    payload = result.to_dict()
    typer.echo(json.dumps(payload, indent=2))
    if result_file is not None:
        result_file.write_text(json.dumps(payload, indent=2, sort_keys=True))
    publish_outputs(
        result.output_variables(),
        output_format,
        typer.echo,
        github_output=os.getenv("GITHUB_OUTPUT"),
    )

    if result.status is ProvisioningStatus.PARTIAL_SUCCESS:
        typer.secho(
            f"Subscription {result.subscription_id} was created but ownership was not accepted "
            "in the destination tenant; accept it manually.",
            fg=typer.colors.YELLOW,
            err=True,
        )
        raise typer.Exit(code=EXIT_PARTIAL_SUCCESS)


@app.command("ownership-status")
def ownership_status(
    subscription_id: str,
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="YAML file with configuration values"),
    env_file: Optional[Path] = typer.Option(None, exists=True, readable=True, help=".env file to load first"),
) -> None:
    """Show the ownership acceptance status of a subscription from the destination tenant."""

    try:
        provisioner_config = _resolve_config(config, env_file)
        token = ClientCredentialProvider(
            provisioner_config.dest_credentials,
            authority_url=provisioner_config.authority_url,
            timeout=provisioner_config.request_timeout,
        ).acquire_token()
        client = BillingClient(
            management_url=provisioner_config.management_url,
            timeout=provisioner_config.request_timeout,
        )
        status = client.get_acceptance_status(token, subscription_id)
    except ProvisioningError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FAILED) from exc
    typer.echo(json.dumps(status, indent=2))


if __name__ == "__main__":
    app()
