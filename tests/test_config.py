from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from mca_provisioning.config import REQUIRED_KEYS, ProvisionerConfig, load_config, load_config_from_env
from mca_provisioning.errors import ConfigurationError
from mca_provisioning.models import Workload


def _environment(**overrides: str) -> dict[str, str]:
    environ = {
        "SOURCE_TENANT_ID": "source-tenant",
        "SOURCE_CLIENT_ID": "source-client",
        "SOURCE_CLIENT_SECRET": "source-secret",
        "DEST_TENANT_ID": "dest-tenant",
        "DEST_CLIENT_ID": "dest-client",
        "DEST_CLIENT_SECRET": "dest-secret",
        "DEST_SP_OBJECT_ID": "dest-owner",
        "BILLING_ACCOUNT_ID": "acct1",
        "BILLING_PROFILE_ID": "prof1",
        "INVOICE_SECTION_NAME": "Dept-A",
    }
    environ.update(overrides)
    return environ


def test_load_config_from_env_builds_model() -> None:
    config = load_config_from_env(_environment())

    assert config.source_tenant_id == "source-tenant"
    assert config.dest_sp_object_id == "dest-owner"
    assert config.request_timeout == 60.0
    assert config.poll_for_completion is True


@pytest.mark.parametrize("missing_key", sorted(REQUIRED_KEYS))
def test_each_required_key_is_enforced(missing_key: str) -> None:
    environ = _environment()
    del environ[missing_key]

    with pytest.raises(ConfigurationError) as excinfo:
        load_config_from_env(environ)

    assert excinfo.value.missing_keys == [missing_key]
    assert missing_key in str(excinfo.value)


def test_blank_and_placeholder_values_count_as_missing() -> None:
    environ = _environment(DEST_CLIENT_SECRET="   ", BILLING_PROFILE_ID="<BILLING_PROFILE>")

    with pytest.raises(ConfigurationError) as excinfo:
        load_config_from_env(environ)

    assert excinfo.value.missing_keys == ["DEST_CLIENT_SECRET", "BILLING_PROFILE_ID"]


def test_optional_tunables_are_parsed() -> None:
    environ = _environment(
        MCA_REQUEST_TIMEOUT="15",
        MCA_POLL_FOR_COMPLETION="false",
        MCA_POLL_INTERVAL="2.5",
        MCA_MANAGEMENT_URL="https://management.usgovcloudapi.net/",
    )

    config = load_config_from_env(environ)

    assert config.request_timeout == 15.0
    assert config.poll_for_completion is False
    assert config.poll_interval == 2.5
    assert config.management_url == "https://management.usgovcloudapi.net"


def test_invalid_tunable_is_reported_by_key() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config_from_env(_environment(MCA_REQUEST_TIMEOUT="0"))

    assert "MCA_REQUEST_TIMEOUT" in str(excinfo.value)


def test_secrets_are_hidden_from_repr() -> None:
    config = load_config_from_env(_environment())

    assert "source-secret" not in repr(config)
    assert "dest-secret" not in repr(config.dest_credentials)


def test_build_request_carries_configuration() -> None:
    config = load_config_from_env(_environment())

    request = config.build_request("Contoso-Prod", Workload.DEVELOPMENT)

    assert request.subscription_name == "Contoso-Prod"
    assert request.workload is Workload.DEVELOPMENT
    assert request.source_credentials.tenant_id == "source-tenant"
    assert request.dest_credentials.client_id == "dest-client"
    assert request.invoice_section_name == "Dept-A"


def test_build_request_rejects_blank_name() -> None:
    config = load_config_from_env(_environment())

    with pytest.raises(ValueError):
        config.build_request("  ")


def test_load_config_from_yaml_accepts_field_names(tmp_path: Path) -> None:
    payload = {field: value for field, value in zip(REQUIRED_KEYS.values(), _environment().values())}
    payload["poll_timeout"] = 120
    path = tmp_path / "provisioner.yaml"
    path.write_text(yaml.safe_dump(payload))

    config = load_config(path)

    assert isinstance(config, ProvisionerConfig)
    assert config.billing_account_id == "acct1"
    assert config.poll_timeout == 120.0


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")
