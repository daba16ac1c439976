"""`.env` loading and validation."""

import pytest

from aksmysql.errors import ConfigError
from aksmysql.shared.settings import load_settings


def test_load_settings_with_defaults(env_file):
    settings = load_settings(env_file)

    assert settings.resource_group == "rg-demo"
    assert settings.federated_credential_name == "aks-federated-credential"
    assert settings.provision_infra is False
    assert settings.graph_propagation_seconds == 30
    assert settings.aad_user == "id-app"
    assert settings.image == "acrdemo.azurecr.io/mysql-wi-whoami:latest"
    assert settings.mysql_host == "mysql-demo.mysql.database.azure.com"


def test_process_environment_overrides_file(env_file, monkeypatch):
    monkeypatch.setenv("NAMESPACE", "other")
    monkeypatch.setenv("PROVISION_INFRA", "true")

    settings = load_settings(env_file)
    assert settings.namespace == "other"
    assert settings.provision_infra is True


def test_missing_keys_are_all_reported(tmp_path):
    path = tmp_path / ".env"
    path.write_text("RESOURCE_GROUP=rg\n")

    with pytest.raises(ConfigError) as excinfo:
        load_settings(path)

    message = str(excinfo.value)
    for key in ("LOCATION", "AKS_NAME", "NAMESPACE", "SERVICE_ACCOUNT_NAME"):
        assert f"{key}: missing" in message


def test_invalid_namespace_rejected(env_file, monkeypatch):
    monkeypatch.setenv("NAMESPACE", "Not_Valid")
    with pytest.raises(ConfigError, match="NAMESPACE"):
        load_settings(env_file)


def test_blank_name_rejected(env_file, monkeypatch):
    monkeypatch.setenv("ACR_NAME", "   ")
    with pytest.raises(ConfigError, match="ACR_NAME"):
        load_settings(env_file)


def test_template_env_merges_derived_values(env_file, monkeypatch):
    monkeypatch.setenv("MYSQL_AAD_USER", "whoami-user")
    env = load_settings(env_file).template_env(APP_CLIENT_ID="cid", TENANT_ID="tid", UNUSED=None)

    assert env["APP_CLIENT_ID"] == "cid"
    assert env["TENANT_ID"] == "tid"
    assert env["MYSQL_AAD_USER"] == "whoami-user"
    assert env["ALLOW_OPERATOR_IP"] == "true"
    assert env["IMAGE"] == "acrdemo.azurecr.io/mysql-wi-whoami:latest"
    assert "UNUSED" not in env


def test_empty_values_fall_back_to_defaults(env_file):
    env_file.write_text(env_file.read_text() + "GRAPH_PROPAGATION_SECONDS=\nPROVISION_INFRA=\nIMAGE_TAG=\n")

    settings = load_settings(env_file)
    assert settings.graph_propagation_seconds == 30
    assert settings.provision_infra is False
    assert settings.image.endswith(":latest")


def test_empty_environment_value_does_not_mask_file(env_file, monkeypatch):
    monkeypatch.setenv("NAMESPACE", "")
    assert load_settings(env_file).namespace == "demo"


def test_empty_required_value_reported_missing(env_file):
    env_file.write_text(env_file.read_text().replace("AKS_NAME=aks-demo", "AKS_NAME="))
    with pytest.raises(ConfigError, match="AKS_NAME: missing"):
        load_settings(env_file)
