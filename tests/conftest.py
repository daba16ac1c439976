"""Shared fixtures: a clean environment and a complete `.env`."""

import pytest

from aksmysql.shared.settings import DeploySettings

ENV_TEXT = """\
RESOURCE_GROUP=rg-demo
LOCATION=westeurope
ACR_NAME=acrdemo
AKS_NAME=aks-demo
MYSQL_SERVER_NAME=mysql-demo
MYSQL_DATABASE=demo
APP_IDENTITY_NAME=id-app
MYSQL_IDENTITY_NAME=id-mysql
NAMESPACE=demo
SERVICE_ACCOUNT_NAME=demo-sa
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Settings keys from the developer's shell must not leak into tests."""
    for field in DeploySettings.model_fields.values():
        monkeypatch.delenv(field.alias, raising=False)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(ENV_TEXT)
    return path
