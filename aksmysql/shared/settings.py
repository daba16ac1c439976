"""
Deployment settings loaded from `.env`.

Keys are the upper-case names used in the `.env` file and in the manifest
templates; process environment variables override values from the file.
"""

import os
import re
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aksmysql.errors import ConfigError

# Kubernetes namespace / service account names must be DNS-1123 labels
DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class DeploySettings(BaseModel):
    """Every name the pipeline needs to address Azure and Kubernetes resources."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # --- Azure scope ---
    subscription_id: str = Field("", alias="SUBSCRIPTION_ID", description="Defaults to the az CLI's current subscription")
    tenant_id: str = Field("", alias="TENANT_ID", description="Defaults to the subscription's tenant")
    resource_group: str = Field(..., alias="RESOURCE_GROUP")
    location: str = Field(..., alias="LOCATION")

    # --- Resources ---
    acr_name: str = Field(..., alias="ACR_NAME")
    aks_name: str = Field(..., alias="AKS_NAME")
    mysql_server_name: str = Field(..., alias="MYSQL_SERVER_NAME")
    mysql_database: str = Field(..., alias="MYSQL_DATABASE")

    # --- Identities ---
    app_identity_name: str = Field(..., alias="APP_IDENTITY_NAME", description="Federated to the service account")
    mysql_identity_name: str = Field(..., alias="MYSQL_IDENTITY_NAME", description="Assigned to the MySQL server, needs Graph roles")
    federated_credential_name: str = Field("aks-federated-credential", alias="FEDERATED_CREDENTIAL_NAME")
    mysql_aad_user: str = Field("", alias="MYSQL_AAD_USER", description="MySQL user name of the app; defaults to APP_IDENTITY_NAME")

    # --- Kubernetes ---
    namespace: str = Field(..., alias="NAMESPACE")
    service_account_name: str = Field(..., alias="SERVICE_ACCOUNT_NAME")
    app_name: str = Field("mysql-wi-whoami", alias="APP_NAME")
    image_name: str = Field("mysql-wi-whoami", alias="IMAGE_NAME")
    image_tag: str = Field("latest", alias="IMAGE_TAG")

    # --- Switches ---
    provision_infra: bool = Field(False, alias="PROVISION_INFRA", description="Deploy infra/main.bicep first")
    allow_operator_ip: bool = Field(True, alias="ALLOW_OPERATOR_IP", description="Open the firewall for this machine")
    mysql_aad_only: bool = Field(False, alias="MYSQL_AAD_ONLY", description="Turn password authentication off")
    graph_propagation_seconds: int = Field(30, ge=0, alias="GRAPH_PROPAGATION_SECONDS")

    @field_validator(
        "resource_group", "location", "acr_name", "aks_name", "mysql_server_name",
        "mysql_database", "app_identity_name", "mysql_identity_name",
        "federated_credential_name", "app_name", "image_name", "image_tag",
    )
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("namespace", "service_account_name", "app_name")
    @classmethod
    def dns_label(cls, value: str) -> str:
        value = value.strip()
        if not DNS_LABEL.match(value):
            raise ValueError(f"'{value}' is not a valid Kubernetes name (lowercase letters, digits, '-')")
        return value

    @property
    def aad_user(self) -> str:
        return self.mysql_aad_user or self.app_identity_name

    @property
    def image(self) -> str:
        """Fully qualified image reference in the registry."""
        return f"{self.acr_name}.azurecr.io/{self.image_name}:{self.image_tag}"

    @property
    def mysql_host(self) -> str:
        return f"{self.mysql_server_name}.mysql.database.azure.com"

    def template_env(self, **derived: Any) -> dict[str, str]:
        """Upper-case mapping used for manifest / SQL substitution.
        Values discovered during the run (client IDs, tenant) are passed as
        keyword arguments and win over settings with the same key."""
        env = {}
        for key, value in self.model_dump(by_alias=True).items():
            env[key] = str(value).lower() if isinstance(value, bool) else str(value)

        env.update({
            "MYSQL_AAD_USER": self.aad_user,
            "MYSQL_HOST": self.mysql_host,
            "IMAGE": self.image,
        })
        env.update({key: str(value) for key, value in derived.items() if value is not None})
        return env


def _known_keys() -> set[str]:
    return {field.alias for field in DeploySettings.model_fields.values() if field.alias}


def load_settings(env_file: Path | str = ".env") -> DeploySettings:
    """Load `.env` (if present), overlay the process environment, and validate."""
    env_path = Path(env_file)
    values: dict[str, Any] = {}

    if env_path.exists():
        # KEY= (no value) means "use the default", not an empty string
        values.update({key: value for key, value in dotenv_values(env_path).items() if value})

    for key in _known_keys():
        if os.environ.get(key):
            values[key] = os.environ[key]

    try:
        return DeploySettings.model_validate(values)
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            key = ".".join(str(part) for part in error["loc"])
            if error["type"] == "missing":
                problems.append(f"{key}: missing")
            else:
                problems.append(f"{key}: {error['msg']}")
        raise ConfigError(f"Invalid settings in {env_path}: " + "; ".join(problems)) from exc
