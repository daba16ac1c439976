"""Optional base-resource provisioning through infra/main.bicep."""

import secrets
from pathlib import Path

from loguru import logger

from aksmysql.shared.settings import DeploySettings
from aksmysql.shell import run_command, succeeds

DEPLOYMENT_NAME = "aksmysql-base"


def ensure_resource_group(name: str, location: str) -> bool:
    """Create the resource group unless it exists. True if created now."""
    exists = run_command(["az", "group", "exists", "--name", name], capture_output=True)
    if exists.lower() == "true":
        logger.info(f"Resource group {name} already exists")
        return False
    run_command(["az", "group", "create", "--name", name, "--location", location], capture_output=True)
    logger.success(f"Created resource group {name}")
    return True


def base_resources_exist(settings: DeploySettings) -> bool:
    """ACR, AKS and MySQL all present means the template has nothing to add."""
    rg = settings.resource_group
    checks = [
        ["az", "acr", "show", "--name", settings.acr_name, "--resource-group", rg],
        ["az", "aks", "show", "--name", settings.aks_name, "--resource-group", rg],
        ["az", "mysql", "flexible-server", "show", "--name", settings.mysql_server_name, "--resource-group", rg],
    ]
    return all(succeeds([*check, "--query", "id", "-o", "tsv"]) for check in checks)


def provision(settings: DeploySettings, template: Path) -> bool:
    """Deploy the Bicep template unless every base resource already exists.
    Returns True when a deployment ran.

    The MySQL admin password is random and never stored: the server is
    administered through Azure AD afterwards."""
    ensure_resource_group(settings.resource_group, settings.location)

    if base_resources_exist(settings):
        logger.info("ACR, AKS and MySQL already exist, skipping Bicep deployment")
        return False

    admin_password = secrets.token_urlsafe(24) + "!Aa1"
    logger.info("Deploying base resources with Bicep (~10-15 min)...")
    run_command([
        "az", "deployment", "group", "create",
        "--name", DEPLOYMENT_NAME,
        "--resource-group", settings.resource_group,
        "--template-file", str(template),
        "--parameters",
        f"location={settings.location}",
        f"acrName={settings.acr_name}",
        f"aksName={settings.aks_name}",
        f"mysqlServerName={settings.mysql_server_name}",
        f"mysqlDatabaseName={settings.mysql_database}",
        f"mysqlAdminPassword={admin_password}",
    ], capture_output=True, secrets=[f"mysqlAdminPassword={admin_password}"])
    logger.success("Base resources deployed")
    return True
