"""
AKS -> MySQL Flexible Server passwordless deployment helper.

Workflow (every step checks before it mutates, so re-running is safe):
1. Loads resource names from `.env`
2. Ensures Azure CLI extensions, login and subscription
3. Optionally provisions ACR/AKS/MySQL from infra/main.bicep
4. Creates the app + MySQL managed identities
5. Builds the whoami image and pushes it to ACR
6. Attaches ACR and enables workload identity on AKS, then federates the app identity
7. Configures MySQL Azure AD admin, firewall, Graph permissions and the app's AD user
8. Renders the Kubernetes manifests and applies them

Usage: python deploy.py [path/to/.env]
"""

import os
import signal
import subprocess
import sys
from pathlib import Path
from loguru import logger

from aksmysql import shell
from aksmysql.azure import account, acr, aks, identities, mysql, provision
from aksmysql.errors import AksMysqlError
from aksmysql.graph.permissions import connect_as_admin, grant_graph_permissions
from aksmysql.k8s import manifests
from aksmysql.prereqs import ensure_cli_extensions
from aksmysql.shared.logging_config import configure_logging
from aksmysql.shared.settings import load_settings
from aksmysql.shell import log_step


REPO_ROOT = Path(__file__).resolve().parent  # Base repo path
INFRA_TEMPLATE = REPO_ROOT / "infra" / "main.bicep"  # Bicep entry point
MANIFEST_DIR = REPO_ROOT / "k8s"  # Kubernetes templates + SQL template
AD_USER_SQL = MANIFEST_DIR / "create_ad_user.sql"
APP_DIR = REPO_ROOT / "app"  # Docker build context of the whoami app


def kill_process_group(signum, frame):
    """Ctrl-C / SIGTERM: take down az/docker/kubectl children with us."""
    logger.warning(f"Interrupted (signal {signum}), terminating process group...")
    signal.signal(signal.SIGTERM, signal.SIG_DFL)
    os.killpg(os.getpgid(0), signal.SIGTERM)


def main(env_file: Path = REPO_ROOT / ".env") -> None:
    """Entry point orchestrating the whole deployment flow."""
    logger.info("-" * 60)
    logger.info("     #### AKS Workload Identity -> MySQL Flexible Server ####     ")
    logger.info("-" * 60 + "\n")


    # ================ STEP 1: Load Environment =============================
    log_step(1, "Load Environment")
    settings = load_settings(env_file)
    logger.success(f"Loaded settings for resource group {settings.resource_group}")


    # ================ STEP 2: Azure CLI Extensions =========================
    log_step(2, "Azure CLI Extensions")
    ensure_cli_extensions()


    # ================ STEP 3: Login & Subscription =========================
    log_step(3, "Login & Subscription")
    current_account = account.ensure_login(settings.subscription_id)
    tenant_id = settings.tenant_id or current_account["tenantId"]


    # ================ STEP 4: Base Resources (optional) ====================
    log_step(4, "Base Resources")
    if settings.provision_infra:
        provision.provision(settings, INFRA_TEMPLATE)
    else:
        logger.info("PROVISION_INFRA is off - expecting ACR, AKS and MySQL to exist")


    # ================ STEP 5: Managed Identities ===========================
    log_step(5, "Managed Identities")
    app_identity = identities.ensure_identity(
        settings.app_identity_name, settings.resource_group, settings.location)
    mysql_identity = identities.ensure_identity(
        settings.mysql_identity_name, settings.resource_group, settings.location)


    # ================ STEP 6: Build & Push Image ===========================
    log_step(6, "Build & Push Image")
    acr.build_and_push(settings.acr_name, settings.image, APP_DIR)


    # ================ STEP 7: AKS Workload Identity ========================
    log_step(7, "AKS Workload Identity")
    aks.ensure_acr_attached(settings.aks_name, settings.resource_group, settings.acr_name)
    issuer = aks.ensure_workload_identity(settings.aks_name, settings.resource_group)


    # ================ STEP 8: Federated Credential =========================
    log_step(8, "Federated Credential")
    identities.ensure_federated_credential(
        settings.federated_credential_name,
        settings.app_identity_name,
        settings.resource_group,
        issuer,
        settings.namespace,
        settings.service_account_name,
    )


    # ================ STEP 9: MySQL Azure AD Setup =========================
    log_step(9, "MySQL Azure AD Setup")
    server, rg = settings.mysql_server_name, settings.resource_group

    mysql.ensure_server_identity(server, rg, mysql_identity["id"])

    logger.info("Granting Microsoft Graph permissions to the MySQL identity...")
    graph = connect_as_admin(tenant_id, access_token=account.graph_access_token())
    granted = grant_graph_permissions(graph, mysql_identity["principalId"],
                                      propagation_seconds=settings.graph_propagation_seconds)
    logger.info(f"Graph permissions: {len(granted.assigned)} assigned, {len(granted.skipped)} already present")

    admin = account.signed_in_user()
    admin_name = admin["userPrincipalName"]
    mysql.ensure_ad_admin(server, rg, admin_name, admin["id"], mysql_identity["id"])

    mysql.ensure_firewall_rule(server, rg, *mysql.ALLOW_AZURE_RULE)
    if settings.allow_operator_ip:
        ip = account.operator_public_ip()
        mysql.ensure_firewall_rule(server, rg, mysql.operator_rule_name(ip), ip, ip)

    template_env = settings.template_env(
        TENANT_ID=tenant_id,
        APP_CLIENT_ID=app_identity["clientId"],
        MYSQL_IDENTITY_CLIENT_ID=mysql_identity["clientId"],
    )
    mysql.create_ad_user(server, settings.mysql_database, admin_name,
                         account.mysql_access_token(), AD_USER_SQL, template_env)

    if settings.mysql_aad_only:
        mysql.ensure_aad_only(server, rg)


    # ================ STEP 10: Kubernetes Manifests ========================
    log_step(10, "Kubernetes Manifests")
    aks.get_credentials(settings.aks_name, settings.resource_group)
    manifests.apply_all(MANIFEST_DIR, template_env)


    # ================ DEPLOYMENT COMPLETE! ================================
    logger.success("-" * 60)
    logger.success("Deployment Complete!")
    logger.success("-" * 60)
    logger.info("Next steps:")
    logger.info(f"  Watch pods: kubectl get pods -n {settings.namespace} -w")
    logger.info(f"  App logs: kubectl logs -n {settings.namespace} deploy/{settings.app_name} -f")


def run(argv: list[str]) -> None:
    """Run main() and turn failures into a report and an exit code."""
    signal.signal(signal.SIGINT, kill_process_group)
    signal.signal(signal.SIGTERM, kill_process_group)

    try:
        main(Path(argv[0]) if argv else REPO_ROOT / ".env")
    except subprocess.CalledProcessError as e:
        logger.error(f"{shell.current_step} failed: {' '.join(map(str, e.cmd))}")
        if e.stderr:
            logger.error(e.stderr.strip())
        logger.error(f"Command failed with exit code {e.returncode}")
        sys.exit(e.returncode)
    except AksMysqlError as e:
        logger.error(f"{shell.current_step} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    configure_logging()
    run(sys.argv[1:])
