"""Tear down what deploy.py created, as simply as possible."""
import subprocess
import sys
from pathlib import Path
from loguru import logger

from aksmysql.azure import aks, identities
from aksmysql.errors import AksMysqlError
from aksmysql.k8s.manifests import delete_namespace
from aksmysql.shared.logging_config import configure_logging
from aksmysql.shared.settings import DeploySettings, load_settings
from aksmysql.shell import run_command, succeeds


REPO_ROOT = Path(__file__).resolve().parent


def destroy(settings: DeploySettings) -> None:
    """Delete namespace, federated credential, identities (and the RG if we provisioned it)."""
    rg = settings.resource_group

    # -----------------------------------
    # ---------- Kubernetes -------------
    # -----------------------------------
    logger.info("=== [1/3] Deleting Kubernetes namespace... ===")
    if succeeds(["az", "aks", "show", "--name", settings.aks_name, "--resource-group", rg,
                 "--query", "id", "-o", "tsv"]):
        aks.get_credentials(settings.aks_name, rg)
        delete_namespace(settings.namespace)
        logger.success(f"Namespace {settings.namespace} deleted")
    else:
        logger.info(f"Skipping Kubernetes: cluster {settings.aks_name} not found.")

    # -----------------------------------
    # ---------- Identities -------------
    # -----------------------------------
    logger.info("=== [2/3] Deleting federated credential and identities... ===")
    identities.delete_federated_credential(settings.federated_credential_name,
                                           settings.app_identity_name, rg)
    identities.delete_identity(settings.app_identity_name, rg)
    identities.delete_identity(settings.mysql_identity_name, rg)
    logger.success("Identities deleted")

    # -----------------------------------
    # ---------- Resource group ---------
    # -----------------------------------
    logger.info("=== [3/3] Resource group... ===")
    if not settings.provision_infra:
        logger.info("PROVISION_INFRA is off: keeping the resource group and its ACR/AKS/MySQL.")
    elif run_command(["az", "group", "exists", "--name", rg], capture_output=True).lower() == "true":
        run_command(["az", "group", "delete", "--name", rg, "--yes", "--no-wait"])
        logger.success(f"Resource group {rg} deletion started.")
    else:
        logger.info(f"Resource group {rg} not found.")


def main(env_file: Path = REPO_ROOT / ".env") -> None:
    """Main cleanup flow."""
    logger.info("-" * 60)
    logger.info("AKS -> MySQL workload identity - DESTROY")
    logger.info("-" * 60)

    settings = load_settings(env_file)
    logger.warning(f"This will delete the namespace, identities and federated credential "
                   f"in {settings.resource_group}!\n")

    confirmation = input("Type 'destroy' to confirm: ").strip().lower()
    if confirmation != "destroy":
        logger.info("Aborted by user.")
        return

    logger.info("Confirmation received. Starting cleanup...\n")
    destroy(settings)

    logger.success("Cleanup complete!")
    logger.info("To redeploy: run `python deploy.py`")


def run(argv: list[str]) -> None:
    try:
        main(Path(argv[0]) if argv else REPO_ROOT / ".env")
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed with exit code {e.returncode}")
        sys.exit(e.returncode)
    except AksMysqlError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    configure_logging(name="destroy")
    run(sys.argv[1:])
