"""User-assigned managed identities and their federated credentials."""

from loguru import logger

from aksmysql.shell import az_json, run_command, succeeds

# Audience Kubernetes service account tokens are issued for
TOKEN_EXCHANGE_AUDIENCE = "api://AzureADTokenExchange"


def ensure_identity(name: str, resource_group: str, location: str) -> dict:
    """Create the identity unless it exists; returns its `az identity show` payload."""
    show = ["az", "identity", "show", "--name", name, "--resource-group", resource_group]

    if succeeds([*show, "--query", "id", "-o", "tsv"]):
        logger.info(f"Managed identity {name} already exists")
    else:
        run_command(["az", "identity", "create", "--name", name,
                     "--resource-group", resource_group, "--location", location],
                    capture_output=True)
        logger.success(f"Created managed identity {name}")

    identity = az_json(show)
    logger.info(f"{name}: clientId={identity['clientId']} principalId={identity['principalId']}")
    return identity


def service_account_subject(namespace: str, service_account: str) -> str:
    return f"system:serviceaccount:{namespace}:{service_account}"


def ensure_federated_credential(
        credential_name: str,
        identity_name: str,
        resource_group: str,
        issuer: str,
        namespace: str,
        service_account: str,
) -> bool:
    """Trust the AKS OIDC issuer for one service account. True if created now."""
    if succeeds(["az", "identity", "federated-credential", "show",
                 "--name", credential_name,
                 "--identity-name", identity_name,
                 "--resource-group", resource_group,
                 "--query", "id", "-o", "tsv"]):
        logger.info(f"Federated credential {credential_name} already exists")
        return False

    run_command([
        "az", "identity", "federated-credential", "create",
        "--name", credential_name,
        "--identity-name", identity_name,
        "--resource-group", resource_group,
        "--issuer", issuer,
        "--subject", service_account_subject(namespace, service_account),
        "--audiences", TOKEN_EXCHANGE_AUDIENCE,
    ], capture_output=True)
    logger.success(f"Created federated credential {credential_name} for "
                   f"{namespace}/{service_account}")
    return True


def delete_federated_credential(credential_name: str, identity_name: str, resource_group: str) -> None:
    if not succeeds(["az", "identity", "federated-credential", "show",
                     "--name", credential_name, "--identity-name", identity_name,
                     "--resource-group", resource_group, "--query", "id", "-o", "tsv"]):
        logger.info(f"Federated credential {credential_name} not found, skipping")
        return
    run_command(["az", "identity", "federated-credential", "delete",
                 "--name", credential_name, "--identity-name", identity_name,
                 "--resource-group", resource_group, "--yes"])


def delete_identity(name: str, resource_group: str) -> None:
    if not succeeds(["az", "identity", "show", "--name", name,
                     "--resource-group", resource_group, "--query", "id", "-o", "tsv"]):
        logger.info(f"Managed identity {name} not found, skipping")
        return
    run_command(["az", "identity", "delete", "--name", name, "--resource-group", resource_group])
