"""AKS: workload identity / OIDC issuer, ACR attachment, kube credentials."""

from loguru import logger

from aksmysql.shell import az_json, az_tsv, optional_output, run_command


def get_cluster(name: str, resource_group: str) -> dict:
    return az_json(["az", "aks", "show", "--name", name, "--resource-group", resource_group])


def workload_identity_enabled(cluster: dict) -> bool:
    """Both the OIDC issuer and the workload identity webhook must be on."""
    oidc = (cluster.get("oidcIssuerProfile") or {}).get("enabled", False)
    security = cluster.get("securityProfile") or {}
    workload = (security.get("workloadIdentity") or {}).get("enabled", False)
    return bool(oidc and workload)


def ensure_workload_identity(name: str, resource_group: str) -> str:
    """Enable OIDC issuer + workload identity if needed; returns the issuer URL."""
    cluster = get_cluster(name, resource_group)

    if workload_identity_enabled(cluster):
        logger.info(f"Workload identity already enabled on {name}")
    else:
        logger.info(f"Enabling OIDC issuer and workload identity on {name} (a few minutes)...")
        run_command(["az", "aks", "update", "--name", name, "--resource-group", resource_group,
                     "--enable-oidc-issuer", "--enable-workload-identity"], capture_output=True)
        cluster = get_cluster(name, resource_group)
        logger.success(f"Workload identity enabled on {name}")

    issuer = cluster["oidcIssuerProfile"]["issuerUrl"]
    logger.info(f"OIDC issuer: {issuer}")
    return issuer


def acr_attached(cluster: dict, acr_id: str) -> bool:
    """True when the kubelet identity already holds AcrPull on the registry."""
    kubelet = ((cluster.get("identityProfile") or {}).get("kubeletidentity") or {}).get("objectId")
    if not kubelet:
        return False
    assigned = optional_output([
        "az", "role", "assignment", "list",
        "--assignee", kubelet,
        "--scope", acr_id,
        "--query", "[?roleDefinitionName=='AcrPull'].id",
        "-o", "tsv",
    ])
    return bool(assigned)


def ensure_acr_attached(name: str, resource_group: str, acr_name: str) -> bool:
    """Grant the cluster pull access to the registry. True if attached now."""
    cluster = get_cluster(name, resource_group)
    acr_id = az_tsv(["az", "acr", "show", "--name", acr_name], "id")

    if acr_attached(cluster, acr_id):
        logger.info(f"ACR {acr_name} already attached to {name}")
        return False

    run_command(["az", "aks", "update", "--name", name, "--resource-group", resource_group,
                 "--attach-acr", acr_name], capture_output=True)
    logger.success(f"Attached ACR {acr_name} to {name}")
    return True


def get_credentials(name: str, resource_group: str) -> None:
    """Merge the cluster into ~/.kube/config and make it the current context."""
    run_command(["az", "aks", "get-credentials", "--name", name,
                 "--resource-group", resource_group, "--overwrite-existing"])
