"""MySQL Flexible Server: server identity, Azure AD admin, firewall, AD users."""

import subprocess
from pathlib import Path

from loguru import logger

from aksmysql.k8s.manifests import render
from aksmysql.shell import az_json, optional_output, run_command, succeeds

# Rule name reserved by Azure for "Allow public access from any Azure service"
ALLOW_AZURE_RULE = ("AllowAllAzureServicesAndResourcesWithinAzureIps", "0.0.0.0", "0.0.0.0")

# MySQL error 1396: "Operation CREATE USER failed" (user already exists)
USER_EXISTS_MARKERS = ("1396", "already exists")


def _server_args(server: str, resource_group: str) -> list[str]:
    return ["--server-name", server, "--resource-group", resource_group]


def ensure_server_identity(server: str, resource_group: str, identity_id: str) -> bool:
    """Assign the user-assigned identity the server uses to query Graph."""
    current = az_json(["az", "mysql", "flexible-server", "identity", "list",
                       *_server_args(server, resource_group)]) or {}
    assigned = {key.lower() for key in (current.get("userAssignedIdentities") or {})}

    if identity_id.lower() in assigned:
        logger.info(f"Identity already assigned to MySQL server {server}")
        return False

    run_command(["az", "mysql", "flexible-server", "identity", "assign",
                 *_server_args(server, resource_group), "--identity", identity_id],
                capture_output=True)
    logger.success(f"Assigned identity to MySQL server {server}")
    return True


def ensure_ad_admin(server: str, resource_group: str, admin_name: str,
                    admin_object_id: str, identity_id: str) -> bool:
    """Make ``admin_name`` the server's Azure AD administrator, bound to ``identity_id``.

    The admin is re-created when the identity differs, e.g. after destroy.py
    removed the old one and a new identity was assigned."""
    current = optional_output(["az", "mysql", "flexible-server", "ad-admin", "show",
                               *_server_args(server, resource_group),
                               "--query", "[sid, identityResourceId]", "-o", "tsv"]).split()
    current_sid = current[0] if current else ""
    current_identity = current[1] if len(current) > 1 else ""

    if current_sid == admin_object_id and current_identity.lower() == identity_id.lower():
        logger.info(f"{admin_name} is already Azure AD admin of {server}")
        return False

    if current_sid:
        logger.warning(f"Replacing Azure AD admin {current_sid} ({current_identity or 'no identity'}) "
                       f"of {server} with {admin_name}")

    run_command([
        "az", "mysql", "flexible-server", "ad-admin", "create",
        *_server_args(server, resource_group),
        "--display-name", admin_name,
        "--object-id", admin_object_id,
        "--identity", identity_id,
    ], capture_output=True)
    logger.success(f"{admin_name} is now Azure AD admin of {server}")
    return True


def ensure_firewall_rule(server: str, resource_group: str, rule_name: str,
                         start_ip: str, end_ip: str) -> bool:
    """Create a firewall rule unless one with that name exists."""
    if succeeds(["az", "mysql", "flexible-server", "firewall-rule", "show",
                 "--name", server, "--resource-group", resource_group,
                 "--rule-name", rule_name, "--query", "id", "-o", "tsv"]):
        logger.info(f"Firewall rule {rule_name} already exists")
        return False

    run_command([
        "az", "mysql", "flexible-server", "firewall-rule", "create",
        "--name", server, "--resource-group", resource_group,
        "--rule-name", rule_name,
        "--start-ip-address", start_ip,
        "--end-ip-address", end_ip,
    ], capture_output=True)
    logger.success(f"Created firewall rule {rule_name} ({start_ip}-{end_ip})")
    return True


def operator_rule_name(ip: str) -> str:
    return "operator-" + ip.replace(".", "-")


def ensure_aad_only(server: str, resource_group: str) -> bool:
    """Switch off password authentication (server parameter aad_auth_only)."""
    value = optional_output(["az", "mysql", "flexible-server", "parameter", "show",
                             *_server_args(server, resource_group),
                             "--name", "aad_auth_only", "--query", "value", "-o", "tsv"])
    if value.upper() == "ON":
        logger.info(f"{server} already accepts Azure AD authentication only")
        return False

    run_command(["az", "mysql", "flexible-server", "parameter", "set",
                 *_server_args(server, resource_group),
                 "--name", "aad_auth_only", "--value", "ON"], capture_output=True)
    logger.success(f"{server} now accepts Azure AD authentication only")
    return True


def sql_statements(text: str) -> list[str]:
    """Split a SQL script into statements, dropping blank lines and `--` comments."""
    lines = [line for line in text.splitlines() if line.strip() and not line.strip().startswith("--")]
    return [statement.strip() for statement in "\n".join(lines).split(";") if statement.strip()]


def execute(server: str, database: str, admin_name: str, token: str, statement: str) -> None:
    run_command([
        "az", "mysql", "flexible-server", "execute",
        "--name", server,
        "--admin-user", admin_name,
        "--admin-password", token,
        "--database-name", database,
        "--querytext", statement,
    ], capture_output=True, secrets=[token])


def create_ad_user(server: str, database: str, admin_name: str, token: str,
                   sql_template: Path, env: dict[str, str]) -> None:
    """Run the rendered AD-user script as the Azure AD admin (token as password).

    An existing user is reported as a warning; grants are re-applied either way."""
    for statement in sql_statements(render(sql_template.read_text(), env)):
        try:
            execute(server, database, admin_name, token, statement)
        except subprocess.CalledProcessError as exc:
            err_text = (exc.stderr or "") + (exc.stdout or "")
            if statement.upper().startswith("CREATE") and any(m in err_text for m in USER_EXISTS_MARKERS):
                logger.warning(f"MySQL user {env.get('MYSQL_AAD_USER', '')} already exists.")
                continue
            logger.error(f"Statement failed: {statement}: {err_text.strip()}")
            raise

    logger.success(f"MySQL user {env.get('MYSQL_AAD_USER', '')} ready on {database}")
