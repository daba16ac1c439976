"""Azure CLI login, subscription selection and signed-in user lookups."""

import requests
from loguru import logger

from aksmysql.errors import NetworkError
from aksmysql.shell import az_json, az_tsv, run_command, succeeds

PUBLIC_IP_URL = "https://api.ipify.org"


def ensure_login(subscription_id: str = "") -> dict:
    """Log in if the CLI has no session, select the subscription, return `az account show`."""
    if succeeds(["az", "account", "show", "--query", "id", "-o", "tsv"]):
        logger.info("Azure CLI already logged in")
    else:
        logger.warning("Azure CLI not logged in, starting 'az login'...")
        run_command(["az", "login"])

    if subscription_id:
        run_command(["az", "account", "set", "--subscription", subscription_id])

    account = az_json(["az", "account", "show"])
    logger.success(f"Using subscription {account['name']} ({account['id']}) "
                   f"as {account['user']['name']}")
    return account


def signed_in_user() -> dict:
    """Object ID / UPN of the operator, used as the MySQL Azure AD admin."""
    return az_json(["az", "ad", "signed-in-user", "show"])


def graph_access_token() -> str:
    """Microsoft Graph token for the signed-in CLI account."""
    return az_tsv(["az", "account", "get-access-token", "--resource-type", "ms-graph"], "accessToken")


def mysql_access_token() -> str:
    """Azure AD token accepted by MySQL Flexible Server as a password."""
    return az_tsv(["az", "account", "get-access-token", "--resource-type", "oss-rdbms"], "accessToken")


def operator_public_ip() -> str:
    """Public IP of this machine, for the operator firewall rule."""
    try:
        response = requests.get(PUBLIC_IP_URL, timeout=10)
        response.raise_for_status()
    except requests.exceptions.RequestException as exc:
        raise NetworkError(f"Could not detect the public IP via {PUBLIC_IP_URL}: {exc}. "
                           "Set ALLOW_OPERATOR_IP=false and add a firewall rule manually.") from exc
    return response.text.strip()
