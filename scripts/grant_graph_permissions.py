#!/usr/bin/env python3
"""
Grant Microsoft Graph application permissions to a managed identity.

Standalone version of the permission step of deploy.py, for tenants where
the person running the deployment is not an admin: hand this script to an
admin instead.

Usage:
    python scripts/grant_graph_permissions.py

Reads TENANT_ID, MI_PRINCIPAL_ID and (optionally) GRAPH_ACCESS_TOKEN from
the environment / `.env`, and prompts for whatever is missing. Without a
token a device-code sign-in is started. The sign-in is repeated until a
Global Administrator or Privileged Role Administrator account is used.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

BASE_DIR = Path(__file__).resolve().parents[1]
ENV_FILE = BASE_DIR / ".env"

# This would allow imports of ./aksmysql/ without installing the package:
sys.path.insert(0, str(BASE_DIR))

from aksmysql.errors import AksMysqlError
from aksmysql.graph.permissions import REQUIRED_PERMISSIONS, connect_as_admin, grant_graph_permissions
from aksmysql.shared.logging_config import configure_logging

load_dotenv(ENV_FILE)


def ask(key: str, prompt: str) -> str:
    """Value from the environment, else prompt until something non-empty is typed."""
    value = os.getenv(key, "").strip()
    while not value:
        value = input(prompt).strip()
    return value


def main():
    """Connect as admin and assign the fixed permission set."""
    tenant_id = ask("TENANT_ID", "Tenant ID: ")
    principal_id = ask("MI_PRINCIPAL_ID", "Managed identity principal (object) ID: ")
    token = os.getenv("GRAPH_ACCESS_TOKEN", "").strip() or None

    logger.info(f"Granting {', '.join(REQUIRED_PERMISSIONS)} to {principal_id}")

    try:
        client = connect_as_admin(tenant_id, access_token=token)
        result = grant_graph_permissions(client, principal_id)
    except AksMysqlError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("\n" + "=" * 60)
    logger.success(f"Assigned: {', '.join(result.assigned) or 'none'}")
    logger.info(f"Already present: {', '.join(result.skipped) or 'none'}")
    logger.info("=" * 60)


if __name__ == "__main__":
    configure_logging(name="graph-permissions")
    main()
