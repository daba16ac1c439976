"""
Workload identity check: logs which MySQL user the pod connects as.

Runs inside the pod. The workload identity webhook injects AZURE_CLIENT_ID,
AZURE_TENANT_ID and AZURE_FEDERATED_TOKEN_FILE, which DefaultAzureCredential
turns into an Azure AD token. The token is the MySQL password; nothing is
stored in the pod.
"""

import os
import sys
import time

import certifi
import pymysql
from azure.identity import DefaultAzureCredential
from loguru import logger

MYSQL_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


def connect(credential, host: str, user: str, database: str):
    """Open a TLS connection with a fresh token as password (clear-text auth plugin)."""
    token = credential.get_token(MYSQL_SCOPE).token
    return pymysql.connect(
        host=host,
        user=user,
        password=token,
        database=database,
        ssl_ca=certifi.where(),
        connect_timeout=10,
    )


def current_user(credential, host: str, user: str, database: str) -> str:
    """Return CURRENT_USER() as seen by the server."""
    connection = connect(credential, host, user, database)
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT CURRENT_USER()")
            return cursor.fetchone()[0]
    finally:
        connection.close()


def main():
    host = os.environ["MYSQL_HOST"]
    user = os.environ["MYSQL_USER"]
    database = os.environ["MYSQL_DATABASE"]
    interval = int(os.getenv("CHECK_INTERVAL_SECONDS", "60"))

    credential = DefaultAzureCredential()
    logger.info(f"Checking {user}@{host}/{database} every {interval}s")

    while True:
        try:
            logger.success(f"Connected as {current_user(credential, host, user, database)}")
        except Exception as e:
            # Keep the pod alive so `kubectl logs` shows the failure
            logger.error(f"Connection failed: {e}")
        time.sleep(interval)


if __name__ == "__main__":
    logger.remove()
    logger.add(sys.stdout, level="INFO")
    main()
