"""
Grant Microsoft Graph application roles to a managed identity.

The MySQL server looks up Azure AD users/apps through its user-assigned
identity, which therefore needs read access to the directory. Only a
Global Administrator or Privileged Role Administrator may grant that, so
the caller is checked first and asked to sign in again until an admin
account is used.

Role assignments are eventually consistent: after creating any new
assignment we wait before returning.
"""

import time
from dataclasses import dataclass, field

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DeviceCodeCredential
from loguru import logger

from aksmysql.errors import GraphError, NotAdminError

GRAPH_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
GRAPH_APP_ID = "00000003-0000-0000-c000-000000000000"  # Microsoft Graph's well-known appId

REQUIRED_PERMISSIONS = ["Directory.Read.All", "User.Read.All", "Application.Read.All"]

# Directory role template IDs allowed to grant application permissions
ADMIN_ROLE_TEMPLATES = {
    "62e90394-69f5-4237-9190-012177145e10": "Global Administrator",
    "e8611ab8-c189-46e8-94e1-60213ab1f814": "Privileged Role Administrator",
}

DEFAULT_PROPAGATION_SECONDS = 30


class GraphClient:
    """Minimal Graph REST client: bearer token + JSON + paging."""

    def __init__(self, token: str, session: requests.Session | None = None, timeout: int = 30):
        self.session = session or requests.Session()
        self.headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        self.timeout = timeout

    @staticmethod
    def _check(response: requests.Response) -> dict:
        if response.status_code >= 400:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = response.text
            raise GraphError(f"Graph request failed ({response.status_code}): {message}",
                             status_code=response.status_code)
        return response.json() if response.content else {}

    def get(self, path: str, params: dict | None = None) -> dict:
        url = path if path.startswith("https://") else GRAPH_URL + path
        try:
            response = self.session.get(url, headers=self.headers, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise GraphError(f"Graph request to {url} failed: {exc}") from exc
        return self._check(response)

    def get_all(self, path: str, params: dict | None = None) -> list[dict]:
        """Follow @odata.nextLink until every page is read."""
        items: list[dict] = []
        data = self.get(path, params)
        while True:
            items.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")
            if not next_link:
                return items
            data = self.get(next_link)  # nextLink already carries the query

    def post(self, path: str, body: dict) -> dict:
        try:
            response = self.session.post(GRAPH_URL + path, headers=self.headers, json=body,
                                         timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise GraphError(f"Graph request to {GRAPH_URL + path} failed: {exc}") from exc
        return self._check(response)


@dataclass
class GrantResult:
    assigned: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def admin_roles(client: GraphClient) -> list[str]:
    """Names of the admin roles (of interest) held by the signed-in user."""
    memberships = client.get_all("/me/transitiveMemberOf")
    return [
        ADMIN_ROLE_TEMPLATES[item["roleTemplateId"]]
        for item in memberships
        if item.get("@odata.type") == "#microsoft.graph.directoryRole"
        and item.get("roleTemplateId") in ADMIN_ROLE_TEMPLATES
    ]


def _interactive_token(tenant_id: str) -> str:
    """Fresh device-code sign-in (a new credential has no cached account)."""
    credential = DeviceCodeCredential(tenant_id=tenant_id)
    try:
        return credential.get_token(GRAPH_SCOPE).token
    except ClientAuthenticationError as exc:
        raise GraphError(f"Sign-in failed: {exc.message}") from exc


def connect_as_admin(
        tenant_id: str,
        access_token: str | None = None,
        max_attempts: int | None = None,
        session: requests.Session | None = None,
) -> GraphClient:
    """Return a Graph client signed in as an admin.

    Uses ``access_token`` first when given, otherwise signs in interactively.
    While the account is not an admin the user is asked to sign in again;
    with ``max_attempts=None`` this never gives up.
    """
    token = access_token
    attempt = 0

    while True:
        attempt += 1
        if not token:
            logger.info("Sign in with a Global Administrator or Privileged Role Administrator account")
            token = _interactive_token(tenant_id)

        client = GraphClient(token, session=session)
        roles = admin_roles(client)
        if roles:
            logger.success(f"Signed in with {', '.join(roles)} rights")
            return client

        upn = client.get("/me", params={"$select": "userPrincipalName"}).get("userPrincipalName", "this account")
        logger.warning(f"{upn} is neither Global Administrator nor Privileged Role Administrator.")

        if max_attempts is not None and attempt >= max_attempts:
            raise NotAdminError(f"No admin sign-in after {attempt} attempt(s)")

        input("Press Enter to sign in again with an administrator account...")
        token = None


def graph_service_principal(client: GraphClient) -> dict:
    """The tenant's Microsoft Graph service principal (id + appRoles)."""
    matches = client.get_all("/servicePrincipals", params={
        "$filter": f"appId eq '{GRAPH_APP_ID}'",
        "$select": "id,appId,displayName,appRoles",
    })
    if not matches:
        raise GraphError("Microsoft Graph service principal not found in tenant")
    return matches[0]


def resolve_app_roles(graph_sp: dict, permissions: list[str]) -> dict[str, str]:
    """Map permission names (e.g. User.Read.All) to Graph application appRole IDs."""
    by_value = {
        role["value"]: role["id"]
        for role in graph_sp.get("appRoles", [])
        if "Application" in role.get("allowedMemberTypes", [])
    }
    unknown = [name for name in permissions if name not in by_value]
    if unknown:
        raise GraphError(f"Unknown Microsoft Graph application permission(s): {', '.join(unknown)}")
    return {name: by_value[name] for name in permissions}


def assigned_role_ids(client: GraphClient, principal_id: str, resource_id: str) -> set[str]:
    """appRoleIds the principal already holds on the given resource."""
    assignments = client.get_all(f"/servicePrincipals/{principal_id}/appRoleAssignments")
    return {a["appRoleId"] for a in assignments if a.get("resourceId") == resource_id}


def grant_graph_permissions(
        client: GraphClient,
        principal_id: str,
        permissions: list[str] | None = None,
        propagation_seconds: int = DEFAULT_PROPAGATION_SECONDS,
) -> GrantResult:
    """Assign each Graph application permission the principal doesn't hold yet."""
    permissions = permissions or REQUIRED_PERMISSIONS
    graph_sp = graph_service_principal(client)
    role_ids = resolve_app_roles(graph_sp, permissions)
    existing = assigned_role_ids(client, principal_id, graph_sp["id"])

    result = GrantResult()
    for name, role_id in role_ids.items():
        if role_id in existing:
            logger.info(f"{name} already assigned")
            result.skipped.append(name)
            continue

        client.post(f"/servicePrincipals/{principal_id}/appRoleAssignments", {
            "principalId": principal_id,
            "resourceId": graph_sp["id"],
            "appRoleId": role_id,
        })
        logger.success(f"Assigned {name}")
        result.assigned.append(name)

    if result.assigned and propagation_seconds:
        logger.info(f"Waiting {propagation_seconds}s for role assignments to propagate...")
        time.sleep(propagation_seconds)

    return result
