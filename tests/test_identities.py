"""Managed identities and federated credentials are created once."""

from unittest.mock import patch

from aksmysql.azure import identities

IDENTITY = {"id": "/subscriptions/s/.../id-app", "clientId": "cid", "principalId": "pid"}


@patch("aksmysql.azure.identities.az_json", return_value=IDENTITY)
@patch("aksmysql.azure.identities.run_command")
@patch("aksmysql.azure.identities.succeeds", return_value=True)
def test_existing_identity_is_not_recreated(mock_exists, mock_run, mock_show):
    assert identities.ensure_identity("id-app", "rg", "westeurope") == IDENTITY
    mock_run.assert_not_called()


@patch("aksmysql.azure.identities.az_json", return_value=IDENTITY)
@patch("aksmysql.azure.identities.run_command")
@patch("aksmysql.azure.identities.succeeds", return_value=False)
def test_missing_identity_is_created(mock_exists, mock_run, mock_show):
    identities.ensure_identity("id-app", "rg", "westeurope")

    command = mock_run.call_args.args[0]
    assert command[:3] == ["az", "identity", "create"]
    assert "westeurope" in command


@patch("aksmysql.azure.identities.run_command")
@patch("aksmysql.azure.identities.succeeds", return_value=False)
def test_federated_credential_binds_service_account(mock_exists, mock_run):
    created = identities.ensure_federated_credential(
        "fic", "id-app", "rg", "https://oidc.example/issuer/", "demo", "demo-sa")

    assert created is True
    command = mock_run.call_args.args[0]
    assert command[command.index("--subject") + 1] == "system:serviceaccount:demo:demo-sa"
    assert command[command.index("--issuer") + 1] == "https://oidc.example/issuer/"
    assert command[command.index("--audiences") + 1] == "api://AzureADTokenExchange"


@patch("aksmysql.azure.identities.run_command")
@patch("aksmysql.azure.identities.succeeds", return_value=True)
def test_existing_federated_credential_is_skipped(mock_exists, mock_run):
    assert identities.ensure_federated_credential("fic", "id-app", "rg", "iss", "demo", "sa") is False
    mock_run.assert_not_called()


@patch("aksmysql.azure.identities.run_command")
@patch("aksmysql.azure.identities.succeeds", return_value=False)
def test_delete_skips_missing_identity(mock_exists, mock_run):
    identities.delete_identity("id-app", "rg")
    mock_run.assert_not_called()
