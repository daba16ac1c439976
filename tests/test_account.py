"""Login / subscription selection and operator IP lookup."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from aksmysql.azure import account
from aksmysql.errors import NetworkError

ACCOUNT = {"id": "sub-1", "name": "Dev", "tenantId": "tenant-1", "user": {"name": "dev@contoso.com"}}


@patch("aksmysql.azure.account.az_json", return_value=ACCOUNT)
@patch("aksmysql.azure.account.run_command")
@patch("aksmysql.azure.account.succeeds", return_value=False)
def test_logs_in_and_selects_subscription(mock_logged_in, mock_run, mock_show):
    assert account.ensure_login("sub-1") == ACCOUNT

    commands = [c.args[0] for c in mock_run.call_args_list]
    assert commands == [["az", "login"], ["az", "account", "set", "--subscription", "sub-1"]]


@patch("aksmysql.azure.account.az_json", return_value=ACCOUNT)
@patch("aksmysql.azure.account.run_command")
@patch("aksmysql.azure.account.succeeds", return_value=True)
def test_existing_session_is_reused(mock_logged_in, mock_run, mock_show):
    account.ensure_login()
    mock_run.assert_not_called()


@patch("aksmysql.azure.account.requests.get")
def test_operator_public_ip(mock_get):
    mock_get.return_value = MagicMock(text="203.0.113.7\n")
    assert account.operator_public_ip() == "203.0.113.7"
    mock_get.return_value.raise_for_status.assert_called_once()


@patch("aksmysql.azure.account.requests.get",
       side_effect=requests.exceptions.ConnectTimeout("api.ipify.org timed out"))
def test_operator_public_ip_unreachable(mock_get):
    with pytest.raises(NetworkError, match="ALLOW_OPERATOR_IP=false"):
        account.operator_public_ip()


@patch("aksmysql.azure.account.requests.get")
def test_operator_public_ip_http_error(mock_get):
    mock_get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")
    with pytest.raises(NetworkError, match="503"):
        account.operator_public_ip()
