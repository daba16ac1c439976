"""Teardown keeps what it did not create."""

import subprocess
from unittest.mock import patch

import pytest

import destroy
from aksmysql.errors import ConfigError
from aksmysql.shared.settings import load_settings


@patch("destroy.delete_namespace")
@patch("destroy.aks")
@patch("destroy.identities")
@patch("destroy.run_command")
@patch("destroy.succeeds", return_value=True)
def test_resource_group_kept_without_provisioning(mock_exists, mock_run, mock_identities, mock_aks, mock_ns, env_file):
    destroy.destroy(load_settings(env_file))

    mock_ns.assert_called_once_with("demo")
    mock_identities.delete_federated_credential.assert_called_once_with("aks-federated-credential", "id-app", "rg-demo")
    assert mock_identities.delete_identity.call_count == 2
    mock_run.assert_not_called()


@patch("destroy.delete_namespace")
@patch("destroy.aks")
@patch("destroy.identities")
@patch("destroy.run_command", return_value="true")
@patch("destroy.succeeds", return_value=False)
def test_provisioned_resource_group_deleted(mock_exists, mock_run, mock_identities, mock_aks, mock_ns,
                                            env_file, monkeypatch):
    monkeypatch.setenv("PROVISION_INFRA", "true")

    destroy.destroy(load_settings(env_file))

    mock_ns.assert_not_called()
    assert mock_run.call_args.args[0] == ["az", "group", "delete", "--name", "rg-demo", "--yes", "--no-wait"]


@patch("destroy.destroy")
@patch("builtins.input", return_value="no")
def test_main_aborts_without_confirmation(mock_input, mock_destroy, env_file):
    destroy.main(env_file)
    mock_destroy.assert_not_called()


@patch("destroy.main", side_effect=subprocess.CalledProcessError(3, ["az", "identity", "delete"]))
def test_failed_command_exit_code_is_propagated(mock_main):
    with pytest.raises(SystemExit) as excinfo:
        destroy.run(["custom.env"])
    assert excinfo.value.code == 3
    mock_main.assert_called_once_with(destroy.Path("custom.env"))


@patch("destroy.main", side_effect=ConfigError("Invalid settings"))
def test_tool_error_exits_with_one(mock_main):
    with pytest.raises(SystemExit) as excinfo:
        destroy.run([])
    assert excinfo.value.code == 1
