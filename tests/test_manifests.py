"""Manifest rendering (envsubst semantics) and kubectl apply order."""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from aksmysql.errors import ManifestError
from aksmysql.k8s import manifests

K8S_DIR = Path(__file__).resolve().parents[1] / "k8s"

FULL_ENV = {
    "NAMESPACE": "demo",
    "APP_NAME": "whoami",
    "SERVICE_ACCOUNT_NAME": "demo-sa",
    "APP_CLIENT_ID": "11111111-2222-3333-4444-555555555555",
    "TENANT_ID": "tenant",
    "MYSQL_HOST": "mysql-demo.mysql.database.azure.com",
    "MYSQL_AAD_USER": "id-app",
    "MYSQL_DATABASE": "demo",
    "IMAGE": "acrdemo.azurecr.io/whoami:latest",
}


def test_render_both_placeholder_forms():
    assert manifests.render("a: $A\nb: ${B}x", {"A": "1", "B": "2"}) == "a: 1\nb: 2x"


def test_render_unknown_names_become_empty():
    assert manifests.render("name: ${MISSING}-suffix", {}) == "name: -suffix"


def test_render_keeps_dollar_without_name():
    assert manifests.render("price: $5 and $", {}) == "price: $5 and $"


def test_render_file_rejects_broken_yaml(tmp_path):
    template = tmp_path / "bad.yaml"
    template.write_text("key: ${VALUE}\n")

    with pytest.raises(ManifestError, match="bad.yaml"):
        manifests.render_file(template, {"VALUE": "[unclosed"})


@patch("aksmysql.k8s.manifests.run_command", return_value="configured")
def test_apply_all_follows_fixed_order_and_skips_missing(mock_run, tmp_path):
    # Written in reverse to prove order comes from MANIFEST_ORDER, not the filesystem
    for name in ["service.yaml", "deployment.yaml", "ns.yaml"]:
        (tmp_path / name).write_text(f"kind: ConfigMap\nmetadata:\n  name: {name.split('.')[0]}-$NAMESPACE\n")

    applied = manifests.apply_all(tmp_path, {"NAMESPACE": "demo"})

    assert applied == ["ns.yaml", "deployment.yaml", "service.yaml"]
    piped = [c.kwargs["input_text"] for c in mock_run.call_args_list]
    assert "name: ns-demo" in piped[0]
    assert "name: service-demo" in piped[2]
    assert mock_run.call_args.args[0] == ["kubectl", "apply", "-f", "-"]


def test_shipped_templates_render_to_valid_manifests():
    docs = {}
    for name in manifests.MANIFEST_ORDER:
        rendered = manifests.render_file(K8S_DIR / name, FULL_ENV)
        docs[name] = yaml.safe_load(rendered)

    sa = docs["serviceaccount.yaml"]
    assert sa["metadata"]["annotations"]["azure.workload.identity/client-id"] == FULL_ENV["APP_CLIENT_ID"]

    pod = docs["deployment.yaml"]["spec"]["template"]
    assert pod["metadata"]["labels"]["azure.workload.identity/use"] == "true"
    assert pod["spec"]["serviceAccountName"] == "demo-sa"
    assert pod["spec"]["containers"][0]["image"] == FULL_ENV["IMAGE"]

    assert docs["secrets.yaml"]["stringData"]["MYSQL_USER"] == "id-app"
    assert "password" not in str(docs["secrets.yaml"]).lower()
