"""
Kubernetes manifest templating and apply.

Templates use shell-style ``$NAME`` / ``${NAME}`` placeholders and are
rendered with envsubst semantics: unknown names become empty strings.
"""

import re
from pathlib import Path

import yaml
from loguru import logger

from aksmysql.errors import ManifestError
from aksmysql.shell import run_command

# Apply order: namespace first, workload objects last
MANIFEST_ORDER = [
    "ns.yaml",
    "secrets.yaml",
    "serviceaccount.yaml",
    "azure-pvc.yaml",
    "deployment.yaml",
    "service.yaml",
]

PLACEHOLDER = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def render(text: str, env: dict[str, str]) -> str:
    """Substitute placeholders like envsubst does."""
    missing: set[str] = set()

    def _replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name not in env:
            missing.add(name)
            return ""
        return env[name]

    rendered = PLACEHOLDER.sub(_replace, text)
    if missing:
        logger.warning(f"Undefined variables rendered empty: {', '.join(sorted(missing))}")
    return rendered


def render_file(path: Path, env: dict[str, str]) -> str:
    """Render a template and make sure the result is still valid YAML."""
    rendered = render(path.read_text(), env)
    try:
        list(yaml.safe_load_all(rendered))
    except yaml.YAMLError as exc:
        raise ManifestError(f"{path.name} is not valid YAML after substitution: {exc}") from exc
    return rendered


def apply(rendered: str, namespace: str | None = None) -> None:
    """Pipe rendered manifests to `kubectl apply -f -` (server-side idempotent)."""
    command = ["kubectl", "apply", "-f", "-"]
    if namespace:
        command.extend(["--namespace", namespace])
    output = run_command(command, capture_output=True, input_text=rendered)
    for line in output.splitlines():
        logger.info(f"  {line}")


def apply_all(directory: Path, env: dict[str, str]) -> list[str]:
    """Render + apply every known manifest in order; returns the names applied."""
    applied = []
    for name in MANIFEST_ORDER:
        path = directory / name
        if not path.exists():
            logger.warning(f"{name} not found in {directory}, skipping")
            continue
        logger.info(f"Applying {name}...")
        apply(render_file(path, env))
        applied.append(name)

    logger.success(f"Applied {len(applied)} manifests")
    return applied


def delete_namespace(namespace: str) -> None:
    run_command(["kubectl", "delete", "namespace", namespace, "--ignore-not-found", "--wait=true"])
