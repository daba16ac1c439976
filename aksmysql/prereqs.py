"""Make sure the CLIs the pipeline shells out to are installed."""

import shutil
import subprocess
from dataclasses import dataclass, field

from loguru import logger

from aksmysql.errors import PrerequisiteError
from aksmysql.shell import run_command

# Azure CLI extensions used by the pipeline (`az mysql flexible-server execute`)
CLI_EXTENSIONS = ["rdbms-connect"]


@dataclass
class Tool:
    """An executable plus the commands that install it (empty = manual install only)."""
    name: str
    executable: str
    install_commands: list[list[str]] = field(default_factory=list)
    docs_url: str = ""


# Order matters: kubectl is installed through the Azure CLI
TOOLS = [
    Tool(
        name="Azure CLI",
        executable="az",
        install_commands=[["bash", "-c", "curl -sL https://aka.ms/InstallAzureCLIDeb | sudo bash"]],
        docs_url="https://learn.microsoft.com/cli/azure/install-azure-cli",
    ),
    Tool(
        name="kubectl",
        executable="kubectl",
        install_commands=[["sudo", "az", "aks", "install-cli"]],
        docs_url="https://kubernetes.io/docs/tasks/tools/",
    ),
    Tool(
        name="docker",
        executable="docker",
        docs_url="https://docs.docker.com/engine/install/",
    ),
]


def ensure_tool(tool: Tool) -> bool:
    """Install ``tool`` if missing. Returns True when something was installed."""
    if shutil.which(tool.executable):
        logger.info(f"{tool.name} already installed")
        return False

    if not tool.install_commands:
        logger.error(f"{tool.name} not installed and cannot be installed automatically. See {tool.docs_url}")
        raise PrerequisiteError(f"{tool.executable} is required")

    logger.info(f"Installing {tool.name}...")
    for command in tool.install_commands:
        run_command(command)

    if not shutil.which(tool.executable):
        raise PrerequisiteError(f"{tool.executable} still not on PATH after install. See {tool.docs_url}")

    logger.success(f"{tool.name} installed")
    return True


def ensure_cli_extensions(extensions: list[str] | None = None) -> None:
    """Add (or upgrade) the Azure CLI extensions the pipeline needs."""
    for extension in extensions or CLI_EXTENSIONS:
        try:
            run_command(["az", "extension", "add", "--name", extension, "--upgrade", "--yes"],
                        capture_output=True)
        except subprocess.CalledProcessError as exc:
            logger.error(f"Failed to install/upgrade the {extension} extension "
                         f"for Azure CLI: {exc.stderr or exc}")
            raise
        logger.success(f"Azure CLI {extension} extension is installed/up-to-date.")


def install_all(tools: list[Tool] | None = None) -> list[str]:
    """Ensure every tool in order; returns the names of the ones installed now."""
    installed = [tool.name for tool in (tools or TOOLS) if ensure_tool(tool)]
    if installed:
        logger.success(f"Installed: {', '.join(installed)}")
    else:
        logger.success("All prerequisites already present")
    return installed
