#!/usr/bin/env python3
"""
Prerequisite installer.

Installs the Azure CLI and kubectl when missing, checks that docker is
present, and adds the Azure CLI extensions the deployment uses.

Usage:
    python scripts/install_prereqs.py
"""

import subprocess
import sys
from pathlib import Path
from loguru import logger

BASE_DIR = Path(__file__).resolve().parents[1]

# This would allow imports of ./aksmysql/ without installing the package:
sys.path.insert(0, str(BASE_DIR))

from aksmysql.errors import PrerequisiteError
from aksmysql.prereqs import ensure_cli_extensions, install_all
from aksmysql.shared.logging_config import configure_logging


def main():
    """Install tools, then CLI extensions."""
    logger.info("=" * 60)
    logger.info("Prerequisites")
    logger.info("=" * 60)

    try:
        install_all()
        ensure_cli_extensions()
    except PrerequisiteError as e:
        logger.error(str(e))
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        logger.error(f"Install command failed with exit code {e.returncode}")
        sys.exit(e.returncode)

    logger.success("Ready to run `python deploy.py`")


if __name__ == "__main__":
    configure_logging(name="prereqs")
    main()
