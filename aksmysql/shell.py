"""Thin wrappers around subprocess for the az / docker / kubectl CLIs.

Failures are never swallowed here: ``run_command`` raises
``subprocess.CalledProcessError`` and the entry point decides what to do.
Existence checks (``succeeds``) are the one place a non-zero exit is an
expected answer rather than an error.
"""

import json
import subprocess
from pathlib import Path
from typing import Any

from loguru import logger

MASK = "****"

# Name of the step currently running, reported when a command fails
current_step: str = ""


def masked(command: list[str], secrets: list[str] | None) -> list[str]:
    """Copy of the command with secret values replaced by MASK."""
    hidden = [s for s in (secrets or []) if s]
    return [MASK if part in hidden else part for part in command]


def run_command(
        command: list[str],
        working_dir: Path | None = None,
        capture_output: bool = False,
        input_text: str | None = None,
        secrets: list[str] | None = None,
) -> str:
    """Execute a command with logging.
    Args:
        command (list[str]): Command and arguments to run.
        working_dir (Path | None): Optional working directory.
        capture_output (bool): Whether to capture and return stdout.
        input_text (str | None): Text piped to stdin (e.g. rendered manifests).
        secrets (list[str] | None): Argument values to mask in the log.
    Returns:
        str: Captured stdout if requested, else empty string.
    """
    logger.info(f"$ {' '.join(masked(command, secrets))}")
    try:
        result = subprocess.run(command, cwd=working_dir, check=True, text=True,
                                capture_output=capture_output, input=input_text)
    except subprocess.CalledProcessError as exc:
        # Error reports print exc.cmd, keep secrets out of them too
        exc.cmd = masked(command, secrets)
        raise

    return result.stdout.strip() if capture_output else ""


def optional_output(command: list[str]) -> str:
    """Run a lookup that may legitimately fail (resource not found); "" on failure."""
    logger.debug(f"? {' '.join(command)}")
    result = subprocess.run(command, capture_output=True, text=True, check=False)
    return result.stdout.strip() if result.returncode == 0 else ""


def succeeds(command: list[str]) -> bool:
    """Run an existence check; True when the command exits 0 with some output."""
    return bool(optional_output(command))


def az_json(command: list[str], secrets: list[str] | None = None) -> Any:
    """Run an ``az`` command with JSON output and parse it (None for empty output)."""
    output = run_command([*command, "-o", "json"], capture_output=True, secrets=secrets)
    return json.loads(output) if output else None


def az_tsv(command: list[str], query: str) -> str:
    """Run an ``az`` command and return a single ``--query`` value as plain text."""
    return run_command([*command, "--query", query, "-o", "tsv"], capture_output=True)


def log_step(num: int, title: str) -> None:
    """Print formatted step header and remember it for error reports."""
    global current_step
    current_step = f"STEP {num}: {title}"
    logger.info("=" * 60)
    logger.info(current_step)
    logger.info("=" * 60)
