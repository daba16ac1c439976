"""Simple centralized logging - configure once, use everywhere.

Entry points (deploy.py, destroy.py, scripts/*) call ``configure_logging``
ONCE. All other modules just import the loguru logger directly.
"""

import sys
from pathlib import Path
from loguru import logger

_configured = False


def configure_logging(level: str = "INFO", log_dir: Path | str = "logs", name: str = "deploy"):
    """Configure console + rotating file sinks.
    Calling it again is a no-op, so scripts imported by other scripts
    don't add duplicate handlers."""
    global _configured

    if _configured:
        return

    logger.remove()  # Remove default handler

    # Console output
    logger.add(
        sys.stdout,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        colorize=True,
    )

    # File output (rotates daily), always DEBUG so failed runs can be replayed
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logger.add(
        str(Path(log_dir) / f"{name}_{{time:YYYY-MM-DD_HH-mm-ss}}.log"),
        level="DEBUG",
        rotation="00:00",
        retention="30 days",
    )

    _configured = True
    logger.debug("Logging configured")
