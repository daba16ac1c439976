"""Build the whoami image locally and push it to ACR."""

from pathlib import Path

from loguru import logger

from aksmysql.shell import run_command


def build_and_push(acr_name: str, image: str, context_dir: Path) -> None:
    """`az acr login` + `docker build` + `docker push`. Docker layer caching
    keeps re-runs cheap, so there is no existence check here."""
    run_command(["az", "acr", "login", "--name", acr_name])
    run_command(["docker", "build", "-t", image, "."], working_dir=context_dir)
    run_command(["docker", "push", image])
    logger.success(f"Pushed {image}")
