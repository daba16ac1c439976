"""Exceptions raised by the deployment tooling.

Command failures are NOT wrapped: they surface as
``subprocess.CalledProcessError`` and are handled by the entry points.
"""


class AksMysqlError(Exception):
    """Base class for every error raised on purpose by this package."""


class ConfigError(AksMysqlError):
    """The `.env` file is missing keys or holds invalid values."""


class PrerequisiteError(AksMysqlError):
    """A required local tool is missing and cannot be installed automatically."""


class GraphError(AksMysqlError):
    """Microsoft Graph returned an error or an unexpected payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotAdminError(AksMysqlError):
    """The signed-in account is neither Global nor Privileged Role Administrator."""


class ManifestError(AksMysqlError):
    """A rendered Kubernetes manifest is not valid YAML."""


class NetworkError(AksMysqlError):
    """An HTTP call outside the az CLI (e.g. public IP lookup) failed."""
