"""Error taxonomy. Only configuration errors abort a run."""


class AuditError(Exception):
    """Base for every error the audit raises on purpose."""


class ConfigurationError(AuditError):
    """No usable remote, or an invalid config file. Fatal."""


class ParseError(AuditError):
    """Input did not match the expected shape (remote URL, API body)."""


class AuthError(AuditError):
    """No credential strategy is available for an API call."""


class NetworkError(AuditError):
    """Transport failure talking to the hosting API."""


class GitCommandError(AuditError):
    """A git invocation failed or git is not installed."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str = ""):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"git {' '.join(args)} failed ({returncode}){detail}")
