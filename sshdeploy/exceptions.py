"""
Exception classes for sshdeploy

Every DeployError is fatal to a run and is reported with its message;
DeployCancelled is the user backing out of conflict resolution and is not
treated as a failure.
"""
from typing import Any, Optional


class DeployError(Exception):
    """Base exception for all fatal deployment errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(DeployError):
    """Missing, unreadable or unparsable config file or profile."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        details = {"config_path": config_path} if config_path else {}
        super().__init__(message, details)
        self.config_path = config_path


class SSHConnectionError(DeployError):
    """Raised when connecting to the server keeps failing."""

    def __init__(self, message: str, host: Optional[str] = None,
                 attempts: Optional[int] = None):
        details = {}
        if host:
            details["host"] = host
        if attempts:
            details["attempts"] = attempts
        super().__init__(message, details)
        self.host = host
        self.attempts = attempts


class ScanError(DeployError):
    """Local or remote file enumeration failed."""

    def __init__(self, message: str, side: str):
        super().__init__(message, {"side": side})
        self.side = side


class TransferError(DeployError):
    """A single upload or delete failed."""

    def __init__(self, message: str, path: str):
        super().__init__(message, {"path": path})
        self.path = path


class CommandError(DeployError):
    """A remote command exited non-zero or could not be executed."""

    def __init__(self, message: str, command: Optional[str] = None,
                 exit_status: Optional[int] = None):
        details = {}
        if command:
            details["command"] = command
        if exit_status is not None:
            details["exit_status"] = exit_status
        super().__init__(message, details)
        self.command = command
        self.exit_status = exit_status


class DeployCancelled(Exception):
    """The user cancelled while resolving remote-only files."""
