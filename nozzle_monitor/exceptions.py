"""Exceptions raised by the nozzle engine and its configuration layer."""

from typing import Any, Optional


class NozzleMonitorError(Exception):
    """Base exception for all nozzle monitor errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class NozzleNotFoundError(NozzleMonitorError):
    """Raised when a command or read targets an unknown nozzle id."""

    def __init__(self, nozzle_id: Any, details: Optional[dict[str, Any]] = None):
        super().__init__(f"Nozzle not found: {nozzle_id!r}", details=details)
        self.nozzle_id = nozzle_id


class InvalidCommandError(NozzleMonitorError):
    """Raised for unrecognized commands when strict command checking is on."""

    def __init__(self, command: Any, details: Optional[dict[str, Any]] = None):
        super().__init__(f"Invalid command: {command!r}", details=details)
        self.command = command


class InternalFaultError(NozzleMonitorError):
    """Raised when applying a command failed unexpectedly.

    The nozzle record is restored to what it was before the command.
    """

    def __init__(
        self,
        nozzle_id: str,
        command: Any,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Internal fault applying {command!r} to nozzle {nozzle_id}",
            details={"cause": repr(cause)} if cause is not None else None,
        )
        self.nozzle_id = nozzle_id
        self.command = command


class ConfigurationError(NozzleMonitorError):
    """Raised when a settings value is missing or invalid."""

    def __init__(
        self,
        config_key: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            f"Configuration error for '{config_key}': {message}",
            details=details,
        )
        self.config_key = config_key
