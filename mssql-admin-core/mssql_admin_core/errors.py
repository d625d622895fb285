"""
Errors - Exception taxonomy and error policy shared by all operations.
"""

import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

_DRIVER_PREFIX = re.compile(r"^(\[[^\]]*\])+")


class ErrorKind(str, Enum):
    """Category of a failure, used for reporting and propagation decisions."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    UNSUPPORTED_INPUT = "unsupported_input"
    DOWNLOAD_ERROR = "download_error"
    GENERATION_ERROR = "generation_error"
    CONNECTION_ERROR = "connection_error"
    EXECUTION_ERROR = "execution_error"

    @property
    def is_target_scoped(self) -> bool:
        """True when the failure only affects the current target."""
        return self in (ErrorKind.CONNECTION_ERROR, ErrorKind.EXECUTION_ERROR)

    @property
    def is_batch_fatal(self) -> bool:
        return not self.is_target_scoped


class ErrorPolicy(str, Enum):
    """What an operation does with a failure."""

    WARN = "warn"  # log a friendly warning and record the failure in the result
    RAISE = "raise"  # propagate the exception to the caller


class SqlAdminError(Exception):
    """Base class for every error raised by mssql_admin_core."""

    kind: ErrorKind = ErrorKind.EXECUTION_ERROR

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        source: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.target = target
        self.source = source

    def __str__(self) -> str:
        parts = []
        if self.target:
            parts.append(f"[{self.target}]")
        if self.source:
            parts.append(f"({self.source})")
        parts.append(self.message)
        return " ".join(parts)


class InvalidArgumentError(SqlAdminError):
    """Mutually exclusive inputs both supplied, or none supplied."""

    kind = ErrorKind.INVALID_ARGUMENT


class NotFoundError(SqlAdminError):
    """Missing file, directory, role or login."""

    kind = ErrorKind.NOT_FOUND


class UnsupportedInputError(SqlAdminError):
    """Input of a shape the resolver does not know how to execute."""

    kind = ErrorKind.UNSUPPORTED_INPUT


class InvalidReferenceError(UnsupportedInputError):
    """A resolved path that does not point at the local filesystem."""


class DownloadError(SqlAdminError):
    """Both attempts to download a script failed."""

    kind = ErrorKind.DOWNLOAD_ERROR


class GenerationError(SqlAdminError):
    """An in-memory object could not be scripted to SQL text."""

    kind = ErrorKind.GENERATION_ERROR


class SqlConnectionError(SqlAdminError):
    """Connecting to (or binding) a single target failed."""

    kind = ErrorKind.CONNECTION_ERROR


class ExecutionError(SqlAdminError):
    """A query or membership change failed against a single target."""

    kind = ErrorKind.EXECUTION_ERROR


def strip_driver_prefix(text: str) -> str:
    return _DRIVER_PREFIX.sub("", text).strip()


def driver_message(error: BaseException) -> str:
    """Readable text of a driver error, without the [vendor][driver] prefix.

    pyodbc errors carry ``(sqlstate, message)`` as their args.
    """
    args = getattr(error, "args", ())
    text = args[1] if len(args) > 1 and isinstance(args[1], str) else str(error)
    return strip_driver_prefix(text)


def report(error: SqlAdminError, policy: ErrorPolicy) -> None:
    """Apply the error policy to a failure.

    Under ``ErrorPolicy.RAISE`` the error is re-raised; otherwise it is logged
    as a warning and the caller is expected to record it.
    """
    if policy == ErrorPolicy.RAISE:
        raise error
    logger.warning(str(error))
