"""
mssql-admin-core - Administrative operations for SQL Server instances.

Run queries, script files, URLs or scriptable objects against one or more
instances, and manage server role membership.
"""

from .config import AdminConfig, ConfirmImpact
from .connection import (
    ConnectionBinder,
    ConnectionContext,
    DatabaseHandle,
    InstanceSpec,
    clear_pool,
)
from .errors import (
    DownloadError,
    ErrorKind,
    ErrorPolicy,
    ExecutionError,
    GenerationError,
    InvalidArgumentError,
    InvalidReferenceError,
    NotFoundError,
    SqlAdminError,
    SqlConnectionError,
    UnsupportedInputError,
)
from .roles import add_server_role_member, remove_server_role_member
from .sql import BatchResult, CommandType, OutputShape, invoke_query

__version__ = "0.1.0"

__all__ = [
    "AdminConfig",
    "BatchResult",
    "CommandType",
    "ConfirmImpact",
    "ConnectionBinder",
    "ConnectionContext",
    "DatabaseHandle",
    "DownloadError",
    "ErrorKind",
    "ErrorPolicy",
    "ExecutionError",
    "GenerationError",
    "InstanceSpec",
    "InvalidArgumentError",
    "InvalidReferenceError",
    "NotFoundError",
    "OutputShape",
    "SqlAdminError",
    "SqlConnectionError",
    "UnsupportedInputError",
    "add_server_role_member",
    "clear_pool",
    "invoke_query",
    "remove_server_role_member",
]
