"""
SQL - Query execution against SQL Server instances.
"""

from .invoke_query import build_targets, invoke_query
from .sql_utils import BatchResult, CommandType, OutputShape, QueryResult, ResultSet, SqlSource

__all__ = [
    "BatchResult",
    "CommandType",
    "OutputShape",
    "QueryResult",
    "ResultSet",
    "SqlSource",
    "build_targets",
    "invoke_query",
]
