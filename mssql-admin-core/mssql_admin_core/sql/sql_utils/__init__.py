"""
SQL Utilities - Internal helpers for SQL operations.
"""

from .batch_executor import BatchExecutor
from .downloader import ScriptDownloader
from .executor import SQLExecutor, split_batches
from .inputs import (
    DirectoryInput,
    FileInput,
    ObjectInput,
    PathInput,
    UrlInput,
    classify_input,
)
from .models import (
    ActionReport,
    BatchResult,
    CommandType,
    ErrorRecord,
    ExecutionMode,
    OutputShape,
    QueryResult,
    ResultSet,
    SourceOrigin,
    SqlSource,
)
from .resolver import InputResolver
from .script_generator import ObjectScriptGenerator, ScriptGenerator
from .temp_files import TempArtifactManager

__all__ = [
    "ActionReport",
    "BatchExecutor",
    "BatchResult",
    "CommandType",
    "DirectoryInput",
    "ErrorRecord",
    "ExecutionMode",
    "FileInput",
    "InputResolver",
    "ObjectInput",
    "ObjectScriptGenerator",
    "OutputShape",
    "PathInput",
    "QueryResult",
    "ResultSet",
    "SQLExecutor",
    "ScriptDownloader",
    "ScriptGenerator",
    "SourceOrigin",
    "SqlSource",
    "TempArtifactManager",
    "UrlInput",
    "classify_input",
    "split_batches",
]
