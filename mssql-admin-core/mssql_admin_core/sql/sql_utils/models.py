"""
SQL Models - Pydantic models for script sources, query results and batch outcomes.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...config import AdminConfig, ConfirmImpact
from ...errors import ErrorKind

logger = logging.getLogger(__name__)

SERVER_INSTANCE_COLUMN = "ServerInstance"
DRY_RUN_REASON = "dry run"
CONFIRMATION_REASON = "confirmation required"


class SourceOrigin(str, Enum):
    """Where the SQL text of a source comes from."""

    QUERY = "query"  # literal query string
    FILE = "file"  # script file on disk
    URL = "url"  # downloaded into a temporary file
    OBJECT = "object"  # scripted from an in-memory object into a temporary file


class CommandType(str, Enum):
    TEXT = "text"
    STORED_PROCEDURE = "stored_procedure"


class OutputShape(str, Enum):
    """Shape of ``QueryResult.output``."""

    DATASET = "dataset"  # every result set
    TABLE = "table"  # first result set
    ROWS = "rows"  # rows of the first result set as dicts
    SINGLE_VALUE = "single_value"  # first column of the first row


class SqlSource(BaseModel):
    """A unit of executable SQL text with its provenance.

    File-backed sources hold a path and read it only when executed.
    """

    model_config = ConfigDict(frozen=True)

    origin: SourceOrigin
    location: str  # path, URL or label
    query: Optional[str] = None  # only for SourceOrigin.QUERY
    path: Optional[Path] = None
    is_temporary: bool = False

    @classmethod
    def from_query(cls, query: str) -> "SqlSource":
        return cls(origin=SourceOrigin.QUERY, location="query", query=query)

    @classmethod
    def from_file(
        cls,
        path: Path,
        origin: SourceOrigin = SourceOrigin.FILE,
        location: Optional[str] = None,
        is_temporary: bool = False,
    ) -> "SqlSource":
        return cls(
            origin=origin,
            location=location or str(path),
            path=path,
            is_temporary=is_temporary,
        )

    def read_text(self) -> str:
        """Materialize the SQL text."""
        if self.origin == SourceOrigin.QUERY:
            return self.query or ""
        # utf-8-sig drops the BOM that many SQL editors write
        return self.path.read_text(encoding="utf-8-sig")


class ResultSet(BaseModel):
    """One result set returned by the server."""

    columns: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    def with_server_instance(self, server_instance: str) -> "ResultSet":
        """Return a copy with a leading ServerInstance column."""
        return ResultSet(
            columns=[SERVER_INSTANCE_COLUMN] + self.columns,
            rows=[[server_instance] + list(row) for row in self.rows],
        )


class QueryResult(BaseModel):
    """Outcome of executing one source against one target."""

    target: str
    database: Optional[str] = None
    source: str
    result_sets: List[ResultSet] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)
    rowcount: int = -1
    server_instance: Optional[str] = None  # set when results must be attributable
    stream: List[Any] = Field(default_factory=list)  # messages and result sets in arrival order
    output: Any = None

    def tagged_result_sets(self) -> List[ResultSet]:
        if not self.server_instance:
            return self.result_sets
        return [rs.with_server_instance(self.server_instance) for rs in self.result_sets]

    def shape(self, output_shape: OutputShape) -> Any:
        """Project the collected result sets into the requested shape."""
        if output_shape == OutputShape.SINGLE_VALUE:
            first = self.result_sets[0] if self.result_sets else None
            if first is None or not first.rows or not first.rows[0]:
                return None
            return first.rows[0][0]

        result_sets = self.tagged_result_sets()
        first = result_sets[0] if result_sets else None
        if output_shape == OutputShape.DATASET:
            return result_sets
        if output_shape == OutputShape.TABLE:
            return first
        return first.as_dicts() if first else []

    def interleaved(self) -> List[Any]:
        """Messages and (tagged) result sets in the order the server sent them."""
        if not self.server_instance:
            return list(self.stream)
        return [
            item.with_server_instance(self.server_instance) if isinstance(item, ResultSet) else item
            for item in self.stream
        ]


class ActionReport(BaseModel):
    """An intended or performed change against one target."""

    target: str
    action: str
    performed: bool = False
    reason: Optional[str] = None  # why it was not performed


class ExecutionMode(BaseModel):
    """
    How an operation treats intended actions.

    dry_run: report every intended action, perform none.
    confirm: explicit approval for actions at or above the configured
        confirm threshold.
    """

    dry_run: bool = False
    confirm: bool = False

    def should_process(
        self,
        result: "BatchResult",
        target: str,
        action: str,
        impact: ConfirmImpact,
        config: AdminConfig,
    ) -> bool:
        """
        Decide whether an action runs.

        When it does not, an ActionReport carrying the reason is appended to
        ``result.actions``. Callers append their own report once the action
        has been performed.
        """
        if self.dry_run:
            logger.info(f"What if: performing \"{action}\" on target \"{target}\"")
            result.actions.append(ActionReport(target=target, action=action, reason=DRY_RUN_REASON))
            return False
        if config.requires_confirmation(impact) and not self.confirm:
            logger.warning(
                f"Skipping \"{action}\" on {target}: {impact.value} impact action requires confirmation"
            )
            result.actions.append(ActionReport(target=target, action=action, reason=CONFIRMATION_REASON))
            return False
        return True


class ErrorRecord(BaseModel):
    """A failure recorded under ErrorPolicy.WARN."""

    kind: ErrorKind
    message: str
    target: Optional[str] = None
    source: Optional[str] = None


class BatchResult(BaseModel):
    """Everything an operation produced across all of its targets."""

    results: List[QueryResult] = Field(default_factory=list)
    actions: List[ActionReport] = Field(default_factory=list)
    errors: List[ErrorRecord] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed_targets(self) -> List[str]:
        seen = []
        for error in self.errors:
            if error.target and error.target not in seen:
                seen.append(error.target)
        return seen

    @property
    def succeeded_targets(self) -> List[str]:
        failed = set(self.failed_targets)
        seen = []
        for result in self.results:
            if result.target not in failed and result.target not in seen:
                seen.append(result.target)
        return seen

    def outputs(self) -> List[Any]:
        """Shaped outputs in execution order."""
        return [result.output for result in self.results]

    def record(self, error) -> None:
        """Append a SqlAdminError as an ErrorRecord."""
        self.errors.append(
            ErrorRecord(
                kind=error.kind,
                message=error.message,
                target=error.target,
                source=error.source,
            )
        )
