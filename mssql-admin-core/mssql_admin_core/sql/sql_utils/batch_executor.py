"""
Batch Executor - Runs resolved SQL sources against every target in order,
isolating failures per target.
"""

import logging
from typing import List, Optional, Sequence

from ...config import AdminConfig, ConfirmImpact
from ...connection import ConnectionBinder, ExecutionTarget, target_name
from ...errors import ErrorPolicy, ExecutionError, SqlAdminError, report
from .executor import Parameters, SQLExecutor
from .models import (
    BatchResult,
    CommandType,
    ExecutionMode,
    OutputShape,
    SqlSource,
)

logger = logging.getLogger(__name__)


class BatchExecutor:
    """
    Executes sources against targets: for each target, every source in order.

    Connection and execution failures only stop the current target; the next
    target still runs. Contexts owned by the batch (non-pooled connections,
    per-database copies) are closed before moving on.

    Example:
        >>> batch = BatchExecutor(ConnectionBinder(config), SQLExecutor(600))
        >>> result = batch.run(targets, [SqlSource.from_query("SELECT @@VERSION")])
    """

    def __init__(
        self,
        binder: ConnectionBinder,
        executor: Optional[SQLExecutor] = None,
        policy: ErrorPolicy = ErrorPolicy.WARN,
        mode: Optional[ExecutionMode] = None,
        config: Optional[AdminConfig] = None,
    ):
        self.binder = binder
        self.config = config or binder.config
        self.executor = executor or SQLExecutor(query_timeout=self.config.query_timeout)
        self.policy = policy
        self.mode = mode or ExecutionMode()

    def run(
        self,
        targets: Sequence[ExecutionTarget],
        sources: Sequence[SqlSource],
        database: Optional[str] = None,
        command_type: CommandType = CommandType.TEXT,
        timeout: Optional[int] = None,
        parameters: Optional[Parameters] = None,
        output_shape: OutputShape = OutputShape.ROWS,
        append_server_instance: bool = False,
        messages_to_output: bool = False,
        no_exec: bool = False,
        result: Optional[BatchResult] = None,
    ) -> BatchResult:
        result = result if result is not None else BatchResult()
        tag_results = append_server_instance or len(targets) > 1

        for target in targets:
            name = target_name(target)
            pending = [
                source
                for source in sources
                if self.mode.should_process(
                    result, name, f"Executing {source.location}", ConfirmImpact.LOW, self.config
                )
            ]
            if not pending:
                continue

            logger.info(f"Executing {len(pending)} source(s) on {name}")
            try:
                with self.binder.session(target, database) as context:
                    if context is None:
                        result.warnings.append(f"{name}: database not accessible, skipped")
                        continue
                    for source in pending:
                        result.results.append(
                            self.executor.execute(
                                context,
                                self._read(source, name),
                                command_type=command_type,
                                timeout=timeout,
                                parameters=parameters,
                                output_shape=output_shape,
                                messages_to_output=messages_to_output,
                                no_exec=no_exec,
                                source=source.location,
                                server_instance=name if tag_results else None,
                            )
                        )
            except SqlAdminError as e:
                if not e.kind.is_target_scoped:
                    raise
                e.target = e.target or name
                report(e, self.policy)
                result.record(e)

        return result

    def _read(self, source: SqlSource, target: str) -> str:
        try:
            return source.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise ExecutionError(f"Could not read {source.location}: {e}", target=target, source=source.location) from e


def literal_sources(query: Optional[str]) -> List[SqlSource]:
    return [SqlSource.from_query(query)] if query is not None else []
