"""
SQL Executor - Runs T-SQL text or stored procedures on one connection context.
"""

import logging
import re
from typing import Any, List, Mapping, Optional, Sequence, Union

from ...connection import ConnectionContext
from ...errors import ExecutionError, InvalidArgumentError, SqlAdminError, driver_message, strip_driver_prefix
from .models import CommandType, OutputShape, QueryResult, ResultSet

logger = logging.getLogger(__name__)

Parameters = Union[Sequence[Any], Mapping[str, Any]]

# "GO" alone on a line, optionally followed by a repeat count and a comment
_BATCH_SEPARATOR = re.compile(r"^[ \t]*GO(?:[ \t]+(\d+))?[ \t]*(?:--[^\n]*)?$", re.IGNORECASE | re.MULTILINE)


def split_batches(text: str) -> List[str]:
    """
    Split a script into batches on GO separator lines.

    ``GO n`` repeats the preceding batch n times. Empty batches are dropped.
    """
    batches: List[str] = []
    position = 0
    for match in _BATCH_SEPARATOR.finditer(text):
        batch = text[position:match.start()].strip()
        count = int(match.group(1)) if match.group(1) else 1
        if batch:
            batches.extend([batch] * count)
        position = match.end()
    tail = text[position:].strip()
    if tail:
        batches.append(tail)
    return batches


def _clean_message(message: Any) -> str:
    # pyodbc reports messages as (sqlstate, text) tuples
    text = message[1] if isinstance(message, (tuple, list)) and len(message) > 1 else str(message)
    return strip_driver_prefix(text)


def procedure_call(name: str, parameters: Optional[Parameters]) -> tuple:
    """Build the statement and parameter list that calls a stored procedure."""
    if not parameters:
        return f"EXEC {name}", []
    if isinstance(parameters, Mapping):
        assignments = ", ".join(f"@{key.lstrip('@')} = ?" for key in parameters)
        return f"EXEC {name} {assignments}", list(parameters.values())
    placeholders = ", ".join("?" for _ in parameters)
    return f"{{CALL {name} ({placeholders})}}", list(parameters)


class SQLExecutor:
    """
    Executes SQL against a ConnectionContext and collects every result set and
    server message.

    Example:
        >>> executor = SQLExecutor()
        >>> result = executor.execute(context, "SELECT name FROM sys.databases")
        >>> result.output
        [{'name': 'master'}, {'name': 'tempdb'}, ...]
    """

    def __init__(self, query_timeout: Optional[int] = None):
        self.query_timeout = query_timeout

    def execute(
        self,
        context: ConnectionContext,
        query: str,
        command_type: CommandType = CommandType.TEXT,
        timeout: Optional[int] = None,
        parameters: Optional[Parameters] = None,
        output_shape: OutputShape = OutputShape.ROWS,
        messages_to_output: bool = False,
        no_exec: bool = False,
        source: str = "query",
        server_instance: Optional[str] = None,
    ) -> QueryResult:
        """
        Execute a query and return its collected results.

        Args:
            context: Bound connection context
            query: T-SQL text (may contain GO separators), or a procedure name
                when command_type is STORED_PROCEDURE
            command_type: TEXT or STORED_PROCEDURE
            timeout: Query timeout in seconds, 0 for none. Defaults to the
                executor's query_timeout.
            parameters: Positional values for ``?`` placeholders, or named
                values for a stored procedure
            output_shape: How to shape ``QueryResult.output``
            messages_to_output: Put server messages into the output, interleaved
                with result sets in arrival order
            no_exec: Compile but do not run (SET NOEXEC ON)
            source: Label of the source, used in results and errors
            server_instance: When set, result sets get a leading
                ServerInstance column with this value

        Raises:
            InvalidArgumentError: If parameters do not fit the command
            ExecutionError: If the server or driver reports an error
        """
        statements = self._statements(query, command_type, parameters)
        timeout = self.query_timeout if timeout is None else timeout
        result = QueryResult(
            target=context.name,
            database=context.database,
            source=source,
            server_instance=server_instance,
        )

        if timeout is not None:
            context.connection.timeout = timeout

        cursor = None
        try:
            cursor = context.cursor()
            if no_exec:
                cursor.execute("SET NOEXEC ON")
            try:
                for statement, values in statements:
                    logger.debug(f"Executing on {context.name}: {statement[:200]}")
                    if values:
                        cursor.execute(statement, values)
                    else:
                        cursor.execute(statement)
                    self._collect(cursor, result)
            finally:
                if no_exec:
                    cursor.execute("SET NOEXEC OFF")
        except SqlAdminError:
            raise
        except Exception as e:
            raise ExecutionError(
                f"Query failed: {driver_message(e)}",
                target=context.name,
                source=source,
            ) from e
        finally:
            if cursor is not None:
                try:
                    cursor.close()
                except Exception as e:
                    logger.debug(f"Error closing cursor on {context.name}: {e}")

        result.output = result.interleaved() if messages_to_output else result.shape(output_shape)
        return result

    def _statements(
        self, query: str, command_type: CommandType, parameters: Optional[Parameters]
    ) -> List[tuple]:
        if command_type == CommandType.STORED_PROCEDURE:
            statement, values = procedure_call(query.strip(), parameters)
            return [(statement, values)]

        if isinstance(parameters, Mapping):
            raise InvalidArgumentError(
                "Named parameters are only supported for stored procedures; use positional parameters"
            )
        batches = split_batches(query)
        if parameters and len(batches) > 1:
            raise InvalidArgumentError("Parameters cannot be used with a script of several GO batches")
        values = list(parameters) if parameters else []
        return [(batch, values) for batch in batches]

    def _collect(self, cursor: Any, result: QueryResult) -> None:
        while True:
            for message in getattr(cursor, "messages", None) or []:
                text = _clean_message(message)
                logger.info(f"[{result.target}] {text}")
                result.messages.append(text)
                result.stream.append(text)

            if cursor.description:
                result_set = ResultSet(
                    columns=[column[0] for column in cursor.description],
                    rows=[list(row) for row in cursor.fetchall()],
                )
                result.result_sets.append(result_set)
                result.stream.append(result_set)
            elif cursor.rowcount is not None and cursor.rowcount >= 0:
                result.rowcount = max(result.rowcount, 0) + cursor.rowcount

            if not cursor.nextset():
                break
