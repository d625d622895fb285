"""
In-memory fake of the ODBC driver used by the unit tests.

FakeDriver.connect replaces pyodbc.connect. Each FakeServer answers
statements with scripted FakeResult lists and records what it executed.
"""

import re
from typing import Any, Dict, List, Optional


class FakeDriverError(Exception):
    """Stands in for pyodbc.Error: args are (sqlstate, message)."""


class FakeResult:
    """One result of a statement: a result set, or a row count."""

    def __init__(self, columns=None, rows=None, rowcount=-1, messages=None):
        self.columns = columns
        self.rows = rows or []
        self.rowcount = rowcount
        self.messages = messages or []


class FakeCursor:
    def __init__(self, connection: "FakeConnection"):
        self.connection = connection
        self._results: List[FakeResult] = []
        self._index = 0
        self.closed = False

    @property
    def _current(self) -> Optional[FakeResult]:
        return self._results[self._index] if self._index < len(self._results) else None

    @property
    def description(self):
        current = self._current
        if current is None or current.columns is None:
            return None
        return [(column, None, None, None, None, None, True) for column in current.columns]

    @property
    def rowcount(self):
        current = self._current
        return current.rowcount if current else -1

    @property
    def messages(self):
        current = self._current
        return [("01000", f"[Microsoft][ODBC Driver 18 for SQL Server][SQL Server]{m}") for m in current.messages] if current else []

    def execute(self, statement: str, *params):
        server = self.connection.server
        values = params[0] if params else []
        server.executed.append((self.connection.database, statement, list(values)))
        results = server.handle(statement, values, self.connection)
        self._results = results or [FakeResult()]
        self._index = 0
        return self

    def fetchall(self):
        return [tuple(row) for row in self._current.rows]

    def nextset(self):
        self._index += 1
        return self._index < len(self._results)

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, server: "FakeServer", connection_string: str):
        self.server = server
        self.connection_string = connection_string
        match = re.search(r"DATABASE=([^;]*)", connection_string)
        self.database = match.group(1) if match else None
        self.timeout = 0
        self.closed = False

    def cursor(self):
        if self.closed:
            raise FakeDriverError("08003", "Connection is closed")
        return FakeCursor(self)

    def close(self):
        self.closed = True


class FakeServer:
    """A scripted SQL Server: handlers map statement patterns to results."""

    def __init__(self, name: str):
        self.name = name
        self.executed: List[tuple] = []
        self.handlers: List[tuple] = []

    def on(self, pattern: str, handler):
        """Register a result list, an exception, or a callable for statements matching pattern."""
        self.handlers.append((re.compile(pattern, re.IGNORECASE | re.DOTALL), handler))

    def handle(self, statement: str, values: List[Any], connection: FakeConnection):
        for pattern, handler in self.handlers:
            if pattern.search(statement):
                if isinstance(handler, Exception):
                    raise handler
                if callable(handler):
                    return handler(statement, values, connection)
                return handler
        return None

    @property
    def statements(self) -> List[str]:
        return [statement for _, statement, _ in self.executed]


class FakeDriver:
    """Replaces pyodbc.connect; servers are keyed by the SERVER= value."""

    def __init__(self):
        self.servers: Dict[str, FakeServer] = {}
        self.unreachable: set = set()
        self.connections: List[FakeConnection] = []

    def server(self, name: str) -> FakeServer:
        if name not in self.servers:
            self.servers[name] = FakeServer(name)
        return self.servers[name]

    def connect(self, connection_string: str, timeout: int = 0, autocommit: bool = True):
        match = re.search(r"SERVER=([^;]*)", connection_string)
        name = match.group(1) if match else ""
        if name in self.unreachable:
            raise FakeDriverError("08001", f"[Microsoft][ODBC Driver 18 for SQL Server]Login timeout expired for {name}")
        connection = FakeConnection(self.server(name), connection_string)
        self.connections.append(connection)
        return connection

