"""
Server role provider - Reads and changes server role membership.
"""

import logging
from typing import Iterable, List, Optional, Protocol

from ..connection import ConnectionContext
from ..sql.sql_utils.executor import SQLExecutor

logger = logging.getLogger(__name__)

LIST_SERVER_ROLES = "SELECT name FROM sys.server_principals WHERE type = 'R' ORDER BY name"

LIST_LOGINS = "SELECT name FROM sys.server_principals WHERE type <> 'R' ORDER BY name"

LIST_ROLE_MEMBERS = """
SELECT m.name
FROM sys.server_role_members AS rm
JOIN sys.server_principals AS r ON rm.role_principal_id = r.principal_id
JOIN sys.server_principals AS m ON rm.member_principal_id = m.principal_id
WHERE r.name = ?
ORDER BY m.name
"""


def quote_name(name: str) -> str:
    """Bracket-quote an identifier."""
    return "[" + name.replace("]", "]]") + "]"


def _filter_names(names: Iterable[str], wanted: Optional[Iterable[str]]) -> List[str]:
    names = list(names)
    if not wanted:
        return names
    # Server principal names compare case-insensitively under the default collation
    by_lower = {name.lower(): name for name in names}
    return [by_lower[w.lower()] for w in wanted if w.lower() in by_lower]


class ServerRoleHandle(Protocol):
    """A server role on one instance."""

    name: str
    context: ConnectionContext

    def members(self) -> List[str]: ...

    def add_member(self, login: str) -> None: ...

    def drop_member(self, login: str) -> None: ...

    def add_membership_to_role(self, role_name: str) -> None: ...

    def drop_membership_from_role(self, role_name: str) -> None: ...


class RoleProvider(Protocol):
    def list_server_roles(
        self, context: ConnectionContext, names: Optional[Iterable[str]] = None
    ) -> List[ServerRoleHandle]: ...

    def list_logins(self, context: ConnectionContext, names: Optional[Iterable[str]] = None) -> List[str]: ...


class ServerRole:
    """A server role backed by T-SQL on its instance."""

    def __init__(self, name: str, context: ConnectionContext, executor: SQLExecutor):
        self.name = name
        self.context = context
        self._executor = executor

    def _run(self, statement: str) -> None:
        logger.debug(f"[{self.context.name}] {statement}")
        self._executor.execute(self.context, statement, source=f"server role {self.name}")

    def members(self) -> List[str]:
        result = self._executor.execute(
            self.context, LIST_ROLE_MEMBERS, parameters=[self.name], source=f"server role {self.name}"
        )
        return [row["name"] for row in result.output]

    def add_member(self, login: str) -> None:
        self._run(f"ALTER SERVER ROLE {quote_name(self.name)} ADD MEMBER {quote_name(login)}")

    def drop_member(self, login: str) -> None:
        self._run(f"ALTER SERVER ROLE {quote_name(self.name)} DROP MEMBER {quote_name(login)}")

    def add_membership_to_role(self, role_name: str) -> None:
        """Make this role a member of ``role_name``."""
        self._run(f"ALTER SERVER ROLE {quote_name(role_name)} ADD MEMBER {quote_name(self.name)}")

    def drop_membership_from_role(self, role_name: str) -> None:
        """Remove this role from the members of ``role_name``."""
        self._run(f"ALTER SERVER ROLE {quote_name(role_name)} DROP MEMBER {quote_name(self.name)}")

    def __repr__(self) -> str:
        return f"<ServerRole {self.context.name}/{self.name}>"


class SqlServerRoleProvider:
    """RoleProvider that queries the sys.server_* catalog views."""

    def __init__(self, executor: Optional[SQLExecutor] = None):
        self.executor = executor or SQLExecutor()

    def _names(self, context: ConnectionContext, query: str) -> List[str]:
        result = self.executor.execute(context, query, source="sys.server_principals")
        return [row["name"] for row in result.output]

    def list_server_roles(
        self, context: ConnectionContext, names: Optional[Iterable[str]] = None
    ) -> List[ServerRole]:
        return [
            ServerRole(name, context, self.executor)
            for name in _filter_names(self._names(context, LIST_SERVER_ROLES), names)
        ]

    def list_logins(self, context: ConnectionContext, names: Optional[Iterable[str]] = None) -> List[str]:
        return _filter_names(self._names(context, LIST_LOGINS), names)
