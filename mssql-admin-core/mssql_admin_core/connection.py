"""
Connection Binder - Produces executable connection contexts for instances and
piped database handles.
"""

import logging
import re
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from pydantic import BaseModel, SecretStr

from .config import AdminConfig
from .errors import SqlAdminError, SqlConnectionError, driver_message

logger = logging.getLogger(__name__)

DOMAIN_SEPARATOR = "\\"


def is_domain_username(username: Optional[str]) -> bool:
    """Default heuristic: DOMAIN\\user names are Windows domain identities."""
    return bool(username) and DOMAIN_SEPARATOR in username


def _pyodbc_connect(connection_string: str, timeout: int = 0, autocommit: bool = True) -> Any:
    # pyodbc needs the ODBC driver manager at import time, so load it on first use
    import pyodbc

    return pyodbc.connect(connection_string, timeout=timeout, autocommit=autocommit)


class InstanceSpec(BaseModel):
    """A SQL Server instance to connect to.

    ``host`` may carry a named instance (``server\\instance``). Without a
    username the connection uses integrated authentication.
    """

    host: str
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    database: Optional[str] = None
    read_only: bool = False  # ApplicationIntent=ReadOnly
    pooled: bool = True

    @classmethod
    def parse(cls, value: Union[str, "InstanceSpec"], **kwargs) -> "InstanceSpec":
        """Parse ``host``, ``host,port`` or ``host\\instance`` into a spec."""
        if isinstance(value, InstanceSpec):
            if not kwargs:
                return value
            # Overrides are validated too, e.g. a str password becomes SecretStr
            return cls.model_validate({**value.model_dump(), **kwargs})
        if not isinstance(value, str):
            raise TypeError(f"expected a host string or InstanceSpec, got {type(value).__name__}")
        host, _, port = value.strip().partition(",")
        return cls(host=host.strip(), port=int(port) if port.strip() else None, **kwargs)

    @property
    def server(self) -> str:
        return f"{self.host},{self.port}" if self.port else self.host

    @property
    def name(self) -> str:
        """Identity used to tag results and errors."""
        return self.server


class ConnectionContext:
    """
    An open connection bound to one instance and database.

    Pooled contexts are shared and must not be closed by callers. Contexts
    with ``owned=True`` belong to whoever bound them and must be released.
    """

    def __init__(
        self,
        connection: Any,
        instance: InstanceSpec,
        database: Optional[str],
        connection_string: str,
        connect: Callable[..., Any],
        pooled: bool = True,
        owned: bool = False,
        connect_timeout: int = 0,
    ):
        self.connection = connection
        self.instance = instance
        self.database = database
        self.connection_string = connection_string
        self.pooled = pooled
        self.owned = owned
        self._connect = connect
        self._connect_timeout = connect_timeout
        self.closed = False

    @property
    def name(self) -> str:
        return self.instance.name

    @property
    def is_open(self) -> bool:
        """False once closed here, or once the driver reports the connection closed."""
        return not self.closed and not getattr(self.connection, "closed", False)

    def cursor(self):
        return self.connection.cursor()

    def copy(self, database: Optional[str] = None) -> "ConnectionContext":
        """Open a new, owned, non-pooled context, optionally on another database.

        The original connection is left untouched.
        """
        connection_string = self.connection_string
        if database is not None:
            connection_string = replace_database(connection_string, database)
        connection = self._connect(connection_string, timeout=self._connect_timeout, autocommit=True)
        return ConnectionContext(
            connection=connection,
            instance=self.instance,
            database=database if database is not None else self.database,
            connection_string=connection_string,
            connect=self._connect,
            pooled=False,
            owned=True,
            connect_timeout=self._connect_timeout,
        )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.connection.close()
        except Exception as e:
            logger.debug(f"Error closing connection to {self.name}: {e}")

    def __repr__(self) -> str:
        kind = "pooled" if self.pooled else "non-pooled"
        return f"<ConnectionContext {self.name}/{self.database or 'default'} {kind}>"


class DatabaseHandle:
    """A database already bound to a server connection (piped input)."""

    def __init__(self, name: str, context: ConnectionContext, is_accessible: bool = True):
        self.name = name
        self.context = context
        self.is_accessible = is_accessible

    @property
    def instance(self) -> InstanceSpec:
        return self.context.instance

    def __repr__(self) -> str:
        return f"<DatabaseHandle {self.instance.name}/{self.name}>"


ExecutionTarget = Union[InstanceSpec, DatabaseHandle]


def target_name(target: ExecutionTarget) -> str:
    return target.instance.name if isinstance(target, DatabaseHandle) else target.name


def _quote(value: str) -> str:
    if any(c in value for c in ";{}=") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def mask_password(connection_string: str) -> str:
    return re.sub(r"(?i)(PWD=)(\{(?:[^}]|\}\})*\}|[^;]*)", r"\1****", connection_string)


def replace_database(connection_string: str, database: str) -> str:
    parts = [part for part in connection_string.split(";") if not part.upper().startswith("DATABASE=")]
    parts.insert(2 if len(parts) >= 2 else len(parts), f"DATABASE={_quote(database)}")
    return ";".join(parts)


# Pooled contexts shared across targets and invocations of this process, keyed
# by (thread id, connection string): a DB-API connection with threadsafety 1
# must not be used by two threads at once
_pool: Dict[Tuple[int, str], ConnectionContext] = {}
_pool_lock = threading.Lock()


def clear_pool() -> None:
    """Close and forget every pooled context."""
    with _pool_lock:
        contexts = list(_pool.values())
        _pool.clear()
    for context in contexts:
        context.close()


class ConnectionBinder:
    """
    Binds execution targets to connection contexts.

    Args:
        config: Shared settings (driver, timeouts, legacy connection mode).
        connect: DB-API connect function, ``pyodbc.connect`` by default.
        is_domain_credential: Decides whether a username is a Windows domain
            identity. Such identities always get a non-pooled connection,
            since a reused pooled connection does not keep their security
            context.
    """

    def __init__(
        self,
        config: Optional[AdminConfig] = None,
        connect: Optional[Callable[..., Any]] = None,
        is_domain_credential: Callable[[Optional[str]], bool] = is_domain_username,
    ):
        self.config = config or AdminConfig()
        self.connect = connect or _pyodbc_connect
        self.is_domain_credential = is_domain_credential

    def build_connection_string(self, spec: InstanceSpec, database: Optional[str] = None) -> str:
        database = database if database is not None else spec.database
        parts = [
            f"DRIVER={{{self.config.odbc_driver}}}",
            f"SERVER={_quote(spec.server)}",
        ]
        if database:
            parts.append(f"DATABASE={_quote(database)}")
        if spec.username:
            parts.append(f"UID={_quote(spec.username)}")
            password = spec.password.get_secret_value() if spec.password else ""
            parts.append(f"PWD={_quote(password)}")
        else:
            parts.append("Trusted_Connection=yes")
        if spec.read_only:
            parts.append("ApplicationIntent=ReadOnly")
        if self.config.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        parts.append(f"APP={_quote(self.config.application_name)}")
        return ";".join(parts)

    def wants_pooling(self, spec: InstanceSpec) -> bool:
        if self.config.legacy_connection or not spec.pooled:
            return False
        return not self.is_domain_credential(spec.username)

    def bind(self, target: ExecutionTarget, database: Optional[str] = None) -> Optional[ConnectionContext]:
        """
        Produce a connection context for a target.

        Returns None when a piped database handle is not accessible; the
        caller skips that target. Raises SqlConnectionError when connecting
        to an instance fails.
        """
        if isinstance(target, DatabaseHandle):
            return self._bind_handle(target)
        return self._bind_instance(target, database)

    def _bind_handle(self, handle: DatabaseHandle) -> Optional[ConnectionContext]:
        if not handle.is_accessible:
            logger.warning(f"Database {handle.name} on {handle.instance.name} is not accessible. Skipping.")
            return None
        context = handle.context
        if context.database == handle.name:
            return context
        logger.debug(f"Opening a separate connection to {handle.instance.name}/{handle.name}")
        try:
            return context.copy(database=handle.name)
        except Exception as e:
            raise SqlConnectionError(
                f"Failure connecting to database {handle.name}: {driver_message(e)}", target=handle.instance.name
            ) from e

    def _bind_instance(self, spec: InstanceSpec, database: Optional[str]) -> ConnectionContext:
        pooled = self.wants_pooling(spec)
        connection_string = self.build_connection_string(spec, database)
        database = database if database is not None else spec.database

        key = (threading.get_ident(), connection_string)
        if pooled:
            with _pool_lock:
                cached = _pool.get(key)
            if cached is not None and cached.is_open:
                logger.debug(f"Reusing pooled connection {cached!r}")
                return cached
            if cached is not None:
                logger.debug(f"Pooled connection {cached!r} was closed, reconnecting")
                self.discard(cached)

        logger.debug(f"Connecting: {mask_password(connection_string)}")
        try:
            connection = self.connect(
                connection_string, timeout=self.config.connect_timeout, autocommit=True
            )
        except Exception as e:
            raise SqlConnectionError(f"Failure connecting to {spec.name}: {driver_message(e)}", target=spec.name) from e

        context = ConnectionContext(
            connection=connection,
            instance=spec,
            database=database,
            connection_string=connection_string,
            connect=self.connect,
            pooled=pooled,
            owned=not pooled,
            connect_timeout=self.config.connect_timeout,
        )
        if pooled:
            with _pool_lock:
                _pool[key] = context
        return context

    def release(self, context: Optional[ConnectionContext]) -> None:
        """Close owned or non-pooled contexts; leave shared ones open."""
        if context is None:
            return
        if context.owned or not context.pooled:
            logger.debug(f"Releasing {context!r}")
            context.close()

    def discard(self, context: ConnectionContext) -> None:
        """Forget a pooled context and close it; the next bind reconnects."""
        with _pool_lock:
            for key in [key for key, pooled in _pool.items() if pooled is context]:
                del _pool[key]
        logger.debug(f"Discarding {context!r}")
        context.close()

    @contextmanager
    def session(self, target: ExecutionTarget, database: Optional[str] = None) -> Iterator[Optional[ConnectionContext]]:
        """
        Bind a target and release the context when the block exits.

        A pooled instance context that saw a connection or execution failure is
        discarded rather than handed to later targets. Contexts of piped
        handles belong to the caller and are left alone.
        """
        context = self.bind(target, database)
        try:
            yield context
        except SqlAdminError as e:
            owned_by_pool = context is not None and context.pooled and isinstance(target, InstanceSpec)
            if owned_by_pool and e.kind.is_target_scoped:
                self.discard(context)
            raise
        finally:
            self.release(context)
