"""
Invoke Query

High-level function for running queries, script files, URLs or scriptable
objects against one or more instances or piped databases.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Union

from ..config import AdminConfig
from ..connection import ConnectionBinder, DatabaseHandle, ExecutionTarget, InstanceSpec
from ..errors import ErrorPolicy, InvalidArgumentError, SqlAdminError, report
from .sql_utils.batch_executor import BatchExecutor, literal_sources
from .sql_utils.downloader import ScriptDownloader
from .sql_utils.executor import Parameters, SQLExecutor
from .sql_utils.models import BatchResult, CommandType, ExecutionMode, OutputShape
from .sql_utils.resolver import InputResolver
from .sql_utils.script_generator import ScriptGenerator
from .sql_utils.temp_files import TempArtifactManager

logger = logging.getLogger(__name__)

InstanceInput = Union[str, InstanceSpec]


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes, InstanceSpec, DatabaseHandle)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def build_targets(
    sql_instance: Optional[Union[InstanceInput, Sequence[InstanceInput]]] = None,
    input_object: Optional[Union[DatabaseHandle, Sequence[DatabaseHandle]]] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    read_only: bool = False,
) -> List[ExecutionTarget]:
    """
    Turn the target selector into execution targets.

    Exactly one of sql_instance and input_object must be given.

    Raises:
        InvalidArgumentError: If both or neither are given, an input object
            is not a DatabaseHandle, or an instance does not parse
    """
    instances = as_list(sql_instance)
    handles = as_list(input_object)
    if instances and handles:
        raise InvalidArgumentError("You cannot use both sql_instance and input_object")
    if not instances and not handles:
        raise InvalidArgumentError("You must specify either sql_instance or input_object")

    if handles:
        for handle in handles:
            if not isinstance(handle, DatabaseHandle):
                raise InvalidArgumentError(
                    f"input_object must contain database handles, got {type(handle).__name__}"
                )
        return handles

    overrides = {}
    if username is not None:
        overrides["username"] = username
        overrides["password"] = password
    if read_only:
        overrides["read_only"] = True
    targets = []
    for instance in instances:
        try:
            targets.append(InstanceSpec.parse(instance, **overrides))
        except (TypeError, ValueError) as e:
            # pydantic ValidationError is a ValueError
            raise InvalidArgumentError(f"Invalid sql_instance {instance!r}: {e}", source=str(instance)) from e
    return targets


def invoke_query(
    sql_instance: Optional[Union[InstanceInput, Sequence[InstanceInput]]] = None,
    database: Optional[str] = None,
    query: Optional[str] = None,
    files: Optional[Sequence[Any]] = None,
    sql_objects: Optional[Sequence[Any]] = None,
    input_object: Optional[Union[DatabaseHandle, Sequence[DatabaseHandle]]] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    query_timeout: Optional[int] = None,
    command_type: CommandType = CommandType.TEXT,
    parameters: Optional[Parameters] = None,
    output_shape: OutputShape = OutputShape.ROWS,
    append_server_instance: bool = False,
    messages_to_output: bool = False,
    read_only: bool = False,
    no_exec: bool = False,
    dry_run: bool = False,
    confirm: bool = False,
    error_policy: ErrorPolicy = ErrorPolicy.WARN,
    config: Optional[AdminConfig] = None,
    binder: Optional[ConnectionBinder] = None,
    downloader: Optional[ScriptDownloader] = None,
    script_generator: Optional[ScriptGenerator] = None,
) -> BatchResult:
    """
    Run a query, script files or scriptable objects against SQL Server targets.

    Targets are either instances (``sql_instance``) or piped database handles
    (``input_object``), never both. The SQL comes from exactly one of
    ``query``, ``files`` (directories, files, wildcard paths, file:// or
    http(s) URLs) or ``sql_objects`` (objects with a ``script()`` method).

    Everything is resolved before any target is touched: a missing file, a
    failed download or an unscriptable object aborts the whole call. After
    that, failures are per target and the remaining targets still run.
    Temporary files written for downloads and scripted objects are always
    removed before returning.

    Args:
        sql_instance: One or more instances, as ``host[,port]`` strings or
            InstanceSpec values
        database: Database to run in (instances only; handles carry their own)
        query: Literal T-SQL, executed once per target
        files: Script inputs, executed in order per target
        sql_objects: Scriptable objects, scripted then executed per target
        input_object: Piped DatabaseHandle values
        username: SQL or DOMAIN\\user login; integrated security when omitted
        password: Password for username
        query_timeout: Seconds, defaults to config.query_timeout (600)
        command_type: TEXT or STORED_PROCEDURE
        parameters: Positional values, or named values for procedures
        output_shape: Shape of each QueryResult.output
        append_server_instance: Always add a ServerInstance column (it is
            added anyway when there is more than one target)
        messages_to_output: Interleave server messages with result sets
        read_only: Connect with ApplicationIntent=ReadOnly
        no_exec: Compile without executing (SET NOEXEC ON)
        dry_run: Report what would run without connecting
        confirm: Approve execution when config.confirm_threshold is LOW
            (queries are LOW impact); the default HIGH threshold needs none
        error_policy: WARN records failures in the result, RAISE raises them
        config: Shared settings; defaults to AdminConfig()
        binder, downloader, script_generator: Collaborators, injectable for tests

    Returns:
        BatchResult with one QueryResult per executed target/source pair,
        plus errors and dry-run actions

    Examples:
        >>> result = invoke_query("sql01", database="master", query="SELECT @@SERVERNAME AS name")
        >>> result.outputs()
        [[{'name': 'SQL01'}]]

        >>> # Every script of a folder against two instances
        >>> result = invoke_query(["sql01", "sql02,1433"], files=["./migrations"])
    """
    config = config or (binder.config if binder else AdminConfig())
    binder = binder or ConnectionBinder(config)
    result = BatchResult()

    try:
        targets = build_targets(sql_instance, input_object, username, password, read_only)
        given = [name for name, value in (("query", query), ("files", files), ("sql_objects", sql_objects)) if value]
        if len(given) != 1:
            raise InvalidArgumentError("Specify exactly one of query, files or sql_objects")

        with TempArtifactManager(config.scratch_dir, config.temp_prefix) as temp_files:
            if query:
                sources = literal_sources(query)
            else:
                resolver = InputResolver(config, temp_files, downloader, script_generator)
                sources = resolver.resolve(as_list(files) if files else as_list(sql_objects))

            logger.debug(f"Running {len(sources)} source(s) on {len(targets)} target(s)")
            batch = BatchExecutor(
                binder,
                SQLExecutor(query_timeout=config.query_timeout),
                policy=error_policy,
                mode=ExecutionMode(dry_run=dry_run, confirm=confirm),
                config=config,
            )
            batch.run(
                targets,
                sources,
                database=database,
                command_type=command_type,
                timeout=query_timeout,
                parameters=parameters,
                output_shape=output_shape,
                append_server_instance=append_server_instance,
                messages_to_output=messages_to_output,
                no_exec=no_exec,
                result=result,
            )
    except SqlAdminError as e:
        report(e, error_policy)
        result.record(e)

    return result
