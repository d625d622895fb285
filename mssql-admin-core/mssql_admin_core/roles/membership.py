"""
Server Role Membership

High-level functions for adding logins and roles to server roles, and for
removing them.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import AdminConfig, ConfirmImpact
from ..connection import ConnectionBinder, ConnectionContext, InstanceSpec
from ..errors import (
    ErrorPolicy,
    InvalidArgumentError,
    SqlAdminError,
    report,
)
from ..sql.invoke_query import as_list, build_targets
from ..sql.sql_utils.models import ActionReport, BatchResult, ExecutionMode
from .provider import RoleProvider, ServerRoleHandle, SqlServerRoleProvider

logger = logging.getLogger(__name__)

InstanceInput = Union[str, InstanceSpec]
Names = Optional[Union[str, Sequence[str]]]


def _names(value: Names) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class _MembershipChange:
    """Shared target iteration for add/remove operations."""

    def __init__(
        self,
        logins: List[str],
        roles: List[str],
        impact: ConfirmImpact,
        provider: RoleProvider,
        mode: ExecutionMode,
        policy: ErrorPolicy,
        config: AdminConfig,
        result: BatchResult,
    ):
        self.logins = logins
        self.roles = roles
        self.impact = impact
        self.provider = provider
        self.mode = mode
        self.policy = policy
        self.config = config
        self.result = result
        self._nested: Dict[str, Dict[str, ServerRoleHandle]] = {}

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.result.warnings.append(message)

    def perform(self, context: ConnectionContext, action: str, change: Callable[[], None]) -> None:
        if not self.mode.should_process(self.result, context.name, action, self.impact, self.config):
            return
        change()
        logger.info(f"[{context.name}] {action}")
        self.result.actions.append(ActionReport(target=context.name, action=action, performed=True))

    def nested_roles(self, context: ConnectionContext) -> Dict[str, ServerRoleHandle]:
        """Roles to nest, looked up once per instance."""
        if not self.roles:
            return {}
        if context.name not in self._nested:
            found = {role.name.lower(): role for role in self.provider.list_server_roles(context, self.roles)}
            for name in self.roles:
                if name.lower() not in found:
                    self.warn(f"Server role {name} does not exist on {context.name}")
            self._nested[context.name] = found
        return self._nested[context.name]


def _run(
    change_role: Callable[[_MembershipChange, ConnectionContext, ServerRoleHandle], None],
    change: _MembershipChange,
    binder: ConnectionBinder,
    sql_instance: List[Any],
    server_role: List[str],
    input_object: List[Any],
    username: Optional[str],
    password: Optional[str],
) -> None:
    result = change.result
    if input_object:
        # Piped role handles, grouped by the connection they belong to
        groups: List[List[ServerRoleHandle]] = []
        for role in input_object:
            if not hasattr(role, "drop_member") or not hasattr(role, "context"):
                raise InvalidArgumentError(
                    f"input_object must contain server roles, got {type(role).__name__}"
                )
            if groups and groups[-1][0].context is role.context:
                groups[-1].append(role)
            else:
                groups.append([role])
        for roles in groups:
            context = roles[0].context
            try:
                for role in roles:
                    change_role(change, context, role)
            except SqlAdminError as e:
                _target_failed(e, context.name, change.policy, result)
        return

    targets = build_targets(sql_instance, None, username, password)
    if not server_role:
        raise InvalidArgumentError("server_role is required when sql_instance is used")

    for spec in targets:
        try:
            with binder.session(spec) as context:
                roles = change.provider.list_server_roles(context, server_role)
                found = {role.name.lower() for role in roles}
                for name in server_role:
                    if name.lower() not in found:
                        change.warn(f"Server role {name} does not exist on {spec.name}")
                for role in roles:
                    change_role(change, context, role)
        except SqlAdminError as e:
            _target_failed(e, spec.name, change.policy, result)


def _target_failed(error: SqlAdminError, target: str, policy: ErrorPolicy, result: BatchResult) -> None:
    if not error.kind.is_target_scoped:
        raise error
    error.target = error.target or target
    report(error, policy)
    result.record(error)


def _add_to_role(change: _MembershipChange, context: ConnectionContext, role: ServerRoleHandle) -> None:
    members = {member.lower() for member in role.members()}

    if change.logins:
        existing = {login.lower() for login in change.provider.list_logins(context, change.logins)}
        for login in change.logins:
            if login.lower() not in existing:
                change.warn(f"Login {login} does not exist on {context.name}")
            elif login.lower() in members:
                change.warn(f"Login {login} is already a member of {role.name} on {context.name}")
            else:
                change.perform(
                    context,
                    f"Adding login {login} to server role {role.name}",
                    lambda login=login: role.add_member(login),
                )

    for name, nested in change.nested_roles(context).items():
        if name in members:
            change.warn(f"Server role {nested.name} is already a member of {role.name} on {context.name}")
            continue
        change.perform(
            context,
            f"Adding server role {nested.name} to server role {role.name}",
            lambda nested=nested: nested.add_membership_to_role(role.name),
        )


def _remove_from_role(change: _MembershipChange, context: ConnectionContext, role: ServerRoleHandle) -> None:
    for login in change.logins:
        change.perform(
            context,
            f"Removing login {login} from server role {role.name}",
            lambda login=login: role.drop_member(login),
        )

    for nested in change.nested_roles(context).values():
        change.perform(
            context,
            f"Removing server role {nested.name} from server role {role.name}",
            lambda nested=nested: nested.drop_membership_from_role(role.name),
        )


def _membership(
    change_role,
    impact: ConfirmImpact,
    sql_instance,
    server_role: Names,
    login: Names,
    role: Names,
    input_object,
    username,
    password,
    dry_run: bool,
    confirm: bool,
    error_policy: ErrorPolicy,
    config: Optional[AdminConfig],
    binder: Optional[ConnectionBinder],
    provider: Optional[RoleProvider],
) -> BatchResult:
    config = config or (binder.config if binder else AdminConfig())
    binder = binder or ConnectionBinder(config)
    result = BatchResult()
    change = _MembershipChange(
        logins=_names(login),
        roles=_names(role),
        impact=impact,
        provider=provider or SqlServerRoleProvider(),
        mode=ExecutionMode(dry_run=dry_run, confirm=confirm),
        policy=error_policy,
        config=config,
        result=result,
    )

    try:
        instances = as_list(sql_instance)
        handles = as_list(input_object)
        if instances and handles:
            raise InvalidArgumentError("You cannot use both sql_instance and input_object")
        if not instances and not handles:
            raise InvalidArgumentError("You must specify either sql_instance or input_object")
        if not change.logins and not change.roles:
            raise InvalidArgumentError("You must specify at least one login or role")
        _run(change_role, change, binder, instances, _names(server_role), handles, username, password)
    except SqlAdminError as e:
        report(e, error_policy)
        result.record(e)

    return result


def add_server_role_member(
    sql_instance: Optional[Union[InstanceInput, Sequence[InstanceInput]]] = None,
    server_role: Names = None,
    login: Names = None,
    role: Names = None,
    input_object: Optional[Any] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    dry_run: bool = False,
    confirm: bool = False,
    error_policy: ErrorPolicy = ErrorPolicy.WARN,
    config: Optional[AdminConfig] = None,
    binder: Optional[ConnectionBinder] = None,
    provider: Optional[RoleProvider] = None,
) -> BatchResult:
    """
    Add logins and/or server roles to one or more server roles.

    Logins that do not exist, and logins or roles that are already members,
    are skipped with a warning. Missing server roles are skipped with a
    warning as well.

    Args:
        sql_instance: Target instances (``host[,port]`` or InstanceSpec)
        server_role: Server role(s) to add members to; required with sql_instance
        login: Login(s) to add
        role: Server role(s) to nest inside each server_role
        input_object: Server role handles, used instead of sql_instance
        username, password: Credential for the instances
        dry_run: Report the intended changes, change nothing
        confirm: Approve changes at or above config.confirm_threshold
        error_policy: WARN records failures, RAISE raises them

    Returns:
        BatchResult whose ``actions`` lists every performed or intended change

    Example:
        >>> add_server_role_member("sql01", server_role="dbcreator", login=["app1", "app2"])
    """
    return _membership(
        _add_to_role, ConfirmImpact.LOW, sql_instance, server_role, login, role, input_object,
        username, password, dry_run, confirm, error_policy, config, binder, provider,
    )


def remove_server_role_member(
    sql_instance: Optional[Union[InstanceInput, Sequence[InstanceInput]]] = None,
    server_role: Names = None,
    login: Names = None,
    role: Names = None,
    input_object: Optional[Any] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    dry_run: bool = False,
    confirm: bool = False,
    error_policy: ErrorPolicy = ErrorPolicy.WARN,
    config: Optional[AdminConfig] = None,
    binder: Optional[ConnectionBinder] = None,
    provider: Optional[RoleProvider] = None,
) -> BatchResult:
    """
    Remove logins and/or server roles from one or more server roles.

    This is a high impact change: unless ``confirm`` is set each intended
    removal is reported as not performed. A config with
    ``confirm_threshold=ConfirmImpact.NONE`` disables confirmation. Use
    ``dry_run`` to preview.

    Example:
        >>> result = remove_server_role_member("sql01", server_role="sysadmin", login="old_dba", dry_run=True)
        >>> [action.action for action in result.actions]
        ['Removing login old_dba from server role sysadmin']
    """
    return _membership(
        _remove_from_role, ConfirmImpact.HIGH, sql_instance, server_role, login, role, input_object,
        username, password, dry_run, confirm, error_policy, config, binder, provider,
    )
