"""
Tool definitions - Argument models and handlers for each exposed operation.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from mssql_admin_core import (
    AdminConfig,
    BatchResult,
    CommandType,
    ErrorPolicy,
    OutputShape,
    add_server_role_member,
    invoke_query,
    remove_server_role_member,
)

logger = logging.getLogger(__name__)


class TargetArgs(BaseModel):
    sql_instance: List[str] = Field(description="Instances as host or host,port")
    username: Optional[str] = Field(default=None, description="SQL or DOMAIN\\user login; integrated security when omitted")
    password: Optional[str] = None
    error_policy: ErrorPolicy = ErrorPolicy.WARN


class InvokeQueryArgs(TargetArgs):
    database: Optional[str] = None
    query: Optional[str] = Field(default=None, description="T-SQL to run; may contain GO separators")
    files: Optional[List[str]] = Field(default=None, description="Script files, folders, wildcards or http(s) URLs")
    query_timeout: Optional[int] = Field(default=None, description="Seconds; 600 by default")
    command_type: CommandType = CommandType.TEXT
    parameters: Optional[Union[List[Any], Dict[str, Any]]] = None
    output_shape: OutputShape = OutputShape.ROWS
    append_server_instance: bool = False
    messages_to_output: bool = False
    read_only: bool = False
    no_exec: bool = False
    dry_run: bool = False
    confirm: bool = Field(default=False, description="Approve execution when the confirm threshold is low")


class RoleMemberArgs(TargetArgs):
    server_role: List[str]
    login: Optional[List[str]] = None
    role: Optional[List[str]] = None
    dry_run: bool = False
    confirm: bool = False


class Tool:
    def __init__(self, name: str, description: str, args_model: type, handler: Callable[..., BatchResult]):
        self.name = name
        self.description = description
        self.args_model = args_model
        self.handler = handler

    def definition(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.args_model.model_json_schema(),
        }

    def call(self, arguments: Dict[str, Any], config: AdminConfig) -> Dict[str, Any]:
        args = self.args_model.model_validate(arguments or {})
        logger.info(f"Calling tool {self.name}")
        result = self.handler(config=config, **args.model_dump())
        return result.model_dump(mode="json")


TOOLS: Dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool(
            "invoke_query",
            "Run a T-SQL query or script files against one or more SQL Server instances.",
            InvokeQueryArgs,
            invoke_query,
        ),
        Tool(
            "add_server_role_member",
            "Add logins or server roles to server roles.",
            RoleMemberArgs,
            add_server_role_member,
        ),
        Tool(
            "remove_server_role_member",
            "Remove logins or server roles from server roles. Requires confirm=true unless dry_run.",
            RoleMemberArgs,
            remove_server_role_member,
        ),
    )
}
