"""
MCP message handling shared by the HTTP and stdio transports.

Implements the JSON-RPC 2.0 methods ``initialize``, ``ping``, ``tools/list``
and ``tools/call``.
"""
import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from mssql_admin_core import AdminConfig, SqlAdminError, __version__

from .tools import TOOLS

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "mssql-admin-server"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_config: Optional[AdminConfig] = None


def get_config() -> AdminConfig:
    """Settings for tool calls, read from MSSQLADMIN_* variables on first use."""
    global _config
    if _config is None:
        _config = AdminConfig()
    return _config


def set_config(config: Optional[AdminConfig]) -> None:
    global _config
    _config = config


def _result(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _text_content(payload: Any, is_error: bool = False) -> Dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str, ensure_ascii=False)
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


def _call_tool(tool, arguments: Dict[str, Any]) -> Dict[str, Any]:
    try:
        payload = tool.call(arguments, get_config())
    except SqlAdminError as e:
        # Raised only under the "raise" error policy
        return _text_content(str(e), is_error=True)
    return _text_content(payload, is_error=bool(payload.get("errors")))


def handle_mcp_message(request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Handle one JSON-RPC request and return the response.

    Notifications (requests without an id) return None.
    """
    if not isinstance(request, dict) or request.get("jsonrpc") != "2.0" or "method" not in request:
        return error_response(None, INVALID_REQUEST, "Invalid Request")

    request_id = request.get("id")
    method = request["method"]
    params = request.get("params") or {}

    if method.startswith("notifications/"):
        logger.debug(f"Notification: {method}")
        return None

    try:
        if method == "initialize":
            return _result(
                request_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": __version__},
                },
            )
        if method == "ping":
            return _result(request_id, {})
        if method == "tools/list":
            return _result(request_id, {"tools": [tool.definition() for tool in TOOLS.values()]})
        if method == "tools/call":
            tool = TOOLS.get(params.get("name"))
            if tool is None:
                return error_response(request_id, INVALID_PARAMS, f"Unknown tool: {params.get('name')}")
            try:
                return _result(request_id, _call_tool(tool, params.get("arguments") or {}))
            except ValidationError as e:
                return error_response(request_id, INVALID_PARAMS, f"Invalid arguments: {e}")
        return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")
    except Exception as e:
        logger.exception(f"Error handling {method}")
        return error_response(request_id, INTERNAL_ERROR, f"Internal error: {str(e)}")
