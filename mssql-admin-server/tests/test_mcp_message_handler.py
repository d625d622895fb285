"""
Tests for the MCP JSON-RPC message handler and tool definitions.

None of these open a connection: tool calls either run as a dry run or fail
argument validation first.
"""

import json

import pytest

from mssql_admin_core import AdminConfig
from mssql_admin_server.message_handler import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    handle_mcp_message,
    set_config,
)
from mssql_admin_server.tools import TOOLS


@pytest.fixture(autouse=True)
def admin_config(tmp_path):
    config = AdminConfig(scratch_dir=tmp_path)
    set_config(config)
    yield config
    set_config(None)


def _request(method, params=None, request_id=1):
    request = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        request["params"] = params
    return request


def _call(name, arguments):
    response = handle_mcp_message(_request("tools/call", {"name": name, "arguments": arguments}))
    return response["result"]


class TestProtocol:
    def test_initialize(self):
        """Should advertise tool support"""
        response = handle_mcp_message(_request("initialize", {}))

        assert response["id"] == 1
        assert response["result"]["capabilities"] == {"tools": {}}
        assert response["result"]["serverInfo"]["name"] == "mssql-admin-server"

    def test_notification_has_no_response(self):
        """Should not answer notifications"""
        assert handle_mcp_message({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    def test_invalid_request(self):
        """Should reject messages that are not JSON-RPC 2.0"""
        assert handle_mcp_message({"method": "ping"})["error"]["code"] == INVALID_REQUEST

    def test_unknown_method(self):
        """Should report unknown methods"""
        assert handle_mcp_message(_request("resources/list"))["error"]["code"] == METHOD_NOT_FOUND

    def test_tools_list(self):
        """Should list every tool with an input schema"""
        tools = handle_mcp_message(_request("tools/list"))["result"]["tools"]

        assert [tool["name"] for tool in tools] == list(TOOLS)
        schema = next(t for t in tools if t["name"] == "invoke_query")["inputSchema"]
        assert "sql_instance" in schema["required"]


class TestToolCalls:
    def test_unknown_tool(self):
        """Should reject tools that do not exist"""
        response = handle_mcp_message(_request("tools/call", {"name": "drop_everything", "arguments": {}}))

        assert response["error"]["code"] == INVALID_PARAMS

    def test_invalid_arguments(self):
        """Should reject arguments that fail validation"""
        response = handle_mcp_message(
            _request("tools/call", {"name": "invoke_query", "arguments": {"query": "SELECT 1"}})
        )

        assert response["error"]["code"] == INVALID_PARAMS

    def test_dry_run_query(self, admin_config):
        """Should report the intended execution per instance"""
        result = _call("invoke_query", {"sql_instance": ["sql01", "sql02"], "query": "SELECT 1", "dry_run": True})

        assert result["isError"] is False
        payload = json.loads(result["content"][0]["text"])
        assert [action["target"] for action in payload["actions"]] == ["sql01", "sql02"]
        assert list(admin_config.scratch_dir.iterdir()) == []

    def test_recorded_error_marks_result(self):
        """Should flag a result with recorded errors as an error"""
        result = _call("invoke_query", {"sql_instance": ["sql01"], "query": "SELECT 1", "files": ["a.sql"]})

        assert result["isError"] is True
        payload = json.loads(result["content"][0]["text"])
        assert payload["errors"][0]["kind"] == "invalid_argument"

    def test_raised_error_becomes_text(self):
        """Should return the error text when the raise policy is used"""
        result = _call(
            "remove_server_role_member",
            {"sql_instance": ["sql01"], "server_role": ["sysadmin"], "error_policy": "raise"},
        )

        assert result["isError"] is True
        assert "at least one login or role" in result["content"][0]["text"]

    def test_invoke_query_accepts_confirm(self):
        """Should accept confirm for invoke_query"""
        schema = TOOLS["invoke_query"].definition()["inputSchema"]
        assert "confirm" in schema["properties"]

        result = _call(
            "invoke_query", {"sql_instance": ["sql01"], "query": "SELECT 1", "dry_run": True, "confirm": True}
        )

        assert result["isError"] is False
        payload = json.loads(result["content"][0]["text"])
        assert [action["reason"] for action in payload["actions"]] == ["dry run"]
