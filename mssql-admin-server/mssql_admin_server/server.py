"""
SQL Server Admin MCP Server

FastAPI server implementing MCP protocol over HTTP (for remote access).
For local use, run the stdio transport: python -m mssql_admin_server.stdio_server
"""
from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool

from .message_handler import INVALID_REQUEST, error_response, handle_mcp_message

app = FastAPI(title="SQL Server Admin MCP Server (HTTP)")


@app.post("/message")
async def message_endpoint(request: Request):
    """Handle MCP JSON-RPC messages"""
    try:
        request_data = await request.json()
    except ValueError:
        return error_response(None, INVALID_REQUEST, "Request body is not JSON")
    # Tool calls block on SQL Server; run them off the event loop
    response = await run_in_threadpool(handle_mcp_message, request_data)
    if response is None:
        return Response(status_code=202)
    return response


@app.get("/")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "transport": "http"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
