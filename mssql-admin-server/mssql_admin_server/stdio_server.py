"""
MCP Server using stdio transport (recommended for local use).

Reads JSON-RPC messages from stdin and writes responses to stdout.
Uses line-delimited JSON (NDJSON) format. Logs go to stderr so they never
mix with protocol output.
"""
import json
import logging
import sys
from typing import Any, Dict

from .message_handler import INTERNAL_ERROR, PARSE_ERROR, error_response, handle_mcp_message


def _write(response: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(response, default=str, ensure_ascii=False) + '\n')
    sys.stdout.flush()


def run_stdio_server():
    """
    Run MCP server using stdio transport.

    Reads line-delimited JSON from stdin and writes responses to stdout.
    """
    sys.stdin.reconfigure(encoding='utf-8', errors='strict')
    sys.stdout.reconfigure(encoding='utf-8', errors='strict', line_buffering=True)
    sys.stderr.reconfigure(encoding='utf-8', errors='strict', line_buffering=True)
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue

            try:
                request_data = json.loads(line)
            except json.JSONDecodeError as e:
                _write(error_response(None, PARSE_ERROR, f"Parse error: {str(e)}"))
                continue

            response = handle_mcp_message(request_data)
            if response is not None:
                _write(response)

    except KeyboardInterrupt:
        pass
    except Exception as e:
        _write(error_response(None, INTERNAL_ERROR, f"Internal error: {str(e)}"))
        sys.exit(1)


def main():
    run_stdio_server()


if __name__ == "__main__":
    main()
