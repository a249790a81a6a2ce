"""Minimal MCP stdio server used by the transport tests.

Tools: echo, fail, boom (JSON-RPC error), hang (never answers), crash (exits 3).
Passing "--exit-now" as an allowed directory makes it exit during startup.
"""

import json
import sys

TOOLS = [
    {
        "name": "echo",
        "description": "Echo the text argument",
        "inputSchema": {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
    },
    {"name": "fail", "description": "Always fails", "inputSchema": {"type": "object", "properties": {}}},
    {"name": "hang", "description": "Never answers", "inputSchema": {"type": "object", "properties": {}}},
    {"name": "crash", "description": "Exits the server", "inputSchema": {"type": "object", "properties": {}}},
]


def write(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def handle(message):
    method = message.get("method")
    request_id = message.get("id")
    if request_id is None:
        return
    if method == "initialize":
        write({"jsonrpc": "2.0", "id": request_id, "result": {
            "protocolVersion": "2024-11-05", "capabilities": {"tools": {}},
            "serverInfo": {"name": "fake-mcp", "version": "0.0.1"},
        }})
    elif method == "tools/list":
        write({"jsonrpc": "2.0", "id": request_id, "result": {"tools": TOOLS}})
    elif method == "tools/call":
        params = message.get("params") or {}
        name = params.get("name")
        args = params.get("arguments") or {}
        if name == "echo":
            write({"jsonrpc": "2.0", "id": request_id, "result": {
                "isError": False, "content": [{"type": "text", "text": str(args.get("text", ""))}],
            }})
        elif name == "fail":
            write({"jsonrpc": "2.0", "id": request_id, "result": {
                "isError": True, "content": [{"type": "text", "text": "it broke"}],
            }})
        elif name == "hang":
            pass
        elif name == "crash":
            sys.exit(3)
        else:
            write({"jsonrpc": "2.0", "id": request_id, "error": {"code": -32602, "message": f"Unknown tool: {name}"}})
    else:
        write({"jsonrpc": "2.0", "id": request_id, "error": {"code": -32601, "message": "Method not found"}})


def main():
    if "--exit-now" in sys.argv[1:]:
        sys.exit(2)
    sys.stdout.write("fake server booting (not JSON)\n")
    sys.stdout.flush()
    for line in sys.stdin:
        line = line.strip()
        if line:
            handle(json.loads(line))


if __name__ == "__main__":
    main()
