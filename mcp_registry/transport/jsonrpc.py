"""JSON-RPC 2.0 framing for MCP `tools/call`."""

from typing import Any

from mcp_registry.models.proxy import TransportResult

JSONRPC_VERSION = "2.0"
TOOLS_CALL_METHOD = "tools/call"
DEFAULT_TOOL_ERROR = "Tool execution failed"


def build_tools_call(request_id: int | str, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": TOOLS_CALL_METHOD,
        "params": {"name": tool_name, "arguments": arguments},
    }


def interpret_response(payload: Any) -> TransportResult:
    """
    Turn a JSON-RPC response body into a TransportResult.

    - A top-level `error` is a failure.
    - `result.isError` is a failure carrying the first content block's text.
    - Otherwise a single text block is unwrapped to its string, several
      blocks are returned as-is, and a result without content is returned raw.
    """
    if not isinstance(payload, dict):
        return TransportResult.fail("Invalid JSON-RPC response: expected a JSON object")

    error = payload.get("error")
    if error is not None:
        if isinstance(error, dict):
            return TransportResult.fail(
                f"JSON-RPC error {error.get('code')}: {error.get('message')}"
            )
        return TransportResult.fail(f"JSON-RPC error: {error}")

    result = payload.get("result")
    if not isinstance(result, dict):
        return TransportResult.ok(result)

    content = result.get("content")

    if result.get("isError") is True:
        return TransportResult.fail(_first_text(content) or DEFAULT_TOOL_ERROR)

    if isinstance(content, list) and content:
        if len(content) == 1 and _is_text_block(content[0]):
            return TransportResult.ok(content[0]["text"])
        return TransportResult.ok(content)

    return TransportResult.ok(result)


def _is_text_block(block: Any) -> bool:
    return isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)


def _first_text(content: Any) -> str | None:
    if isinstance(content, list) and content and isinstance(content[0], dict):
        text = content[0].get("text")
        if isinstance(text, str) and text:
            return text
    return None
