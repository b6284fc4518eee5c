"""POST /api/proxy/invoke: forward a tool call to a registered server."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mcp_registry.handlers.errors import error_response
from mcp_registry.models.errors import ErrorCode
from mcp_registry.models.proxy import ProxyRequest
from mcp_registry.proxy.invoker import InvocationProxy

router = APIRouter(prefix="/api/proxy", tags=["proxy"])


@router.post("/invoke")
async def invoke_tool(body: ProxyRequest, request: Request) -> JSONResponse:
    proxy: InvocationProxy = request.app.state.proxy
    result = await proxy.invoke(body.server_id, body.tool_name, body.arguments)

    if not result.success:
        return error_response(
            result.error_code or ErrorCode.INTERNAL_ERROR,
            result.error or "Unknown error",
            proxy=True,
        )

    return JSONResponse(
        {
            "success": True,
            "result": result.result,
            "duration_ms": result.duration_ms,
            "server_name": result.server_name,
            "tool_name": result.tool_name,
        }
    )
