"""Registry endpoints: registration, listing, detail, search and categories."""

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from starlette import status

from mcp_registry.models.errors import ErrorCode, RegistryError
from mcp_registry.models.registry import ServerRegistration, ServerStatus, ServerType
from mcp_registry.registry.service import ServerRegistry

router = APIRouter(prefix="/api/registry", tags=["registry"])


def _registry(request: Request) -> ServerRegistry:
    return request.app.state.registry


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_server(body: ServerRegistration, request: Request) -> JSONResponse:
    server = await _registry(request).register(body)
    return JSONResponse(
        {
            "id": server.id,
            "name": server.name,
            "status": server.status.value,
            "created_at": server.created_at.isoformat(),
        },
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/servers")
async def list_servers(
    request: Request,
    server_status: ServerStatus | None = Query(None, alias="status"),
    server_type: ServerType | None = Query(None, alias="type"),
    search: str | None = None,
) -> dict[str, Any]:
    servers = await _registry(request).list_servers(
        status=server_status, server_type=server_type, search=search
    )
    return {"servers": servers, "total": len(servers)}


@router.get("/servers/{server_id}")
async def get_server(server_id: int, request: Request) -> dict[str, Any]:
    detail = await _registry(request).get_server_detail(server_id)
    if detail is None:
        raise RegistryError(ErrorCode.SERVER_NOT_FOUND, "Server not found")
    return detail


@router.get("/search")
async def search(request: Request, q: str = "") -> dict[str, Any]:
    return await _registry(request).search(q)


@router.get("/categories")
async def list_categories(request: Request) -> dict[str, Any]:
    return await _registry(request).list_categories()


@router.get("/categories/{category}/tools")
async def list_category_tools(category: str, request: Request) -> dict[str, Any]:
    return await _registry(request).list_category_tools(category)
