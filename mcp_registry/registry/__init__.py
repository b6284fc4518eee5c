from mcp_registry.registry.service import ServerRegistry

__all__ = ["ServerRegistry"]
