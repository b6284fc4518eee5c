"""Command line entry point: `python -m mcp_registry [serve|generate-key]`."""

import argparse

import uvicorn

from mcp_registry.config import get_config
from mcp_registry.security.vault import generate_encryption_key
from mcp_registry.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def serve() -> None:
    """Run the registry API under uvicorn."""
    config = get_config()
    configure_logging(config.log_level)

    logger.info("registry_server_starting", host=config.server_host, port=config.port)

    uvicorn.run(
        "mcp_registry.server:app",
        host=config.server_host,
        port=config.port,
        log_config=None,  # Use our custom structlog configuration
        access_log=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcp_registry", description="MCP server registry and invocation proxy")
    subcommands = parser.add_subparsers(dest="command")
    subcommands.add_parser("serve", help="Run the HTTP API (default)")
    subcommands.add_parser("generate-key", help="Print a new ENCRYPTION_KEY value")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.command == "generate-key":
        print(generate_encryption_key())
        return

    serve()


if __name__ == "__main__":
    main()
