from __future__ import annotations

from .config import Settings, load_settings
from .custom_logging import setup_logging
from .server import build_tools, create_server


def run_server(settings: Settings) -> None:
    logger = setup_logging(settings.log_file, settings.log_level)
    logger.info("Starting lighting-design-mcp (%s transport)", settings.transport)
    mcp = create_server(settings, build_tools(settings, logger))
    if settings.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport=settings.transport, host=settings.host, port=settings.port)


def main() -> None:
    run_server(load_settings())


if __name__ == "__main__":
    main()
