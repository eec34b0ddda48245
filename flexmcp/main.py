# Purpose: Entry point wiring. Sets up logging, builds the tool registry
#          and runs the HTTP adapter until interrupted.
# Relationships: Wires together core/settings.py, tools/* and
#               adapters/network.py. This is the only place all subsystems
#               are assembled; individual modules know nothing about each other.

import asyncio
import logging
import signal
import sys

from .adapters.network import NetworkAdapter
from .core.settings import Settings
from .tools.api import make_api_tools
from .tools.calculator import make_add_tool, make_calculate_tool
from .tools.health import make_health_check_tool
from .tools.registry import ToolDefinition, ToolRegistry

logger = logging.getLogger("main")


def setup_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def build_registry(
    settings: Settings,
    extra_tools: list[ToolDefinition] | None = None,
) -> ToolRegistry:
    """
    Register every built-in tool, then any externally supplied ones.

    Registration happens once here; afterwards the registry is only read.
    An extra tool with a built-in's name replaces the built-in.
    """
    registry = ToolRegistry()
    registry.register_many([
        make_add_tool(),
        make_calculate_tool(),
        make_health_check_tool(
            registry,
            server_name=settings.get("server.name", "flexmcp"),
            version=str(settings.get("server.version", "2.0.0")),
        ),
        *make_api_tools(),
    ])
    registry.register_many(extra_tools or [])
    return registry


async def serve(settings: Settings, registry: ToolRegistry) -> None:
    adapter = NetworkAdapter(settings, registry)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl-C still
            # raises KeyboardInterrupt out of asyncio.run().
            pass

    await adapter.start()
    logger.info(
        "Serving %d tools: %s",
        len(registry.all_tools()),
        ", ".join(t.name for t in registry.all_tools()),
    )
    try:
        await stop.wait()
    finally:
        await adapter.stop()


def main(config_path: str | None = None) -> None:
    settings = Settings(config_path)
    setup_logging(settings.get("logging.level", "INFO"))
    logger.info("Loaded settings from %s", settings.path)
    registry = build_registry(settings)
    asyncio.run(serve(settings, registry))
