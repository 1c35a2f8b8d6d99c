#!/usr/bin/env python3
"""
Cognitive Aura Engine - Main Entry Point

Usage:
    python -m aura_engine.main [--config CONFIG_PATH] [--host HOST] [--ws-port PORT] [--api-port PORT]

Or after installing the package:
    aura-engine [--config CONFIG_PATH] [--sensor-mode simulated|system] [--simulate-samples]
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from aura_engine.services.logger_service import LoggerService, initialize_logger
from aura_engine.types.config import EngineConfig, SensorMode, StorageBackend


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cognitive Aura Engine server"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (YAML)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind servers to",
    )
    parser.add_argument(
        "--ws-port",
        type=int,
        default=None,
        help="WebSocket server port",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="REST API server port",
    )
    parser.add_argument(
        "--sensor-mode",
        type=str,
        choices=[m.value for m in SensorMode],
        default=None,
        help="Context provider adapters",
    )
    parser.add_argument(
        "--simulate-samples",
        action="store_true",
        help="Stream synthetic cognitive samples (dev mode)",
    )
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Persist snapshots, transitions and learned patterns as JSON lines in this directory",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--session-log-level",
        type=str,
        choices=LOG_LEVELS,
        default=None,
        help="Session log level",
    )
    parser.add_argument(
        "--system-log-level",
        type=str,
        choices=LOG_LEVELS,
        default=None,
        help="System log level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Mirror system logs to this file (JSON lines)",
    )
    return parser.parse_args(argv)


def load_config(config_path: Optional[str]) -> EngineConfig:
    """Load configuration from file or use defaults."""
    if config_path:
        return EngineConfig.from_file(config_path)
    return EngineConfig()


def apply_overrides(config: EngineConfig, args: argparse.Namespace) -> EngineConfig:
    """Command line arguments win over the configuration file."""
    if args.host:
        config.controller.websocket_host = args.host
        config.controller.api_host = args.host
    if args.ws_port is not None:
        config.controller.websocket_port = args.ws_port
    if args.api_port is not None:
        config.controller.api_port = args.api_port
    if args.sensor_mode:
        config.sensors.mode = SensorMode(args.sensor_mode)
    if args.simulate_samples:
        config.sensors.simulate_samples = True
    if args.storage_dir:
        config.storage.backend = StorageBackend.JSONL
        config.storage.directory = args.storage_dir
    if args.session_log_level:
        config.controller.session_log_level = args.session_log_level
    if args.system_log_level:
        config.controller.system_log_level = args.system_log_level
    if args.debug:
        config.controller.system_log_level = "DEBUG"
    if args.log_file:
        config.controller.log_file_path = args.log_file
    return config


def setup_logging(debug: bool = False) -> None:
    """
    Set up logging configuration.

    Args:
        debug: Enable debug level logging.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Suppress verbose third-party library logs
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("websockets.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def run_server(config: EngineConfig, logger: LoggerService) -> None:
    """
    Run the engine server until a shutdown signal arrives.
    """
    from aura_engine.api.server import Server

    server = Server(config, logger=logger)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.system("shutdown_signal_received", {})
        shutdown_event.set()

    # add_signal_handler is not supported on Windows
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    try:
        await server.start()
        await shutdown_event.wait()
    except asyncio.CancelledError:
        logger.system("server_shutdown_requested", {})
    finally:
        await server.stop()


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)

    try:
        config = apply_overrides(load_config(args.config), args)
    except (OSError, ValueError) as e:
        logging.getLogger("aura_engine").error("Invalid configuration: %s", e)
        return 2

    logger = initialize_logger(
        session_level=config.controller.session_log_level,
        system_level=config.controller.system_log_level,
        log_file_path=config.controller.log_file_path,
    )

    logger.system(
        "engine_startup",
        {
            "config_path": args.config,
            "websocket_url": f"ws://{config.controller.websocket_host}:{config.controller.websocket_port}",
            "api_url": f"http://{config.controller.api_host}:{config.controller.api_port}",
            "sensor_mode": config.sensors.mode.value,
            "storage": config.storage.backend.value,
            "debug": args.debug,
        },
    )

    try:
        asyncio.run(run_server(config, logger))
    except KeyboardInterrupt:
        logger.system("keyboard_interrupt", {})
        return 0
    except Exception as e:
        logger.system(
            "engine_error",
            {"error": str(e), "error_type": type(e).__name__},
            level="ERROR",
        )
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
