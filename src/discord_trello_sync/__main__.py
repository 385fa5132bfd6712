"""Entry point for running discord-trello-sync.

This module provides the main entry point for the bridge.
It handles:
- Configuration loading
- Logging setup with secret sanitization
- Health checks and config-only dry runs
- Bridge lifecycle management
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from discord_trello_sync._version import __version__

log = structlog.get_logger()


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging before the config file is read.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from discord_trello_sync.utils.logging import LogFormat, LogLevel, configure_logging

    configure_logging(
        level=LogLevel.DEBUG if debug else LogLevel.INFO,
        log_format=LogFormat(log_format.lower()),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="discord-trello-sync",
        description="Mirror Discord forum threads onto Trello cards and relay card changes back",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without starting the bridge",
    )
    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and exit",
    )

    return parser.parse_args(argv)


async def run_bridge(
    config_path: Path,
    dry_run: bool = False,
    health_check: bool = False,
    debug: bool = False,
) -> int:
    """Run the bridge.

    Args:
        config_path: Path to configuration file
        dry_run: If True, only validate config without starting
        health_check: If True, run health check and exit
        debug: Keep debug logging regardless of the configured level

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info("starting_discord_trello_sync", version=__version__, config_path=str(config_path))

    try:
        from discord_trello_sync.config.loader import load_config

        config = load_config(config_path)
        log.info("configuration_loaded")

        from discord_trello_sync.utils.logging import configure_logging

        configure_logging(
            level="DEBUG" if debug else config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        if dry_run:
            log.info("dry_run_mode_config_valid")
            return 0

        if health_check:
            from discord_trello_sync.utils.health import HealthChecker

            report = await HealthChecker(config).run_all_checks()
            if report.healthy:
                log.info("health_check_passed", report=report.to_dict())
                return 0
            log.error("health_check_failed", report=report.to_dict())
            return 1

        from discord_trello_sync.core.bridge import create_bridge

        bridge = create_bridge(config)
        await bridge.start()
        return 0

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(
            run_bridge(args.config, args.dry_run, args.health_check, debug=args.debug)
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
