"""
Apex CLI entry point.

Usage:
    python -m apex                      # Kivy app
    python -m apex --web                # Start the JSON API server
    python -m apex --export-gpx RIDE    # Write one ride as GPX
    python -m apex --check-update       # Look for a newer release
    python -m apex --help               # Show help
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .core.config import Config
from .core.log_buffer import LogBuffer


def setup_logging(config: Config, log_buffer: LogBuffer | None = None) -> None:
    """Configure logging based on config."""
    log_config = config["logging"]
    level = getattr(logging, str(log_config.get("level", "INFO")).upper())

    log_file = log_config.get("file", "logs/apex.log")
    log_dir = Path(log_file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file),
    ]
    if log_buffer is not None:
        handlers.append(log_buffer)

    logging.basicConfig(
        level=level,
        format=log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        handlers=handlers,
    )


def run_web_server(config: Config, log_buffer: LogBuffer | None = None) -> None:
    """Start the Flask web server."""
    logger = logging.getLogger(__name__)
    logger.info("Starting web server...")

    from .web.app import create_app

    app = create_app(config, log_buffer=log_buffer)

    web_config = config["web"]
    host = web_config.get("host", "0.0.0.0")
    port = web_config.get("port", 5000)
    debug = config.get("app.debug", False)

    logger.info(f"Web server starting at http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, threaded=True)


def export_ride(config: Config, ride_id: str, output_dir: str | None = None) -> int:
    """Export one ride as GPX. Returns the process exit code."""
    logger = logging.getLogger(__name__)

    from .backend import get_backend
    from .core.errors import ApexError
    from .services.container import create_services
    from .services.gpx import export_gpx

    services = create_services(get_backend(config))
    try:
        path = export_gpx(services.rides, ride_id, output_dir or config.exports_dir)
    except ApexError as e:
        logger.error(f"Export failed: {e}")
        return 1
    finally:
        services.close()
    print(path)
    return 0


def check_update(config: Config, force: bool = False) -> int:
    """Print the newest release if it is ahead of this version."""
    from .core.preferences import Preferences
    from .services.updates import DEFAULT_REPO, AppUpdateChecker

    checker = AppUpdateChecker(
        Preferences(config.preferences_path),
        __version__,
        repo=config.get("updates.repo") or DEFAULT_REPO,
        interval_hours=config.get("updates.check_interval_hours", 24),
        timeout=config.get("updates.timeout", 10),
    )
    info = checker.check(force=force)
    if checker.last_error:
        print(f"Update check failed: {checker.last_error}", file=sys.stderr)
        return 1
    if info is None:
        print(f"Apex {__version__} is up to date")
        return 0
    print(f"Apex {info.latest_version} is available (you have {info.current_version})")
    print(info.release_url)
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Apex - Motorcycle ride tracker and garage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m apex                          Run the app
    python -m apex --web                    Start the JSON API server
    python -m apex --export-gpx 42 -o .     Write ride 42 as GPX here
    python -m apex --check-update --force   Check for a release now

Environment:
    APEX_ENV                 development | production
    APEX_BACKEND_KIND        sqlite | rest
    APEX_SUPABASE_ANON_KEY   API key for the rest backend
        """,
    )

    parser.add_argument("--version", action="version", version=f"Apex {__version__}")
    parser.add_argument("--web", action="store_true", help="Start web server instead of the app")
    parser.add_argument("--export-gpx", metavar="RIDE_ID", help="Export a ride as GPX and exit")
    parser.add_argument("-o", "--output", type=str, help="Output directory for --export-gpx")
    parser.add_argument("--check-update", action="store_true", help="Check for a newer release and exit")
    parser.add_argument("--force", action="store_true", help="With --check-update: ignore the check interval")
    parser.add_argument("--config", type=str, help="Path to configuration directory")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    config_dir = Path(args.config) if args.config else None
    config = Config(config_dir)

    if args.debug:
        os.environ["APEX_ENV"] = "development"
        os.environ["APEX_LOGGING_LEVEL"] = "DEBUG"
        config.reload()

    log_buffer = LogBuffer(config.get("logging.buffer_size", 500))
    setup_logging(config, log_buffer)

    logger = logging.getLogger(__name__)
    logger.info(f"Apex {__version__} starting...")
    logger.info(f"Environment: {config.env}")

    if args.export_gpx:
        sys.exit(export_ride(config, args.export_gpx, args.output))
    if args.check_update:
        sys.exit(check_update(config, args.force))

    if args.web:
        run_web_server(config, log_buffer)
    else:
        from .mobile.app import run_mobile_app

        run_mobile_app(config, log_buffer)


if __name__ == "__main__":
    main()
