"""Run the exporter.

Usage:
    cd exporter && python -m cli.serve [--config-file conf/rabbitmq.conf]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure exporter/ is on sys.path
_app_dir = str(Path(__file__).resolve().parent.parent)
if _app_dir not in sys.path:
    sys.path.insert(0, _app_dir)

import uvicorn

from application import create_app
from core.config import load_settings
from core.errors import ConfigurationError
from core.logging_config import configure_logging

logger = logging.getLogger("cli.serve")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prometheus exporter for RabbitMQ")
    parser.add_argument(
        "--config-file",
        default=None,
        help="JSON configuration file; environment variables are used when omitted",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.config_file)
    except ConfigurationError as exc:
        print(f"[cli] invalid configuration: {exc}", file=sys.stderr)
        return 1

    configure_logging(settings.output_format, settings.log_level)

    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.error("Refusing to start: %s", exc)
        return 1

    logger.info(
        "Starting RabbitMQ exporter on %s:%d for %s",
        settings.publish_addr or "0.0.0.0",
        settings.publish_port,
        settings.rabbit_url,
    )
    uvicorn.run(
        app,
        host=settings.publish_addr or "0.0.0.0",
        port=settings.publish_port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
