from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from prom2grafana import __version__
from prom2grafana.config import load_settings, setup_logging
from prom2grafana.errors import ConfigError
from prom2grafana.main import create_app

log = logging.getLogger("prom2grafana")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prom2grafana",
        description="Serve the metrics to Grafana dashboard / Prometheus alerts converter.",
    )
    parser.add_argument("--version", action="store_true", help="Show version information and exit")
    parser.add_argument("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: $PORT or 8080)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.version:
        print(f"prom2grafana {__version__}")
        return 0

    try:
        settings = load_settings()
    except ConfigError as exc:
        logging.basicConfig(level="ERROR", format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        log.error("startup: invalid configuration: %s", exc)
        return 1

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if overrides:
        settings = settings.model_copy(update=overrides)

    setup_logging(settings)
    app = create_app(settings)
    log.info("startup: server starting url=http://localhost:%d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
