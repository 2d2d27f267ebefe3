from __future__ import annotations

import argparse
import logging
import os
import uuid

import uvicorn

from quoteflow.api.http_app import SERVICE_NAME, build_app
from quoteflow.logging_setup import configure_logging
from quoteflow.services.bootstrap import build_runtime_container

DEFAULT_PORT = 8000


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="QuoteFlow lead form service")
    parser.add_argument("--host", default=os.getenv("APP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--dry-run-startup",
        action="store_true",
        help="Validate startup and exit",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable code reload (dev mode)",
    )
    return parser.parse_args(argv)


def create_runtime_app() -> object:
    run_id = str(uuid.uuid4())
    configure_logging()
    container = build_runtime_container()
    return build_app(
        run_id=run_id,
        api_deps=container.api_deps,
        repository_mode=container.repository_mode,
        on_startup=container.on_startup,
        on_shutdown=container.on_shutdown,
    )


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    configure_logging()
    run_id = str(uuid.uuid4())
    logger = logging.getLogger("runtime")

    logger.info("runtime initialized", extra={"service": SERVICE_NAME, "run_id": run_id})

    if args.dry_run_startup:
        logger.info("dry-run startup complete", extra={"service": SERVICE_NAME, "run_id": run_id})
        return 0

    if args.reload:
        uvicorn.run(
            "quoteflow.main:create_runtime_app",
            host=args.host,
            port=args.port,
            log_level="warning",
            reload=True,
            factory=True,
        )
    else:
        container = build_runtime_container()
        app = build_app(
            run_id=run_id,
            api_deps=container.api_deps,
            repository_mode=container.repository_mode,
            on_startup=container.on_startup,
            on_shutdown=container.on_shutdown,
        )
        uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
