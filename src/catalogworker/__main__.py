"""catalogworker: unified entry point.

Start the HTTP service:
    python -m catalogworker serve [--with-scheduler]

Run one scrape and print the report:
    python -m catalogworker scrape --type cards --source pokemon --skip-upload

Run the cron scheduler only:
    python -m catalogworker schedule
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="catalogworker: catalog scrape, transform and upload")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL env or INFO)",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Start the HTTP trigger/status service")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST env)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT env)")
    serve.add_argument(
        "--with-scheduler",
        action="store_true",
        help="Also run the cron schedules in the same process",
    )

    scrape = sub.add_parser("scrape", help="Run one scrape and print the report")
    scrape.add_argument("--type", "-t", dest="domain", default="spirits", help="Domain: spirits, cards, books")
    scrape.add_argument("--source", "-s", default="all", help="Source key or 'all'")
    scrape.add_argument("--limit", "-l", type=int, default=None, help="Per-source record cap")
    scrape.add_argument("--skip-upload", action="store_true", help="Scrape and transform only")

    sub.add_parser("schedule", help="Run the cron scheduler")
    return parser


def main(argv=None):
    """CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    from .config import get_config

    config = get_config()
    updates = {}
    if args.log_level:
        updates["log_level"] = args.log_level
    if getattr(args, "host", None):
        updates["host"] = args.host
    if getattr(args, "port", None):
        updates["port"] = args.port
    if updates:
        config = config.model_copy(update=updates)

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    command = args.command or "serve"
    try:
        if command == "scrape":
            from .errors import UnknownDomain, UnknownSource
            from .harvester.orchestrator import run_scrape

            try:
                report = asyncio.run(
                    run_scrape(
                        args.domain,
                        args.source,
                        skip_upload=args.skip_upload,
                        limit=args.limit,
                        config=config,
                    )
                )
            except (UnknownDomain, UnknownSource) as e:
                logger.error(str(e))
                sys.exit(2)
            print(json.dumps(report.to_dict(), indent=2))
        elif command == "schedule":
            from .harvester.scheduler import run_scheduler

            asyncio.run(run_scheduler(config))
        else:
            from .server import serve

            asyncio.run(serve(config, with_scheduler=getattr(args, "with_scheduler", False)))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
