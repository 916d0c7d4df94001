"""Command-line entry point: run the DataStore suite and report the results."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from .config import HarnessConfig, validate_log_level
from .exceptions import ConfigurationError
from .logging_config import setup_logging
from .models import RunReport
from .reporter import ResultReporter
from .runner import run_tests
from .suites import DataStoreSuite
from .testing import MemoryDataStore, MemoryRemote

logger = logging.getLogger(__name__)


def build_suite(config: HarnessConfig) -> DataStoreSuite:
    store = MemoryDataStore()
    return DataStoreSuite(store, MemoryRemote(store), config)


async def run_suite(
    config: HarnessConfig, reporter: Optional[ResultReporter] = None
) -> RunReport:
    return await run_tests(
        build_suite(config), reporter=reporter, separator=config.name_separator
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="datastore-harness",
        description="Run the DataStore end-to-end suite and report each test",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON instead of a table",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the results server instead of running once",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (overrides LOG_LEVEL)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for --serve (overrides PORT)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = HarnessConfig.from_env()
        if args.log_level:
            config.log_level = validate_log_level(args.log_level)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    if args.port is not None:
        config.port = args.port

    setup_logging(config.log_level, stream=sys.stderr)

    if args.serve:
        from .server import serve

        serve(lambda: build_suite(config), config)
        return 0

    logger.info("Running DataStore suite against the in-memory store")
    reporter = ResultReporter()
    report = asyncio.run(run_suite(config, reporter))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(reporter.render())

    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
