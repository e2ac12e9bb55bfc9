#!/usr/bin/env python3
"""
send-jobs: post a batch of job start messages to the queueing API.

Exit codes:
    0: every job in the batch was accepted
    1: at least one job was rejected or ran out of attempts
    2: configuration or input error (nothing was submitted)
    130: run aborted (SIGINT/SIGTERM)

Usage:
    # Everything from the environment / .env
    send-jobs

    # Explicit arguments win over environment and config file
    send-jobs --endpoint https://queue.example.com/api/jobs \
        --event-data jobs.json --output accepted.json
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, Sequence

from dispatch.src.batch.parser import BatchParseError
from dispatch.src.config import ConfigError, DispatchConfig, load_env_file
from dispatch.src.interfaces import ResultReporter
from dispatch.src.models import BatchResult
from dispatch.src.orchestrate.batch_orchestrator import BatchOrchestrator, RunAbortedError
from dispatch.src.reporting.reporters import JsonFileReporter, LogEventCollector, LoggingReporter

logger = logging.getLogger("dispatch")

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_INVALID_INPUT = 2
EXIT_ABORTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="send-jobs",
        description="Submit a batch of jobs to a queueing API, exactly once per job",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Submit a single job or an array of jobs
  send-jobs --endpoint https://queue.example.com/api/jobs --event-data jobs.json

  # Authenticated, with a result file for the build host
  DISPATCH_ACCESS_TOKEN=... send-jobs -e https://queue.example.com/api/jobs \\
      -d jobs.json -o results/accepted.json
        """
    )
    parser.add_argument('--endpoint', '-e', dest='api_endpoint',
                        help='Job API endpoint (env: DISPATCH_API_ENDPOINT)')
    parser.add_argument('--access-token', dest='access_token',
                        help='API access token (env: DISPATCH_ACCESS_TOKEN)')
    parser.add_argument('--event-data', '-d', dest='event_data_path',
                        help='Path to job event JSON (env: DISPATCH_EVENT_DATA_PATH)')
    parser.add_argument('--output', '-o', dest='output_path',
                        help='Write accepted jobs to this JSON file')
    parser.add_argument('--max-attempts', type=int,
                        help='HTTP attempts per job (default: 15)')
    parser.add_argument('--timeout', type=float, dest='request_timeout',
                        help='Per-attempt timeout in seconds (default: 30)')
    parser.add_argument('--max-concurrency', type=int,
                        help='Jobs submitted at once (default: 1)')
    parser.add_argument('--config', '-c',
                        help='YAML config file (env: CONFIG_PATH)')
    parser.add_argument('--env-file',
                        help='.env file to load (default: ./.env if present)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    return parser


async def run(config: DispatchConfig, reporters: Sequence[ResultReporter]) -> BatchResult:
    """Run one batch with SIGINT/SIGTERM wired to the run cancellation."""
    orchestrator = BatchOrchestrator.from_config(config, reporters=reporters)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancellation.cancel, f"received {sig.name}")
        except (NotImplementedError, RuntimeError):
            # Windows event loops
            logger.debug(f"Cannot install handler for {sig.name}")

    return await orchestrator.run_file(config.event_data_path)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    load_env_file(args.env_file)

    overrides = {
        "api_endpoint": args.api_endpoint,
        "access_token": args.access_token,
        "event_data_path": args.event_data_path,
        "output_path": args.output_path,
        "max_attempts": args.max_attempts,
        "request_timeout": args.request_timeout,
        "max_concurrency": args.max_concurrency,
        "log_level": args.log_level,
    }
    try:
        config = DispatchConfig.load(config_path=args.config, overrides=overrides)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_INVALID_INPUT

    logging.getLogger().setLevel(config.log_level)

    reporters: List[ResultReporter] = [LoggingReporter()]
    collector = None
    if config.output_path:
        collector = LogEventCollector()
        logger.addHandler(collector)
        reporters.append(JsonFileReporter(config.output_path, event_collector=collector))

    try:
        result = asyncio.run(run(config, reporters))
    except BatchParseError as e:
        logger.error(f"Cannot parse job event data: {e}")
        return EXIT_INVALID_INPUT
    except RunAbortedError as e:
        logger.error(str(e))
        return EXIT_ABORTED
    finally:
        if collector is not None:
            logger.removeHandler(collector)

    return EXIT_OK if result.succeeded else EXIT_INCOMPLETE


if __name__ == "__main__":
    sys.exit(main())
