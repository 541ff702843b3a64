#!/usr/bin/env python3
# cli.py — command line entry point for Salvo

import argparse
import asyncio
import logging
import os
import sys

from salvo.config import (
    DEFAULT_IMAGE,
    DEFAULT_NUM_CLIENTS,
    DEFAULT_NUM_REQUESTS,
    DEFAULT_TIMEOUT_S,
    ConfigurationError,
    RunConfig,
    env_float,
    resolve_schedule,
)
from salvo.core import ScheduleRunner
from salvo.logging_config import resolve_level, setup_logging
from salvo.models import OutputMode
from salvo.payloads import ImagePayloadSource
from salvo.sinks import FileLatencySink

logger = logging.getLogger("salvo")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="salvo",
        description="Fire concurrent POST requests at an HTTP endpoint and report latency stats",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("endpoint", nargs="?", help="URL to shoot at")

    # Payload
    parser.add_argument(
        "--image",
        default=DEFAULT_IMAGE,
        help="Path of the image to shoot with",
    )
    parser.add_argument(
        "--noise",
        action="store_true",
        help="Add random noise pixels to the image on every request",
    )

    # Load shape
    parser.add_argument(
        "--num-clients",
        type=int,
        default=DEFAULT_NUM_CLIENTS,
        help="Number of parallel requests",
    )
    parser.add_argument(
        "--num-requests",
        type=int,
        default=DEFAULT_NUM_REQUESTS,
        help="Total number of requests",
    )
    parser.add_argument(
        "--schedule",
        default=None,
        help="Comma separated stages REQUESTS:CONCURRENCY[:noise|static], e.g. 100:8,200:16:noise",
    )
    parser.add_argument(
        "--schedule-file",
        default=None,
        help='JSON file: {"stages": [{"requests": 100, "concurrency": 8}, ...]}',
    )

    # Request
    parser.add_argument(
        "--apikey",
        default=None,
        help="API key added as the apikey query parameter (env SALVO_APIKEY)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Per-request timeout in seconds (env SALVO_TIMEOUT_S, default {DEFAULT_TIMEOUT_S:g})",
    )

    # Output
    parser.add_argument(
        "--latency-log",
        default=None,
        help="Append every request latency (ms) to this file",
    )
    parser.add_argument(
        "--histogram",
        action="store_true",
        help="Print a latency histogram after each stage",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--verbose",
        action="store_true",
        help="Show each response in stdout",
    )
    mode.add_argument(
        "--silent",
        action="store_true",
        help="Disable any output",
    )

    # Logging & Debugging
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional file to write logs to",
    )

    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    if args.verbose:
        output_mode = OutputMode.VERBOSE
    elif args.silent:
        output_mode = OutputMode.SILENT
    else:
        output_mode = OutputMode.NORMAL

    timeout_s = args.timeout if args.timeout is not None else env_float(
        "SALVO_TIMEOUT_S", DEFAULT_TIMEOUT_S
    )

    return RunConfig(
        endpoint=args.endpoint or "",
        schedule=resolve_schedule(
            args.schedule, args.schedule_file, args.num_requests, args.num_clients
        ),
        timeout_s=timeout_s,
        apikey=args.apikey or os.getenv("SALVO_APIKEY") or None,
        image_path=args.image,
        noise=args.noise,
        latency_log=args.latency_log,
        histogram=args.histogram,
        output_mode=output_mode,
    )


async def run(config: RunConfig) -> int:
    # everything that can fail on setup happens before the first stage
    source = ImagePayloadSource(config.image_path, noise=config.noise)
    sink = FileLatencySink(config.latency_log) if config.latency_log else None

    try:
        runner = ScheduleRunner(
            endpoint=config.endpoint,
            source=source,
            timeout_s=config.timeout_s,
            apikey=config.apikey,
            sink=sink,
            output_mode=config.output_mode,
            histogram=config.histogram,
        )
        reports = await runner.run(config.schedule)
    finally:
        if sink is not None:
            sink.close()

    failures = sum(r.failures for r in reports)
    total = sum(r.request_count for r in reports)
    logger.info(f"Run completed: {total - failures} succeeded, {failures} failed")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=resolve_level(args.debug, args.silent), log_file=args.log_file)

    try:
        config = build_config(args)
        return asyncio.run(run(config))
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, stage results discarded")
        return 130


if __name__ == "__main__":
    sys.exit(main())
