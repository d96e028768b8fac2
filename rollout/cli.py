"""
Alias Rollout CLI.

Command-line interface for shifting a Lambda alias to a new version.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional, List

from monitoring.prometheus_metrics import MetricsRegistry, start_metrics_server

from .config import DEFAULT_ALIAS, DEFAULT_STEP, DEFAULT_TICK_INTERVAL, build_config, load_config_file
from .controller import RolloutController
from .errors import ConfigError, RolloutCancelled, RolloutError
from .routing import InMemoryRouter, LambdaAliasRouter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def setup_logging(verbose: bool = False):
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alias-rollout",
        description="Shift a Lambda alias to a new version in fixed traffic steps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Move the live alias to version 7 in 10% steps, one step per second
  alias-rollout --arn arn:aws:lambda:eu-west-1:123456789012:function:orders --target 7

  # Quarter steps every 30 seconds on the beta alias
  alias-rollout --arn orders --alias beta --target 7 --step 0.25 --interval 30

  # Show the calls that would be made without touching AWS
  alias-rollout --arn orders --target 7 --dry-run --interval 0

  # Read settings from a file, overriding the step
  alias-rollout --config rollout.yaml --step 0.2
        """
    )

    # Defaults are applied by the config layer so a config file can supply them.
    parser.add_argument("--arn", dest="target", type=str,
                        help="Name or ARN of the Lambda function to deploy")
    parser.add_argument("--target", dest="candidate", type=str,
                        help="Version the alias is deployed towards")
    parser.add_argument("--alias", type=str,
                        help=f"Alias name to deploy against (default: {DEFAULT_ALIAS})")
    parser.add_argument("--step", type=float,
                        help=f"Traffic fraction added per tick, in (0, 1] (default: {DEFAULT_STEP})")
    parser.add_argument("--interval", dest="tick_interval", type=float,
                        help=f"Seconds between ticks (default: {DEFAULT_TICK_INTERVAL})")
    parser.add_argument("--call-timeout", type=float,
                        help="Give up on a routing call after this many seconds (default: wait)")
    parser.add_argument("--region", type=str, help="AWS region")
    parser.add_argument("--profile", type=str, help="AWS shared credentials profile")
    parser.add_argument("--max-attempts", type=int,
                        help="Attempts per AWS API call, including SDK retries")
    parser.add_argument("--config", "-c", type=str,
                        help="YAML file with rollout settings; flags override it")
    parser.add_argument("--metrics-port", type=int,
                        help="Serve Prometheus metrics on this port while running")
    parser.add_argument("--dry-run", action="store_true",
                        help="Log the routing calls without calling AWS")
    parser.add_argument("--output", "-o", type=str,
                        help="Write the final rollout status to this file (JSON)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose logging")
    return parser


def export_status(status: dict, output_file: str):
    """Export rollout status to JSON file."""
    with open(output_file, 'w') as f:
        json.dump(status, f, indent=2)
    logger.info(f"Rollout status exported to: {output_file}")


async def run_rollout(controller: RolloutController) -> None:
    """Run a controller, cancelling it on SIGINT/SIGTERM."""
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, cancel.set)
    try:
        await controller.run(cancel)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    overrides = {
        "target": args.target,
        "candidate": args.candidate,
        "alias": args.alias,
        "step": args.step,
        "tick_interval": args.tick_interval,
        "call_timeout": args.call_timeout,
        "region": args.region,
        "profile": args.profile,
        "max_attempts": args.max_attempts,
    }
    try:
        file_values = load_config_file(args.config) if args.config else {}
        config = build_config(file_values, overrides)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG

    metrics = MetricsRegistry()
    if args.metrics_port:
        start_metrics_server(args.metrics_port, metrics)
        logger.info(f"Metrics server started on port {args.metrics_port}")

    try:
        if args.dry_run:
            router = InMemoryRouter()
        else:
            router = LambdaAliasRouter(
                region=config.region,
                profile=config.profile,
                max_attempts=config.max_attempts,
            )
        controller = RolloutController(router, config, metrics=metrics)
    except RolloutError as e:
        logger.error(f"Cannot start rollout: {e}")
        return EXIT_FAILED

    exit_code = EXIT_OK
    try:
        asyncio.run(run_rollout(controller))
    except RolloutCancelled:
        exit_code = EXIT_CANCELLED
    except RolloutError:
        exit_code = EXIT_FAILED

    if args.output:
        export_status(controller.status(), args.output)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
