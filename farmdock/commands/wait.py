"""Wait command: block until a command or URL reports ready."""

import argparse
import asyncio
import logging
import os
import shlex
import signal
import sys

from farmdock.commands import resolve_project_dir
from farmdock.install.local import make_run_cmd
from farmdock.install.orchestrate import make_progress_logger
from farmdock.provisioning import validate_dependencies
from farmdock.readiness import (
    PollConfig,
    PollOutcome,
    command_probe,
    compose_service_liveness,
    http_probe,
    poll_until_ready,
)

logger = logging.getLogger(__name__)

EXIT_CODES = {
    PollOutcome.READY: 0,
    PollOutcome.TIMED_OUT: 1,
    PollOutcome.RESOURCE_GONE: 2,
    PollOutcome.CANCELLED: 130,
}


def handle_wait(args):
    """Handle the wait command."""
    sys.exit(asyncio.run(_handle_wait(args)))


async def _handle_wait(args):
    command = list(args.probe_command)
    if command and command[0] == "--":
        command = command[1:]
    if bool(command) == bool(args.url):
        logger.error("Error: give either --url or a probe command after '--'")
        return 1

    try:
        config = PollConfig(max_wait=args.max_wait, interval=args.interval)
    except ValueError as e:
        logger.error(f"Error: {e}")
        return 1

    workdir = resolve_project_dir(args.project_dir, os.environ)
    run_cmd = make_run_cmd(workdir, dry_run=args.dry_run)

    liveness = None
    on_progress = None
    if args.service:
        compose = await validate_dependencies(run_cmd, dry_run=args.dry_run)
        if compose is None:
            return 1
        liveness = compose_service_liveness(run_cmd, compose, args.service)
        on_progress = make_progress_logger(run_cmd, compose, args.service)

    if args.url:
        probe = http_probe(args.url, dry_run=args.dry_run)
        target = args.url
    else:
        target = shlex.join(command)
        probe = command_probe(run_cmd, target)

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass  # no signal handlers on this platform

    logger.info(f"Waiting for {target} (max {config.max_wait:g}s, every {config.interval:g}s)...")
    result = await poll_until_ready(probe, config, liveness=liveness, on_progress=on_progress, cancel=cancel)

    detail = f" ({result.last_probe.detail})" if result.last_probe and result.last_probe.detail else ""
    if result.ready:
        logger.info(f"Ready after {result.attempts} attempt(s), {result.elapsed:g}s{detail}")
    elif result.outcome is PollOutcome.RESOURCE_GONE:
        logger.error(f"Service '{args.service}' stopped running after {result.attempts} attempt(s)")
    elif result.outcome is PollOutcome.CANCELLED:
        logger.error("Cancelled.")
    else:
        logger.error(f"Timed out after {result.elapsed:g}s ({result.attempts} attempts){detail}")
    return EXIT_CODES[result.outcome]


def register_wait_command(subparsers):
    """Register the wait subcommand."""
    parser = subparsers.add_parser(
        "wait",
        help="Poll a command or URL until it reports ready",
        description="Exit codes: 0 ready, 1 timed out, 2 service gone, 130 interrupted.",
    )
    parser.add_argument("--url", default=None, help="HTTP URL to poll instead of a command")
    parser.add_argument("--service", default=None, help="Compose service that must stay running while waiting")
    parser.add_argument("--project-dir", default=None, help="Directory to run commands in (default: farmOS directory)")
    parser.add_argument("--max-wait", type=float, default=300, help="Seconds before giving up (default: 300)")
    parser.add_argument("--interval", type=float, default=2, help="Seconds between probes (default: 2)")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.add_argument("probe_command", nargs=argparse.REMAINDER, help="Command to poll, after '--'")
    parser.set_defaults(func=handle_wait)
