"""Teardown command: stop the farmOS containers."""

import asyncio
import logging
import os
import sys

from farmdock.commands import resolve_project_dir
from farmdock.install import run_teardown
from farmdock.install.local import make_run_cmd
from farmdock.provisioning import validate_dependencies

logger = logging.getLogger(__name__)


def handle_teardown(args):
    """Handle the teardown command."""
    asyncio.run(_handle_teardown(args))


async def _handle_teardown(args):
    farmos_dir = resolve_project_dir(args.project_dir, os.environ)
    if not args.dry_run and not os.path.isfile(os.path.join(farmos_dir, "docker-compose.yml")):
        logger.error(f"No docker-compose.yml found in {farmos_dir}")
        sys.exit(1)

    run_cmd = make_run_cmd(farmos_dir, dry_run=args.dry_run)
    compose = await validate_dependencies(run_cmd, dry_run=args.dry_run)
    if compose is None:
        sys.exit(1)

    if not await run_teardown(run_cmd, compose, volumes=args.volumes):
        sys.exit(1)


def register_teardown_command(subparsers):
    """Register the teardown subcommand."""
    parser = subparsers.add_parser("teardown", help="Stop the farmOS containers")
    parser.add_argument("--project-dir", default=None, help="farmOS directory (default: $FARMOS_DIR or <root>/farmos)")
    parser.add_argument("--volumes", action="store_true", help="Also remove volumes and orphan containers")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_teardown)
