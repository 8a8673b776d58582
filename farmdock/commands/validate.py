"""Validate command: health checks against an installed farmOS stack."""

import asyncio
import logging
import os
import sys

from farmdock.commands import resolve_project_dir
from farmdock.install.local import make_run_cmd
from farmdock.validate import FAILED, PASSED, ValidationContext, run_validation

logger = logging.getLogger(__name__)


def handle_validate(args):
    """Handle the validate command."""
    asyncio.run(_handle_validate(args))


async def _handle_validate(args):
    farmos_dir = resolve_project_dir(args.project_dir, os.environ)
    admin_user = args.admin_user or os.environ.get("ADMIN_USER", "admin")

    logger.info("farmOS Installation Validation")
    logger.info("==============================")
    logger.info("")

    ctx = ValidationContext(
        run_cmd=make_run_cmd(farmos_dir, dry_run=args.dry_run),
        farmos_dir=farmos_dir,
        admin_user=admin_user,
        skip_tests=args.skip_tests,
        dry_run=args.dry_run,
    )
    results = await run_validation(ctx)

    failed = [r for r in results if r.status == FAILED]
    not_passed = [r for r in results if r.status != PASSED]

    logger.info("")
    logger.info("Validation Summary")
    logger.info("==================")
    if not not_passed:
        logger.info("All validation checks passed! farmOS installation appears to be healthy.")
    else:
        logger.info(f"{len(not_passed)} check(s) did not pass: {', '.join(f'{r.name} ({r.status})' for r in not_passed)}")
    if failed:
        logger.info("farmOS may still be functional, but please review the issues above.")
        sys.exit(1)


def register_validate_command(subparsers):
    """Register the validate subcommand."""
    parser = subparsers.add_parser("validate", help="Validate a farmOS installation")
    parser.add_argument("--project-dir", default=None, help="farmOS directory (default: $FARMOS_DIR or <root>/farmos)")
    parser.add_argument("--admin-user", default=None, help="Admin username to look up (default: $ADMIN_USER or admin)")
    parser.add_argument("--skip-tests", action="store_true", help="Skip PHPUnit tests (faster validation)")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_validate)
