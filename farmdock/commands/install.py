"""Install command: set up farmOS with Composer, Docker Compose and Drush."""

import asyncio
import logging
import os
import sys

from farmdock.install import (
    cleanup_failed_install,
    find_project_root,
    load_config,
    resolve_params,
    run_install,
)
from farmdock.install.local import make_run_cmd, make_write_file
from farmdock.logging_setup import add_file_handler
from farmdock.provisioning import check_system_resources, validate_dependencies
from farmdock.redact import register_secret

logger = logging.getLogger(__name__)

# argparse dest -> InstallParams field
_CLI_FIELDS = [
    "project_dir",
    "farmos_version",
    "db_name",
    "db_user",
    "db_pass",
    "admin_user",
    "admin_pass",
    "site_name",
    "web_port",
    "skip_qa",
    "with_chrome",
    "cleanup_on_failure",
    "install_deps",
    "max_wait",
    "poll_interval",
    "log_file",
    "dry_run",
]


def handle_install(args):
    """Handle the install command."""
    asyncio.run(_handle_install(args))


async def _handle_install(args):
    project_root = os.path.abspath(args.project_root) if args.project_root else find_project_root(os.getcwd())

    try:
        config_values = load_config(args.config) if args.config else None
        params = resolve_params(
            {name: getattr(args, name) for name in _CLI_FIELDS},
            os.environ,
            config_values=config_values,
            project_root=project_root,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    register_secret(params.admin_pass)
    register_secret(params.db_pass)

    if params.log_file and not params.dry_run:
        log_file = add_file_handler(params.log_file)
        logger.info(f"Log file: {log_file}")

    logger.info(f"Project root: {project_root}")
    check_system_resources(project_root)

    run_cmd = make_run_cmd(params.project_dir, dry_run=params.dry_run)
    compose = await validate_dependencies(run_cmd, install=params.install_deps, dry_run=params.dry_run)
    if compose is None:
        sys.exit(1)

    write_file = make_write_file(params.project_dir, dry_run=params.dry_run)

    success = await run_install(run_cmd, write_file, params, compose)
    if not success:
        if params.cleanup_on_failure:
            await cleanup_failed_install(run_cmd, compose, params.project_dir, dry_run=params.dry_run)
        sys.exit(1)


def register_install_command(subparsers):
    """Register the install subcommand."""
    parser = subparsers.add_parser("install", help="Install farmOS in Docker containers")
    parser.add_argument("--config", default=None, help="YAML config file with a 'farmos' section")
    parser.add_argument("--project-root", default=None, help="Project root (default: detected from cwd)")
    parser.add_argument("--project-dir", default=None, help="farmOS directory (default: $FARMOS_DIR or <root>/farmos)")
    parser.add_argument("--farmos-version", default=None, help="farmos/project version (default: 3.x-dev)")
    parser.add_argument("--db-name", default=None, help="Database name (default: farm)")
    parser.add_argument("--db-user", default=None, help="Database user (default: farm)")
    parser.add_argument("--db-pass", default=None, help="Database password (default: $DB_PASS or farm)")
    parser.add_argument("--admin-user", default=None, help="Admin username (default: admin)")
    parser.add_argument("--admin-pass", default=None, help="Admin password (default: $ADMIN_PASS or admin)")
    parser.add_argument("--site-name", default=None, help="Site name (default: farmOS)")
    parser.add_argument("--web-port", type=int, default=None, help="Web server port (default: 80)")
    parser.add_argument("--max-wait", type=float, default=None, help="Seconds to wait for containers (default: 600)")
    parser.add_argument("--poll-interval", type=float, default=None, help="Seconds between readiness probes (default: 2)")
    parser.add_argument("--log-file", default=None, help="Log file (default: <root>/setup.log)")
    parser.add_argument("--skip-qa", action="store_true", default=None, help="Skip phpcs/phpstan/phpunit")
    parser.add_argument("--with-chrome", action="store_true", default=None, help="Add a Selenium Chrome service")
    parser.add_argument("--cleanup-on-failure", action="store_true", default=None,
                        help="Stop containers and remove the farmOS directory if install fails")
    parser.add_argument("--install-deps", action="store_true", default=None,
                        help="Install Docker/Compose with the host package manager if missing")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Print commands without executing")
    parser.set_defaults(func=handle_install)
