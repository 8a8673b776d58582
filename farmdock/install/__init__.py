"""Install library: parameters, compose file handling, install orchestration."""

from farmdock.install.params import InstallParams, load_config, resolve_params
from farmdock.install.project import find_project_root
from farmdock.install.compose import (
    add_chrome_service,
    fetch_compose_file,
    parse_port_output,
)
from farmdock.install.orchestrate import (
    cleanup_failed_install,
    run_install,
    run_teardown,
    verify_http,
    wait_for_container,
    wait_for_drush,
)

__all__ = [
    "InstallParams",
    "load_config",
    "resolve_params",
    "find_project_root",
    "add_chrome_service",
    "fetch_compose_file",
    "parse_port_output",
    "cleanup_failed_install",
    "run_install",
    "run_teardown",
    "verify_http",
    "wait_for_container",
    "wait_for_drush",
]
