"""Installation validation checks for a running farmOS stack."""

import json
import logging
import os
import shlex
import shutil
from dataclasses import dataclass

import httpx
import yaml

from farmdock.install.compose import compose_services
from farmdock.install.orchestrate import drush, resolve_web_port, www_exec
from farmdock.provisioning import detect_docker_compose
from farmdock.readiness import ACCEPTED_HTTP_STATUSES, fetch_http_status

logger = logging.getLogger(__name__)

PASSED = "passed"
WARNING = "warning"
FAILED = "failed"
SKIPPED = "skipped"

PHPUNIT_TEST_DIRS = [
    "/opt/drupal/web/profiles/farm/tests",
    "/opt/drupal/web/modules/contrib/farm/tests",
    "/opt/drupal/web/sites/all/modules/farm/tests",
]


@dataclass
class CheckResult:
    name: str
    status: str
    message: str = ""


@dataclass
class ValidationContext:
    """Everything the checks need; compose is filled in by check_compose."""

    run_cmd: object
    farmos_dir: str
    admin_user: str = "admin"
    skip_tests: bool = False
    dry_run: bool = False
    compose: str | None = None
    http_client: httpx.AsyncClient | None = None
    which: object = shutil.which


def parse_drush_status(output):
    """Parse `drush status` text output ("Key : value" lines) into a dict."""
    status = {}
    for line in output.splitlines():
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if key:
            status[key] = value.strip()
    return status


def count_farm_modules(pm_list_json):
    """Number of enabled farm_* modules in `drush pm:list --format=json` output."""
    try:
        modules = json.loads(pm_list_json)
    except json.JSONDecodeError:
        return 0
    if not isinstance(modules, dict):
        return 0
    return sum(1 for name in modules if name.startswith("farm_"))


# ── Checks ──────────────────────────────────────────────────────────


async def check_environment(ctx: ValidationContext):
    if not os.path.isdir(ctx.farmos_dir):
        return CheckResult("environment", FAILED, f"farmOS directory not found: {ctx.farmos_dir}")
    compose_path = os.path.join(ctx.farmos_dir, "docker-compose.yml")
    if not os.path.isfile(compose_path):
        return CheckResult("environment", FAILED, f"docker-compose.yml not found in {ctx.farmos_dir}")
    try:
        with open(compose_path) as f:
            services = compose_services(f.read())
    except (yaml.YAMLError, ValueError) as e:
        return CheckResult("environment", FAILED, f"invalid docker-compose.yml: {e}")
    missing = [s for s in ("www", "db") if s not in services]
    if missing:
        return CheckResult("environment", WARNING, f"compose file has no {', '.join(missing)} service")
    return CheckResult("environment", PASSED, f"farmOS directory: {ctx.farmos_dir}")


async def check_compose(ctx: ValidationContext):
    ctx.compose = await detect_docker_compose(ctx.run_cmd, which=ctx.which)
    if ctx.compose is None:
        return CheckResult("compose", FAILED, "Docker Compose not found. Please install Docker Compose.")
    return CheckResult("compose", PASSED, f"Using {ctx.compose}")


async def check_containers(ctx: ValidationContext):
    rc, stdout, _ = await ctx.run_cmd(f'{ctx.compose} ps --services --filter "status=running"', stream=False, timeout=60)
    running = set(stdout.split()) if rc == 0 else set()
    if ctx.dry_run:
        running = {"www", "db"}
    up = [s for s in ("www", "db") if s in running]
    if not up:
        return CheckResult(
            "containers", FAILED,
            f"farmOS containers are not running. Start them with: cd {ctx.farmos_dir} && {ctx.compose} up -d",
        )
    if len(up) < 2:
        return CheckResult("containers", WARNING, f"only {', '.join(up)} running. Check with: {ctx.compose} ps")
    return CheckResult("containers", PASSED, "All containers are running")


async def check_database(ctx: ValidationContext):
    rc, _, _ = await ctx.run_cmd(f"{ctx.compose} exec -T db pg_isready -h localhost", stream=False, timeout=60)
    if rc != 0:
        return CheckResult("database", FAILED, "Database is not responding")
    rc, _, _ = await ctx.run_cmd(drush(ctx.compose, 'sql:query "SELECT 1;"'), stream=False, timeout=120)
    if rc != 0:
        return CheckResult("database", FAILED, "Cannot query database from web container")
    return CheckResult("database", PASSED, "Database is accepting connections and queries")


async def check_web_server(ctx: ValidationContext):
    port = await resolve_web_port(ctx.run_cmd, ctx.compose, 80)
    url = f"http://localhost:{port}"
    if ctx.dry_run:
        logger.info(f"[dry-run] GET {url}")
        return CheckResult("web_server", PASSED, f"{url} (dry-run)")
    try:
        status = await fetch_http_status(url, client=ctx.http_client)
    except httpx.HTTPError as e:
        return CheckResult("web_server", FAILED, f"{url} not reachable: {e}")
    if status in ACCEPTED_HTTP_STATUSES:
        return CheckResult("web_server", PASSED, f"Web server is responding (status: {status})")
    return CheckResult("web_server", FAILED, f"Web server not responding properly (status: {status})")


async def check_drupal_status(ctx: ValidationContext):
    rc, stdout, _ = await ctx.run_cmd(drush(ctx.compose, "status"), stream=False, timeout=120)
    if rc != 0:
        return CheckResult("drupal_status", FAILED, "Cannot get Drupal status")
    if ctx.dry_run:
        return CheckResult("drupal_status", PASSED, "dry-run")
    status = parse_drush_status(stdout)
    version = status.get("Drupal version", "unknown")
    bootstrap = status.get("Drupal bootstrap", "unknown")
    database = status.get("Database", "unknown")
    logger.debug(f"Drupal version: {version}, bootstrap: {bootstrap}, database: {database}")
    if bootstrap == "Successful" and database == "Connected":
        return CheckResult("drupal_status", PASSED, f"Drupal {version} is healthy")
    return CheckResult("drupal_status", WARNING, f"Drupal site may have issues (bootstrap: {bootstrap}, db: {database})")


async def check_authentication(ctx: ValidationContext):
    rc, _, _ = await ctx.run_cmd(drush(ctx.compose, f"user:information {shlex.quote(ctx.admin_user)}"), stream=False, timeout=120)
    if rc == 0:
        return CheckResult("authentication", PASSED, f"Admin user '{ctx.admin_user}' exists and is accessible")
    return CheckResult("authentication", WARNING, f"Cannot access admin user '{ctx.admin_user}'")


async def check_farmos_functionality(ctx: ValidationContext):
    _, stdout, _ = await ctx.run_cmd(drush(ctx.compose, "pm:list --status=enabled --format=json"), stream=False, timeout=120)
    count = count_farm_modules(stdout)
    _, status_out, _ = await ctx.run_cmd(drush(ctx.compose, "status"), stream=False, timeout=120)
    profile = parse_drush_status(status_out).get("Install profile", "")

    problems = []
    if count == 0:
        problems.append("no farmOS modules enabled")
    if "farm" not in profile:
        problems.append("farmOS install profile not detected")
    if problems:
        return CheckResult("farmos", WARNING, "; ".join(problems))
    return CheckResult("farmos", PASSED, f"farmOS modules are enabled ({count} found), profile: {profile}")


async def check_phpunit(ctx: ValidationContext):
    if ctx.skip_tests:
        return CheckResult("phpunit", SKIPPED, "--skip-tests specified")
    rc, _, _ = await ctx.run_cmd(www_exec(ctx.compose, "which phpunit"), stream=False, timeout=60)
    if rc != 0:
        return CheckResult("phpunit", SKIPPED, "PHPUnit not found")

    test_dirs = []
    for path in PHPUNIT_TEST_DIRS:
        rc, _, _ = await ctx.run_cmd(www_exec(ctx.compose, f"test -d {path}"), stream=False, timeout=60)
        if rc == 0:
            test_dirs.append(path)
    if not test_dirs:
        return CheckResult("phpunit", SKIPPED, "No farmOS test directories found")

    failed = []
    for path in test_dirs:
        rc, _, _ = await ctx.run_cmd(www_exec(ctx.compose, f"phpunit {path}"), stream=False, timeout=3600)
        if rc != 0:
            failed.append(path)
    if failed:
        return CheckResult("phpunit", WARNING, f"Some tests failed in: {', '.join(failed)}")
    return CheckResult("phpunit", PASSED, f"All PHPUnit tests passed ({len(test_dirs)} director(ies))")


# Checks whose failure makes the remaining checks pointless
BLOCKING_CHECKS = (check_environment, check_compose)
CHECKS = (
    check_containers,
    check_database,
    check_web_server,
    check_drupal_status,
    check_authentication,
    check_farmos_functionality,
    check_phpunit,
)

_MARKS = {PASSED: "✓", WARNING: "⚠", FAILED: "✗", SKIPPED: "-"}


def _log_result(result: CheckResult):
    level = logging.ERROR if result.status == FAILED else logging.INFO
    logger.log(level, f"{_MARKS[result.status]} {result.name}: {result.message}")


async def run_validation(ctx: ValidationContext):
    """Run all checks in order.

    Returns:
        list of CheckResult. A failed blocking check ends the run early.
    """
    results = []
    for check in BLOCKING_CHECKS:
        result = await check(ctx)
        _log_result(result)
        results.append(result)
        if result.status == FAILED:
            return results
    for check in CHECKS:
        result = await check(ctx)
        _log_result(result)
        results.append(result)
    return results
