"""Install orchestration: run_install, container/Drush readiness waits, QA, teardown."""

import asyncio
import logging
import os
import shlex
import shutil

from farmdock.install.compose import add_chrome_service, fetch_compose_file, parse_port_output
from farmdock.install.params import InstallParams
from farmdock.readiness import (
    PollConfig,
    PollOutcome,
    compose_service_liveness,
    container_exec_probe,
    http_probe,
    poll_until_ready,
)

logger = logging.getLogger(__name__)

DRUSH_PATH = "/opt/drupal/vendor/bin/drush"
FARM_PROFILE_DIR = "/opt/drupal/web/profiles/farm"
HTTP_VERIFY_CONFIG = PollConfig(max_wait=30, interval=1)

QA_TOOLS = {
    "phpcs": f"phpcs {FARM_PROFILE_DIR}",
    "phpstan": f"phpstan analyze {FARM_PROFILE_DIR}",
    "phpunit": f"phpunit --verbose --debug {FARM_PROFILE_DIR}",
}

TROUBLESHOOTING_TIPS = [
    "Check if containers have enough memory (recommend 2GB+)",
    "Verify internet connection for downloading packages",
    "Try: docker compose down && docker compose up -d",
]


def www_exec(compose, command):
    """Command string running *command* as www-data in the www container."""
    return f"{compose} exec -u www-data -T www {command}"


def drush(compose, args):
    return www_exec(compose, f"{DRUSH_PATH} {args}")


# ── Readiness waits ─────────────────────────────────────────────────


def make_progress_logger(run_cmd, compose, service, every=10, activity_every=30):
    """Progress callback for poll_until_ready.

    Logs "Still waiting" whenever elapsed crosses a multiple of *every*
    seconds and tails the service logs every *activity_every* seconds.
    """
    last = {"progress": 0, "activity": 0}

    async def on_progress(state):
        if state.elapsed - last["progress"] < every:
            return
        last["progress"] = state.elapsed
        logger.info(f"  Still waiting for {service}... ({state.elapsed:g}s elapsed, attempt {state.attempts})")
        if state.elapsed - last["activity"] >= activity_every:
            last["activity"] = state.elapsed
            logger.info(f"  Recent {service} activity:")
            await run_cmd(f"{compose} logs --tail=5 {service}", timeout=60, log_output=True)

    return on_progress


async def _report_wait_failure(run_cmd, compose, service, result, what):
    if result.outcome is PollOutcome.RESOURCE_GONE:
        logger.error(f"ERROR: {service} container stopped running while waiting for {what}")
        logger.error("Container status:")
        await run_cmd(f"{compose} ps", timeout=60, log_output=True)
    elif result.outcome is PollOutcome.TIMED_OUT:
        logger.error(f"ERROR: Timeout after {result.elapsed:g}s waiting for {what} ({result.attempts} attempts)")
        if result.last_probe is not None and result.last_probe.detail:
            logger.error(f"Last probe: {result.last_probe.detail}")
    else:
        logger.error(f"Wait for {what} ended: {result.outcome.value}")
    logger.error(f"Container logs ({service}):")
    await run_cmd(f"{compose} logs --tail=20 {service}", timeout=60, log_output=True)
    if result.outcome is PollOutcome.TIMED_OUT:
        logger.error("Troubleshooting tips:")
        for tip in TROUBLESHOOTING_TIPS:
            logger.error(f"  - {tip}")


async def wait_for_container(run_cmd, compose, service, config: PollConfig, sleep=asyncio.sleep, cancel=None):
    """Wait until a command can be executed inside *service*."""
    logger.info(f"Waiting for container '{service}' to be ready...")
    result = await poll_until_ready(
        container_exec_probe(run_cmd, compose, service, "echo ready"),
        config,
        liveness=compose_service_liveness(run_cmd, compose, service),
        on_progress=make_progress_logger(run_cmd, compose, service),
        cancel=cancel,
        sleep=sleep,
    )
    if result.ready:
        logger.info(f"Container '{service}' is ready after {result.attempts} attempt(s)")
    else:
        await _report_wait_failure(run_cmd, compose, service, result, f"container '{service}'")
    return result


async def wait_for_drush(run_cmd, compose, config: PollConfig, sleep=asyncio.sleep, cancel=None):
    """Wait until the farmOS image has finished installing Drush in www."""
    logger.info("Waiting for farmOS container to finish initialization...")
    logger.info("  This may take several minutes on first run.")
    result = await poll_until_ready(
        container_exec_probe(run_cmd, compose, "www", f"test -f {DRUSH_PATH}", user="www-data"),
        config,
        liveness=compose_service_liveness(run_cmd, compose, "www"),
        on_progress=make_progress_logger(run_cmd, compose, "www"),
        cancel=cancel,
        sleep=sleep,
    )
    if result.ready:
        logger.info(f"farmOS container is ready (took {result.elapsed:g}s)")
    else:
        await _report_wait_failure(run_cmd, compose, "www", result, "Drush to be available")
    return result


async def resolve_web_port(run_cmd, compose, default):
    rc, stdout, _ = await run_cmd(f"{compose} port www 80", stream=False, timeout=30)
    if rc != 0:
        return default
    return parse_port_output(stdout, default=default)


async def verify_http(url, config=HTTP_VERIFY_CONFIG, dry_run=False, sleep=asyncio.sleep, client=None):
    """Poll *url* until it answers with an accepted status."""
    logger.info(f"Verifying HTTP response from {url}...")
    result = await poll_until_ready(http_probe(url, client=client, dry_run=dry_run), config, sleep=sleep)
    detail = result.last_probe.detail if result.last_probe else ""
    if result.ready:
        logger.info(f"HTTP verification successful ({detail})")
    else:
        logger.warning(f"WARNING: {url} not responding after {result.elapsed:g}s ({detail or 'no response'})")
        logger.warning("  This might be normal if the application is still initializing")
    return result


# ── QA ──────────────────────────────────────────────────────────────


async def run_qa(run_cmd, compose):
    """Run phpcs, phpstan and phpunit in www when available.

    Returns:
        dict of tool name -> "ok" | "warn" | "skip"
    """
    results = {}
    for tool, command in QA_TOOLS.items():
        rc, _, _ = await run_cmd(www_exec(compose, f"which {tool}"), stream=False, timeout=60)
        if rc != 0:
            logger.warning(f"WARNING: {tool} not found, skipping")
            results[tool] = "skip"
            continue
        logger.info(f"Running {tool}...")
        rc, _, _ = await run_cmd(www_exec(compose, command), timeout=3600, log_output=True)
        results[tool] = "ok" if rc == 0 else "warn"
    return results


# ── Install ─────────────────────────────────────────────────────────


def _has_config_sync(project_dir):
    sync_dir = os.path.join(project_dir, "config", "sync")
    return os.path.isdir(sync_dir) and bool(os.listdir(sync_dir))


async def _run_step(run_cmd, label, command, timeout=600):
    logger.info(f"{label}...")
    rc, _, _ = await run_cmd(command, timeout=timeout, log_output=True)
    if rc != 0:
        logger.error(f"Failed: {label} (exit {rc})")
        return False
    return True


async def _prepare_project(run_cmd, params: InstallParams):
    project_dir = params.project_dir
    if os.path.isdir(project_dir):
        logger.info(f"Project directory already exists: {project_dir}")
    elif params.dry_run:
        logger.info(f"[dry-run] mkdir -p {project_dir}")
    else:
        logger.info(f"Creating project directory: {project_dir}")
        os.makedirs(project_dir, exist_ok=True)

    if os.path.isfile(os.path.join(project_dir, "composer.json")):
        logger.info("Found existing composer.json - assuming farmOS project already set up")
        return await _run_step(run_cmd, "Installing/updating Composer dependencies",
                               "composer install --ignore-platform-reqs", timeout=1800)

    steps = [
        ("Creating farmOS project (template only)",
         f"composer create-project farmos/project:{params.farmos_version} {project_dir}"
         " --no-interaction --ignore-platform-reqs --no-install"),
        ("Configuring Composer to allow plugins", "composer config allow-plugins true"),
        ("Installing project dependencies", "composer install --ignore-platform-reqs"),
    ]
    for label, command in steps:
        if not await _run_step(run_cmd, label, command, timeout=1800):
            return False
    return True


async def _prepare_compose_file(write_file, params: InstallParams):
    compose_path = os.path.join(params.project_dir, "docker-compose.yml")
    if os.path.isfile(compose_path):
        logger.info("Found existing docker-compose.yml file")
        if not params.with_chrome:
            return True
        with open(compose_path) as f:
            content = f.read()
    else:
        logger.info("No docker-compose.yml found, downloading farmOS development configuration")
        content = await fetch_compose_file(dry_run=params.dry_run)

    if params.with_chrome:
        logger.info("Adding Chrome service for Selenium testing...")
        if content or not params.dry_run:
            content = add_chrome_service(content)
    await write_file("docker-compose.yml", content)
    return True


async def _site_install(run_cmd, compose, params: InstallParams):
    rc, stdout, _ = await run_cmd(drush(compose, "status bootstrap"), stream=False, timeout=120)
    if rc == 0 and "Successful" in stdout:
        logger.warning("WARNING: farmOS appears to already be installed; skipping site install to preserve data")
        return True

    command = drush(
        compose,
        f"site:install farm --yes"
        f" --db-url={shlex.quote(params.db_url)}"
        f" --account-name={shlex.quote(params.admin_user)}"
        f" --account-pass={shlex.quote(params.admin_pass)}"
        f" --site-name={shlex.quote(params.site_name)}",
    )
    return await _run_step(run_cmd, "Running site install", command, timeout=1800)


async def run_install(run_cmd, write_file, params: InstallParams, compose, sleep=asyncio.sleep, http_client=None):
    """Install farmOS into params.project_dir.

    Args:
        run_cmd: async callable(command, stream=True, timeout=600, log_output=False)
            -> (returncode, stdout, stderr), running in the farmOS directory
        write_file: async callable(path, content) writing relative to the farmOS directory
        params: resolved InstallParams
        compose: compose command prefix ("docker compose" or "docker-compose")
        sleep: async sleep used by the readiness waits
        http_client: optional httpx.AsyncClient for the HTTP verification

    Returns:
        True if every required step succeeded.
    """
    poll_config = params.poll_config

    logger.info("Starting farmOS project installation")
    logger.info(f"farmOS directory: {params.project_dir}")
    logger.info(f"farmOS version: {params.farmos_version}")

    if not await _prepare_project(run_cmd, params):
        return False
    if not await _prepare_compose_file(write_file, params):
        return False

    if not await _run_step(run_cmd, "Starting containers", f"{compose} up -d", timeout=1800):
        await run_cmd(f"{compose} ps", timeout=60, log_output=True)
        return False

    for service in ("db", "www"):
        result = await wait_for_container(run_cmd, compose, service, poll_config, sleep=sleep)
        if not result.ready:
            return False

    result = await wait_for_drush(run_cmd, compose, poll_config, sleep=sleep)
    if not result.ready:
        return False

    if not await _run_step(run_cmd, "Installing dependencies in container",
                           www_exec(compose, "composer install --ignore-platform-reqs"), timeout=1800):
        return False

    logger.info("Verifying database connection...")
    rc, _, _ = await run_cmd(drush(compose, 'sql:query "SELECT 1;"'), stream=False, timeout=120)
    if rc != 0:
        logger.error("ERROR: Cannot connect to database")
        await run_cmd(f"{compose} logs --tail=20 db", timeout=60, log_output=True)
        return False
    logger.info("Database connection verified")

    if not await _site_install(run_cmd, compose, params):
        return False

    if not await _run_step(run_cmd, "Clearing caches", drush(compose, "cr")):
        return False
    if not await _run_step(run_cmd, "Running database updates", drush(compose, "updatedb -y")):
        return False

    if _has_config_sync(params.project_dir):
        if not await _run_step(run_cmd, "Importing configuration", drush(compose, "config-import -y")):
            return False
    else:
        logger.info("No existing configuration to import - skipping config import")

    if not await _run_step(run_cmd, "Checking site status", drush(compose, "status")):
        return False
    if not await _run_step(run_cmd, "Exporting configuration", drush(compose, "config-export -y")):
        return False

    rc, _, _ = await run_cmd(drush(compose, f"user:information {shlex.quote(params.admin_user)}"), stream=False, timeout=120)
    if rc == 0:
        logger.info(f"Admin user '{params.admin_user}' verified successfully")
    else:
        logger.warning("WARNING: Could not verify admin user")

    port = await resolve_web_port(run_cmd, compose, params.web_port)
    url = f"http://localhost:{port}"
    await verify_http(url, dry_run=params.dry_run, sleep=sleep, client=http_client)

    if params.skip_qa:
        logger.info("Skipping quality assurance checks (skip_qa)")
    else:
        logger.info("Running quality assurance checks...")
        qa = await run_qa(run_cmd, compose)
        summary = " ".join(f"{tool}:{status}" for tool, status in qa.items())
        logger.info(f"Quality assurance checks completed ({summary})")

    status = "dry-run (not installed)" if params.dry_run else "installed"
    logger.info("")
    logger.info("farmOS installation and verification complete!")
    logger.info(f"URL: {url}")
    logger.info(f"Admin user: {params.admin_user}")
    if params.with_chrome:
        logger.info("Selenium Chrome hub: http://localhost:4444")
    if params.log_file:
        logger.info(f"Log file: {params.log_file}")
    logger.info(f"farmOS directory: {params.project_dir}")
    logger.info(f"Status: {status}")
    return True


async def cleanup_failed_install(run_cmd, compose, project_dir, dry_run=False):
    """Stop containers and remove an incomplete farmOS directory."""
    logger.info("Installation failed. Cleaning up...")
    if os.path.isfile(os.path.join(project_dir, "docker-compose.yml")) or dry_run:
        logger.info("Stopping Docker containers...")
        await run_cmd(f"{compose} down --volumes --remove-orphans", timeout=300, log_output=True)
    if dry_run:
        logger.info(f"[dry-run] rm -rf {project_dir}")
    elif os.path.isdir(project_dir):
        logger.info(f"Removing incomplete installation directory {project_dir}...")
        shutil.rmtree(project_dir)
    logger.info("Cleanup completed.")


async def run_teardown(run_cmd, compose, volumes=False):
    """Tear down: compose down."""
    logger.info("Tearing down...")
    command = f"{compose} down --volumes --remove-orphans" if volumes else f"{compose} down"
    rc, _, _ = await run_cmd(command, timeout=300, log_output=True)
    if rc == 0:
        logger.info("Teardown complete.")
    else:
        logger.error("Teardown failed.")
    return rc == 0
