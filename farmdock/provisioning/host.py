"""Local host preparation: Docker/Compose detection, dependency install, resource check.

Commands go through the same run_cmd transport as the install steps
(see farmdock.install.local.make_run_cmd).
"""

import logging
import os
import shutil

logger = logging.getLogger(__name__)

LOW_MEMORY_MB = 1000


async def detect_docker_compose(run_cmd, which=shutil.which):
    """Return the compose command prefix, or None if Compose is missing.

    Prefers the `docker compose` plugin over the standalone `docker-compose`.
    """
    rc, _, _ = await run_cmd("docker compose version", stream=False, timeout=30)
    if rc == 0:
        return "docker compose"
    if which("docker-compose"):
        return "docker-compose"
    return None


def _package_manager_commands(which=shutil.which):
    """Install commands for the first supported package manager found."""
    if which("apt-get"):
        return [
            "sudo apt-get update -qq",
            "sudo apt-get install -y docker.io docker-compose-v2 curl",
            "sudo systemctl enable --now docker",
        ]
    if which("yum"):
        return [
            "sudo yum install -y docker docker-compose",
            "sudo systemctl enable --now docker",
        ]
    if which("brew"):
        return ["brew install docker docker-compose"]
    return None


async def install_dependencies(run_cmd, which=shutil.which):
    """Install Docker and Compose with the host package manager.

    Returns:
        True if every install command succeeded.
    """
    commands = _package_manager_commands(which)
    if commands is None:
        logger.error("Unable to detect a package manager. Please install Docker manually.")
        return False

    logger.info("Installing Docker and Docker Compose...")
    for command in commands:
        rc, _, _ = await run_cmd(command, timeout=1800, log_output=True)
        if rc != 0:
            logger.error(f"Command failed (exit {rc}): {command}")
            return False

    user = os.environ.get("USER")
    if user and which("usermod"):
        await run_cmd(f"sudo usermod -aG docker {user}", timeout=60)

    logger.info("Dependencies installation completed")
    return True


async def validate_dependencies(run_cmd, install=False, dry_run=False, which=shutil.which):
    """Make sure docker and a Compose command are available.

    Returns:
        The compose command prefix, or None if dependencies are missing.
    """
    if dry_run:
        logger.info("[dry-run] assuming docker and 'docker compose' are installed")
        return "docker compose"

    missing = []
    if not which("docker"):
        missing.append("docker")
    compose = await detect_docker_compose(run_cmd, which=which)
    if compose is None:
        missing.append("docker-compose")

    if missing:
        logger.info(f"Missing dependencies: {', '.join(missing)}")
        if not install:
            logger.error("Re-run with --install-deps or install the following manually: " + ", ".join(missing))
            return None
        if not await install_dependencies(run_cmd, which=which):
            logger.error(f"Please install the following manually: {', '.join(missing)}")
            return None
        compose = await detect_docker_compose(run_cmd, which=which)
        if compose is None:
            logger.error("Dependencies still missing after installation attempt")
            return None

    logger.info(f"Using Docker Compose command: {compose}")
    return compose


def _available_memory_mb(meminfo_path="/proc/meminfo"):
    try:
        with open(meminfo_path) as f:
            for line in f:
                if line.startswith("MemAvailable:"):
                    return int(line.split()[1]) // 1024
    except OSError:
        return None
    return None


def _in_container():
    if os.path.exists("/.dockerenv"):
        return True
    try:
        with open("/proc/1/cgroup") as f:
            content = f.read()
    except OSError:
        return False
    return "docker" in content or "lxc" in content


def check_system_resources(path=".", meminfo_path="/proc/meminfo"):
    """Log available memory and disk; warn when memory is low.

    Returns:
        dict with memory_mb and disk_free_gb (each None when unknown) and
        in_container.
    """
    logger.info("System resource check:")
    memory_mb = _available_memory_mb(meminfo_path)
    if memory_mb is None:
        logger.info("  Memory: unknown")
    else:
        logger.info(f"  Memory: {memory_mb}MB available")
        if memory_mb < LOW_MEMORY_MB:
            logger.warning("  WARNING: Low memory detected. farmOS may be slow to initialize (2GB+ recommended)")

    try:
        disk_free_gb = round(shutil.disk_usage(path).free / 1024**3, 1)
    except OSError:
        disk_free_gb = None
        logger.info(f"  Disk: unknown ({os.path.abspath(path)} not accessible)")
    else:
        logger.info(f"  Disk: {disk_free_gb}GB available in {os.path.abspath(path)}")

    in_container = _in_container()
    logger.info(f"  Environment: {'container' if in_container else 'host'}")
    return {"memory_mb": memory_mb, "disk_free_gb": disk_free_gb, "in_container": in_container}
