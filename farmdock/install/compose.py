"""farmOS docker-compose file: download, Selenium Chrome service, port lookup."""

import logging

import httpx
import yaml

logger = logging.getLogger(__name__)

COMPOSE_URL = "https://raw.githubusercontent.com/farmOS/farmOS/3.x/docker/docker-compose.development.yml"
CHROME_IMAGE = "selenium/standalone-chrome:4.1.2-20220217"


async def fetch_compose_file(url=COMPOSE_URL, dry_run=False, timeout=60):
    """Download the farmOS development compose file.

    Returns:
        Compose file content, or an empty string in dry-run mode.
    """
    if dry_run:
        logger.info(f"[dry-run] GET {url}")
        return ""
    async with httpx.AsyncClient() as client:
        resp = await client.get(url, timeout=timeout, follow_redirects=True)
    resp.raise_for_status()
    return resp.text


def add_chrome_service(content, image=CHROME_IMAGE):
    """Add a Selenium `chrome` service to compose file *content*.

    Existing services are left untouched; an existing `chrome` service is
    kept as is.
    """
    compose = yaml.safe_load(content) or {}
    if not isinstance(compose, dict):
        raise ValueError("docker-compose content must be a mapping")
    services = compose.setdefault("services", {}) or {}
    compose["services"] = services
    services.setdefault("chrome", {"image": image})
    return yaml.safe_dump(compose, sort_keys=False)


def compose_services(content):
    """Service names declared in compose file *content*.

    Raises yaml.YAMLError on malformed YAML and ValueError when the file is
    not a mapping.
    """
    compose = yaml.safe_load(content) or {}
    if not isinstance(compose, dict) or not isinstance(compose.get("services") or {}, dict):
        raise ValueError("compose file must be a mapping with a 'services' mapping")
    return list((compose.get("services") or {}).keys())


def parse_port_output(output, default=None):
    """Extract the host port from `docker compose port` output ("0.0.0.0:8080")."""
    for line in output.splitlines():
        line = line.strip()
        if ":" not in line:
            continue
        port = line.rsplit(":", 1)[1]
        if port.isdigit():
            return int(port)
    return default
