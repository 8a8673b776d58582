"""Probe and liveness builders for containers and HTTP endpoints."""

import logging

import httpx

from farmdock.readiness.poller import ProbeResult

logger = logging.getLogger(__name__)

# 302: farmOS redirecting to the login form.
# 403: anonymous visitor on a site that requires login.
# 404 and 5xx mean the web root is not serving farmOS yet.
ACCEPTED_HTTP_STATUSES = frozenset({200, 302, 403})


def command_probe(run_cmd, command, timeout=30):
    """Probe that is ready when *command* exits 0."""

    async def probe():
        rc, _, stderr = await run_cmd(command, stream=False, timeout=timeout)
        if rc == 0:
            return ProbeResult.ok()
        return ProbeResult.not_ready(f"exit {rc}" + (f": {stderr.strip()}" if stderr and stderr.strip() else ""))

    return probe


def compose_service_liveness(run_cmd, compose, service, timeout=30):
    """Liveness check: *service* is listed among the running compose services."""

    async def liveness():
        rc, stdout, _ = await run_cmd(
            f'{compose} ps --services --filter "status=running"',
            stream=False,
            timeout=timeout,
        )
        if rc != 0:
            # compose itself failed; say nothing about the service
            return True
        return service in stdout.split()

    return liveness


def container_exec_probe(run_cmd, compose, service, command="echo ready", user=None, timeout=30):
    """Probe that is ready when *command* runs successfully inside *service*."""
    user_flag = f" -u {user}" if user else ""
    return command_probe(run_cmd, f"{compose} exec{user_flag} -T {service} {command}", timeout=timeout)


async def fetch_http_status(url, client=None, timeout=10):
    """GET *url* without following redirects and return the status code."""
    if client is not None:
        resp = await client.get(url, timeout=timeout, follow_redirects=False)
        return resp.status_code
    async with httpx.AsyncClient() as owned:
        resp = await owned.get(url, timeout=timeout, follow_redirects=False)
    return resp.status_code


def http_probe(url, accepted_statuses=ACCEPTED_HTTP_STATUSES, client=None, timeout=10, dry_run=False):
    """Probe that is ready when *url* answers with one of *accepted_statuses*.

    Transport errors (connection refused, timeouts) are reported as ERROR
    results, which the poller retries like any other not-ready answer.
    """

    async def probe():
        if dry_run:
            logger.info(f"[dry-run] GET {url}")
            return ProbeResult.ok("dry-run")
        try:
            status = await fetch_http_status(url, client=client, timeout=timeout)
        except httpx.HTTPError as e:
            return ProbeResult.error(f"{type(e).__name__}: {e}")
        if status in accepted_statuses:
            return ProbeResult.ok(f"HTTP {status}")
        return ProbeResult.not_ready(f"HTTP {status}")

    return probe
