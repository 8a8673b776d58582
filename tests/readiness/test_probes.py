"""Unit tests for command, compose liveness and HTTP probes."""

import httpx
import pytest

from farmdock.readiness import (
    ACCEPTED_HTTP_STATUSES,
    ProbeStatus,
    command_probe,
    compose_service_liveness,
    container_exec_probe,
    http_probe,
)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ── command_probe ───────────────────────────────────────────────────


async def test_command_probe_ready_on_exit_zero(fake_run_cmd):
    run_cmd = fake_run_cmd()
    result = await command_probe(run_cmd, "test -f /tmp/x")()

    assert result.ready
    assert run_cmd.commands == ["test -f /tmp/x"]


async def test_command_probe_not_ready_carries_exit_code(fake_run_cmd):
    run_cmd = fake_run_cmd({"test -f": (1, "", "No such file\n")})
    result = await command_probe(run_cmd, "test -f /tmp/x")()

    assert result.status is ProbeStatus.NOT_READY
    assert result.detail == "exit 1: No such file"


async def test_container_exec_probe_command(fake_run_cmd):
    run_cmd = fake_run_cmd()
    await container_exec_probe(run_cmd, "docker compose", "www", "test -f /x", user="www-data")()
    assert run_cmd.commands == ["docker compose exec -u www-data -T www test -f /x"]


# ── compose_service_liveness ───────────────────────────────────────


async def test_liveness_true_when_service_running(fake_run_cmd):
    run_cmd = fake_run_cmd({"ps --services": (0, "db\nwww\n", "")})
    assert await compose_service_liveness(run_cmd, "docker compose", "www")() is True


async def test_liveness_false_when_service_missing(fake_run_cmd):
    run_cmd = fake_run_cmd({"ps --services": (0, "db\n", "")})
    assert await compose_service_liveness(run_cmd, "docker compose", "www")() is False


async def test_liveness_false_when_nothing_running(fake_run_cmd):
    run_cmd = fake_run_cmd({"ps --services": (0, "", "")})
    assert await compose_service_liveness(run_cmd, "docker compose", "www")() is False


async def test_liveness_does_not_match_prefix(fake_run_cmd):
    run_cmd = fake_run_cmd({"ps --services": (0, "www-worker\n", "")})
    assert await compose_service_liveness(run_cmd, "docker compose", "www")() is False


async def test_liveness_assumes_alive_when_compose_fails(fake_run_cmd):
    run_cmd = fake_run_cmd({"ps --services": (1, "", "daemon unavailable")})
    assert await compose_service_liveness(run_cmd, "docker compose", "www")() is True


# ── http_probe ──────────────────────────────────────────────────────


@pytest.mark.parametrize("status", sorted(ACCEPTED_HTTP_STATUSES))
async def test_http_probe_accepted_statuses(status):
    async with mock_client(lambda request: httpx.Response(status)) as client:
        result = await http_probe("http://localhost", client=client)()
    assert result.ready
    assert result.detail == f"HTTP {status}"


@pytest.mark.parametrize("status", [404, 500, 502])
async def test_http_probe_rejected_statuses(status):
    async with mock_client(lambda request: httpx.Response(status)) as client:
        result = await http_probe("http://localhost", client=client)()
    assert result.status is ProbeStatus.NOT_READY


async def test_http_probe_does_not_follow_redirects():
    def handler(request):
        if request.url.path == "/":
            return httpx.Response(302, headers={"Location": "/user/login"})
        return httpx.Response(500)

    async with mock_client(handler) as client:
        result = await http_probe("http://localhost/", client=client)()
    assert result.ready
    assert result.detail == "HTTP 302"


async def test_http_probe_connection_error_is_error_result():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        result = await http_probe("http://localhost", client=client)()
    assert result.status is ProbeStatus.ERROR
    assert "connection refused" in result.detail


async def test_http_probe_custom_statuses():
    async with mock_client(lambda request: httpx.Response(404)) as client:
        result = await http_probe("http://localhost", accepted_statuses={404}, client=client)()
    assert result.ready


async def test_http_probe_dry_run(caplog):
    with caplog.at_level("INFO"):
        result = await http_probe("http://localhost:8080", dry_run=True)()
    assert result.ready
    assert "[dry-run] GET http://localhost:8080" in caplog.text
