"""Unit tests for local host preparation."""

import pytest

from farmdock.provisioning import (
    check_system_resources,
    detect_docker_compose,
    install_dependencies,
    validate_dependencies,
)


def which_of(*available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


NO_PLUGIN = {"docker compose version": (1, "", "unknown command")}


# ── detect_docker_compose ───────────────────────────────────────────


async def test_detect_prefers_plugin(fake_run_cmd):
    assert await detect_docker_compose(fake_run_cmd(), which=which_of("docker-compose")) == "docker compose"


async def test_detect_standalone(fake_run_cmd):
    result = await detect_docker_compose(fake_run_cmd(NO_PLUGIN), which=which_of("docker-compose"))
    assert result == "docker-compose"


async def test_detect_missing(fake_run_cmd):
    assert await detect_docker_compose(fake_run_cmd(NO_PLUGIN), which=which_of()) is None


# ── validate_dependencies ───────────────────────────────────────────


async def test_validate_dry_run_assumes_installed(fake_run_cmd):
    run_cmd = fake_run_cmd()
    assert await validate_dependencies(run_cmd, dry_run=True, which=which_of()) == "docker compose"
    assert run_cmd.commands == []


async def test_validate_all_present(fake_run_cmd):
    assert await validate_dependencies(fake_run_cmd(), which=which_of("docker")) == "docker compose"


async def test_validate_missing_without_install(fake_run_cmd, caplog):
    run_cmd = fake_run_cmd(NO_PLUGIN)
    with caplog.at_level("INFO"):
        assert await validate_dependencies(run_cmd, which=which_of()) is None
    assert "--install-deps" in caplog.text
    assert not run_cmd.ran("apt-get")


async def test_validate_install_without_package_manager(fake_run_cmd):
    assert await validate_dependencies(fake_run_cmd(NO_PLUGIN), install=True, which=which_of()) is None


async def test_validate_installs_then_detects(fake_run_cmd):
    run_cmd = fake_run_cmd({"docker compose version": [(1, "", ""), (0, "v2.24.0", "")]})

    result = await validate_dependencies(run_cmd, install=True, which=which_of("apt-get"))

    assert result == "docker compose"
    assert run_cmd.ran("apt-get install")
    assert run_cmd.commands[-1] == "docker compose version"


# ── install_dependencies ────────────────────────────────────────────


async def test_install_with_apt(fake_run_cmd, monkeypatch):
    monkeypatch.setenv("USER", "farmer")
    run_cmd = fake_run_cmd()

    assert await install_dependencies(run_cmd, which=which_of("apt-get", "usermod"))
    assert run_cmd.commands[0] == "sudo apt-get update -qq"
    assert run_cmd.ran("sudo apt-get install -y docker.io docker-compose-v2 curl")
    assert run_cmd.commands[-1] == "sudo usermod -aG docker farmer"


async def test_install_stops_on_failure(fake_run_cmd):
    run_cmd = fake_run_cmd({"yum install": (1, "", "no network")})

    assert not await install_dependencies(run_cmd, which=which_of("yum"))
    assert run_cmd.commands == ["sudo yum install -y docker docker-compose"]


async def test_install_no_package_manager(fake_run_cmd):
    run_cmd = fake_run_cmd()
    assert not await install_dependencies(run_cmd, which=which_of())
    assert run_cmd.commands == []


# ── check_system_resources ──────────────────────────────────────────


@pytest.mark.parametrize("available_kb,warned", [(512000, True), (4096000, False)])
def test_check_system_resources(tmp_path, caplog, available_kb, warned):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(f"MemTotal:       8192000 kB\nMemAvailable:   {available_kb} kB\n")

    with caplog.at_level("INFO"):
        result = check_system_resources(str(tmp_path), meminfo_path=str(meminfo))

    assert result["memory_mb"] == available_kb // 1024
    assert result["disk_free_gb"] >= 0
    assert ("Low memory" in caplog.text) is warned


def test_check_system_resources_without_meminfo(tmp_path):
    result = check_system_resources(str(tmp_path), meminfo_path=str(tmp_path / "missing"))
    assert result["memory_mb"] is None


def test_check_system_resources_missing_directory(tmp_path, caplog):
    with caplog.at_level("INFO"):
        result = check_system_resources(str(tmp_path / "not-created"), meminfo_path=str(tmp_path / "missing"))

    assert result["disk_free_gb"] is None
    assert "Disk: unknown" in caplog.text
