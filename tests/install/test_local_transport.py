"""Tests for the local run_cmd/write_file transport."""

from farmdock.install.local import make_run_cmd, make_write_file


async def test_run_cmd_captures_output(tmp_path):
    run_cmd = make_run_cmd(str(tmp_path))
    rc, stdout, _ = await run_cmd("pwd", stream=False)
    assert rc == 0
    assert stdout.strip() == str(tmp_path)


async def test_run_cmd_log_output(tmp_path, caplog):
    run_cmd = make_run_cmd(str(tmp_path))
    with caplog.at_level("INFO"):
        rc, stdout, stderr = await run_cmd("echo out; echo err >&2; exit 3", log_output=True)
    assert rc == 3
    assert stdout == "out"
    assert stderr == "err"
    assert "out" in caplog.text


async def test_run_cmd_timeout(tmp_path):
    run_cmd = make_run_cmd(str(tmp_path))
    assert await run_cmd("sleep 5", stream=False, timeout=0.2) == (1, "", "")


async def test_run_cmd_missing_workdir_runs_in_cwd(tmp_path):
    run_cmd = make_run_cmd(str(tmp_path / "not-yet"))
    rc, _, _ = await run_cmd("true", stream=False)
    assert rc == 0


async def test_run_cmd_dry_run(tmp_path, caplog):
    run_cmd = make_run_cmd(str(tmp_path), dry_run=True)
    with caplog.at_level("INFO"):
        assert await run_cmd("touch marker") == (0, "", "")
    assert "[dry-run] touch marker" in caplog.text
    assert not (tmp_path / "marker").exists()


async def test_write_file(tmp_path):
    write_file = make_write_file(str(tmp_path))
    await write_file("docker-compose.yml", "services: {}\n")
    assert (tmp_path / "docker-compose.yml").read_text() == "services: {}\n"


async def test_write_file_dry_run(tmp_path, caplog):
    write_file = make_write_file(str(tmp_path), dry_run=True)
    with caplog.at_level("INFO"):
        await write_file("docker-compose.yml", "services: {}\n")
    assert not (tmp_path / "docker-compose.yml").exists()
    assert "[dry-run] write" in caplog.text


async def test_run_cmd_missing_binary_exits_127(tmp_path):
    run_cmd = make_run_cmd(str(tmp_path))
    rc, _, _ = await run_cmd("farmdock-no-such-binary", stream=False)
    assert rc == 127
