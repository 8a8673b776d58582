"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import httpx
import pytest
import yaml


PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the farmdock CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "farmdock.farmdock", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env={**os.environ, **(env or {})},
        )
        return result.returncode, result.stdout, result.stderr

    return _run


class FakeRunCmd:
    """Stand-in for the async run_cmd transport.

    *responses* maps a command substring to (rc, stdout, stderr), or to a
    list of such tuples consumed in order (the last one repeats). The first
    matching substring wins; unmatched commands succeed with no output.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.commands = []
        self._counts = {}

    async def __call__(self, command, stream=True, timeout=600, log_output=False):
        self.commands.append(command)
        for pattern, response in self.responses.items():
            if pattern in command:
                if isinstance(response, list):
                    i = self._counts.get(pattern, 0)
                    self._counts[pattern] = i + 1
                    return response[min(i, len(response) - 1)]
                return response
        return 0, "", ""

    def ran(self, substring):
        return any(substring in c for c in self.commands)

    def index(self, substring):
        for i, c in enumerate(self.commands):
            if substring in c:
                return i
        raise ValueError(substring)


@pytest.fixture
def fake_run_cmd():
    """Return a factory for FakeRunCmd instances."""
    return FakeRunCmd


class FakeWriteFile:
    def __init__(self):
        self.files = {}

    async def __call__(self, path, content):
        self.files[path] = content


@pytest.fixture
def fake_write_file():
    return FakeWriteFile()


@pytest.fixture
def no_sleep():
    """Async sleep replacement that returns immediately."""

    async def _sleep(seconds):
        return None

    return _sleep


@pytest.fixture
def farmos_dir(tmp_path):
    """farmOS directory with a composer.json and a minimal compose file."""
    project = tmp_path / "farmos"
    project.mkdir()
    (project / "composer.json").write_text("{}")
    compose = {
        "services": {
            "db": {"image": "postgres:13"},
            "www": {"image": "farmos/farmos:3.x-dev", "ports": ["80:80"]},
        }
    }
    with open(project / "docker-compose.yml", "w") as f:
        yaml.dump(compose, f)
    return project


@pytest.fixture
def http_client():
    """httpx client whose every request answers 200."""
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
