"""Install parameters: dataclass, YAML config loading, environment overrides."""

import dataclasses
import os
from dataclasses import dataclass

import yaml

from farmdock.readiness import PollConfig

DEFAULT_SUBDIR = "farmos"


@dataclass
class InstallParams:
    """All parameters needed for a single farmOS install."""

    project_dir: str  # farmOS directory (compose file, composer.json)
    farmos_version: str = "3.x-dev"
    db_name: str = "farm"
    db_user: str = "farm"
    db_pass: str = "farm"
    admin_user: str = "admin"
    admin_pass: str = "admin"
    site_name: str = "farmOS"
    web_port: int = 80
    skip_qa: bool = False
    with_chrome: bool = False
    cleanup_on_failure: bool = False
    install_deps: bool = False
    max_wait: float = 600
    poll_interval: float = 2
    log_file: str | None = None
    dry_run: bool = False

    @property
    def poll_config(self) -> PollConfig:
        return PollConfig(max_wait=self.max_wait, interval=self.poll_interval)

    @property
    def db_url(self) -> str:
        return f"pgsql://{self.db_user}:{self.db_pass}@db/{self.db_name}"


# Environment variable -> InstallParams field
ENV_VARS = {
    "FARMOS_DIR": "project_dir",
    "FARMOS_VERSION": "farmos_version",
    "DB_NAME": "db_name",
    "DB_USER": "db_user",
    "DB_PASS": "db_pass",
    "ADMIN_USER": "admin_user",
    "ADMIN_PASS": "admin_pass",
    "SITE_NAME": "site_name",
    "WEB_PORT": "web_port",
    "SKIP_QA": "skip_qa",
    "MAX_WAIT_TIME": "max_wait",
    "POLL_INTERVAL": "poll_interval",
    "LOGFILE": "log_file",
}

_FIELD_TYPES = {f.name: f.type for f in dataclasses.fields(InstallParams)}


def _coerce(name, value):
    """Convert a string/YAML scalar to the type of field *name*."""
    kind = _FIELD_TYPES[name]
    if kind in ("bool", bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if kind in ("int", int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"'{name}' must be an integer, got {value!r}") from None
    if kind in ("float", float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"'{name}' must be a number, got {value!r}") from None
    return None if value is None else str(value)


def load_config(config_path):
    """Load the `farmos:` section of a YAML config file.

    Returns:
        dict of InstallParams field values.
    """
    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML config {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"Config {config_path} must be a mapping")

    section = config.get("farmos", {}) or {}
    unknown = sorted(set(section) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown keys in 'farmos' section: {', '.join(unknown)}")
    return {key: _coerce(key, value) for key, value in section.items()}


def resolve_params(cli_values, environ, config_values=None, project_root=None):
    """Merge settings with precedence CLI > environment > config file > defaults.

    Args:
        cli_values: dict of explicitly passed CLI values (None means unset)
        environ: mapping of environment variables (normally os.environ)
        config_values: dict from load_config(), or None
        project_root: directory the default farmOS subdirectory lives in

    Returns:
        InstallParams
    """
    values = dict(config_values or {})
    for env_name, field_name in ENV_VARS.items():
        if environ.get(env_name):
            values[field_name] = _coerce(field_name, environ[env_name])
    for key, value in cli_values.items():
        if value is not None:
            values[key] = _coerce(key, value)

    if not values.get("project_dir"):
        values["project_dir"] = os.path.join(project_root or os.getcwd(), DEFAULT_SUBDIR)
    elif project_root and not os.path.isabs(values["project_dir"]):
        values["project_dir"] = os.path.join(project_root, values["project_dir"])

    if not values.get("log_file"):
        values["log_file"] = os.path.join(project_root or os.getcwd(), "setup.log")

    params = InstallParams(**values)
    PollConfig(max_wait=params.max_wait, interval=params.poll_interval)  # raises ValueError
    return params
