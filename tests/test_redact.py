"""Tests for farmdock.redact: password redaction in text and log records."""

import logging

import pytest

import farmdock.redact as redact_module
from farmdock.redact import SecretRedactingFilter, redact_secrets, register_secret


@pytest.fixture(autouse=True)
def _reset_cache(monkeypatch):
    """Reset the module-level caches so env changes take effect."""
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(redact_module, "_registered", set())
    monkeypatch.setattr(redact_module, "_patterns", None)


# ── redact_secrets ──────────────────────────────────────────────


def test_redact_secrets_replaces_env_value(monkeypatch):
    monkeypatch.setenv("ADMIN_PASS", "CorrectHorse42")

    text = "Admin credentials: admin / CorrectHorse42"
    assert redact_secrets(text) == "Admin credentials: admin / ***"


def test_redact_secrets_short_values_ignored(monkeypatch):
    monkeypatch.setenv("DB_PASS", "farm")

    text = "--db-url=pgsql://farm:farm@db/farm"
    assert redact_secrets(text) == text


def test_redact_secrets_nothing_registered():
    text = "Nothing secret here"
    assert redact_secrets(text) == text


def test_redact_secrets_multiple_values(monkeypatch):
    monkeypatch.setenv("ADMIN_PASS", "admin_pw_AAAA")
    monkeypatch.setenv("DB_PASS", "db_pw_BBBB_long_enough")

    result = redact_secrets("admin=admin_pw_AAAA db=db_pw_BBBB_long_enough done")
    assert result == "admin=*** db=*** done"


def test_register_secret_applies_to_later_output():
    assert redact_secrets("pass FromConfigFile9") == "pass FromConfigFile9"

    register_secret("FromConfigFile9")

    assert redact_secrets("pass FromConfigFile9") == "pass ***"


@pytest.mark.parametrize("value", [None, "", "short"])
def test_register_secret_ignores_short_values(value):
    register_secret(value)
    assert redact_module._registered == set()


# ── SecretRedactingFilter ───────────────────────────────────────


def _record(msg, args=None):
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=None,
    )


def test_secret_redacting_filter():
    register_secret("FilterTestPass99")

    record = _record("--account-pass='FilterTestPass99'")
    SecretRedactingFilter().filter(record)
    assert record.msg == "--account-pass='***'"


def test_secret_redacting_filter_with_args():
    register_secret("ArgsTestPass88")

    record = _record("Password: %s", ("ArgsTestPass88",))
    SecretRedactingFilter().filter(record)
    assert record.args == ("***",)


def test_filter_on_handler_redacts_child_logger_records():
    register_secret("PropagatedPass77")
    seen = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            seen.append(record.getMessage())

    handler = ListHandler()
    handler.addFilter(SecretRedactingFilter())
    parent = logging.getLogger("farmdock_redact_test")
    parent.addHandler(handler)
    parent.setLevel(logging.INFO)
    try:
        logging.getLogger("farmdock_redact_test.child").info("using PropagatedPass77")
    finally:
        parent.removeHandler(handler)

    assert seen == ["using ***"]
