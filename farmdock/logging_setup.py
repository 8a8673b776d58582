"""CLI logging setup: plain console output plus an optional timestamped log file."""

import logging
import os
import sys

from farmdock.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands.

    Produces output identical to print(). With verbose, DEBUG records
    (probe details, parsed drush status) are shown too.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)


def add_file_handler(log_file) -> str:
    """Append all log records to *log_file* with timestamps.

    Returns:
        Absolute path to the log file.
    """
    log_file = os.path.abspath(log_file)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler.addFilter(SecretRedactingFilter())
    logging.getLogger().addHandler(file_handler)
    return log_file
