"""Validation library: checks against a running farmOS installation."""

from farmdock.validate.checks import (
    FAILED,
    PASSED,
    SKIPPED,
    WARNING,
    CheckResult,
    ValidationContext,
    count_farm_modules,
    parse_drush_status,
    run_validation,
)

__all__ = [
    "FAILED",
    "PASSED",
    "SKIPPED",
    "WARNING",
    "CheckResult",
    "ValidationContext",
    "count_farm_modules",
    "parse_drush_status",
    "run_validation",
]
