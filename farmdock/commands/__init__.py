"""CLI command handlers."""

import os

from farmdock.install.params import DEFAULT_SUBDIR
from farmdock.install.project import find_project_root


def resolve_project_dir(value, environ):
    """farmOS directory from --project-dir, then $FARMOS_DIR, then <project root>/farmos."""
    if value:
        return os.path.abspath(value)
    if environ.get("FARMOS_DIR"):
        return os.path.abspath(environ["FARMOS_DIR"])
    return os.path.join(find_project_root(os.getcwd()), DEFAULT_SUBDIR)
