"""Project root detection."""

import glob
import os


def _is_project_root(path):
    if os.path.isdir(os.path.join(path, ".git")):
        return True
    if glob.glob(os.path.join(glob.escape(path), "*.code-workspace")):
        return True
    return os.path.isfile(os.path.join(path, "README.md")) and os.path.isdir(os.path.join(path, "scripts"))


def find_project_root(start):
    """Walk upward from *start* looking for a project root.

    A project root holds a .git directory, a *.code-workspace file, or a
    README.md next to a scripts/ directory. Falls back to the parent of
    *start* when nothing matches.
    """
    start = os.path.abspath(start)
    search_dir = start
    while True:
        if _is_project_root(search_dir):
            return search_dir
        parent = os.path.dirname(search_dir)
        if parent == search_dir:
            break
        search_dir = parent
    return os.path.dirname(start)
