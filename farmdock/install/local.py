"""Local transport: run shell commands and write files in the farmOS directory."""

import asyncio
import logging
import os

logger = logging.getLogger(__name__)


def _decode(data):
    return data.decode(errors="replace") if data else ""


async def _drain(pipe):
    """Log each line of *pipe* as it arrives; return the collected text."""
    lines = []
    async for raw_line in pipe:
        line = raw_line.decode(errors="replace").rstrip("\n")
        logger.info(line)
        lines.append(line)
    return "\n".join(lines)


async def _run_shell(command, cwd, stream, timeout, log_output):
    """Run *command* through the shell. Raises TimeoutError after killing it."""
    pipe = asyncio.subprocess.PIPE if log_output or not stream else None
    proc = await asyncio.create_subprocess_shell(command, cwd=cwd, stdout=pipe, stderr=pipe)
    try:
        if log_output:
            stdout, stderr, _ = await asyncio.wait_for(
                asyncio.gather(_drain(proc.stdout), _drain(proc.stderr), proc.wait()),
                timeout=timeout,
            )
            return proc.returncode, stdout, stderr
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    if stream:
        # output went straight to the terminal
        return proc.returncode, "", ""
    return proc.returncode, _decode(stdout_bytes), _decode(stderr_bytes)


def make_run_cmd(workdir, dry_run=False):
    """Create a run_cmd callable executing commands with *workdir* as cwd.

    Until *workdir* exists (before the project is created) commands run in
    the current directory.
    """

    async def run_cmd(command, stream=True, timeout=600, log_output=False):
        if dry_run:
            logger.info(f"[dry-run] {command}")
            return 0, "", ""
        cwd = workdir if os.path.isdir(workdir) else None
        try:
            return await _run_shell(command, cwd, stream, timeout, log_output)
        except TimeoutError:
            logger.error(f"Command timed out after {timeout}s: {command}")
        except OSError as e:
            logger.error(f"Error running command: {e}")
        return 1, "", ""

    return run_cmd


def make_write_file(workdir, dry_run=False):
    """Create a write_file callable for files relative to *workdir*."""

    async def write_file(path, content):
        full_path = os.path.join(workdir, path)
        if dry_run:
            logger.info(f"[dry-run] write {full_path}")
            return
        os.makedirs(os.path.dirname(full_path) or ".", exist_ok=True)
        with open(full_path, "w") as f:
            f.write(content)

    return write_file
