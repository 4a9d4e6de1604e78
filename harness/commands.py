"""Run external CLIs (git, gh, docker, bun) and capture their output."""

import subprocess
from pathlib import Path
from typing import Optional, Sequence, Union

from .errors import CommandError


def run_command(cmd: Sequence[str], cwd: Optional[Union[str, Path]] = None,
                check: bool = True, timeout: Optional[float] = None) -> str:
    """Run a command and return its stripped stdout.

    Raises:
        CommandError: if ``check`` is set and the command exits non-zero,
            or the executable cannot be found
    """
    try:
        result = subprocess.run(
            list(cmd),
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except FileNotFoundError as e:
        raise CommandError(cmd, 127, str(e)) from e
    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr)
    return result.stdout.strip()
