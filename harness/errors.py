"""Exception hierarchy for the fixture harness."""

from typing import Optional, Sequence


class HarnessError(Exception):
    """Base class for harness failures."""


class PreconditionError(HarnessError):
    """A lifecycle cannot start; abort with a non-zero exit."""


class ManifestExistsError(PreconditionError):
    """A previous fixture was never torn down."""


class ManifestNotFoundError(PreconditionError):
    """No fixture is currently provisioned."""


class MissingEnvironmentError(PreconditionError):
    """A required credential or setting is not configured."""


class UnknownFixtureError(PreconditionError):
    """The requested fixture selector does not exist."""


class WaitTimeoutError(HarnessError):
    """A bounded wait hit its deadline."""

    def __init__(self, label: str, timeout_ms: int):
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out waiting for {label} after {timeout_ms}ms")


class PollTimeoutError(WaitTimeoutError):
    """No observation satisfied the predicate before the deadline."""


class AgentTimeoutError(WaitTimeoutError):
    """The agent subprocess exceeded its wall-clock budget."""

    def __init__(self, label: str, timeout_ms: int, stdout: str = ""):
        super().__init__(label, timeout_ms)
        self.stdout = stdout


class TrackerError(HarnessError):
    """Linear rejected a request or returned GraphQL errors."""


class CommandError(HarnessError):
    """An external command exited with a non-zero status."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"Command failed ({returncode}): {' '.join(self.cmd)}"
        if self.stderr:
            message += f"\n{self.stderr}"
        super().__init__(message)
