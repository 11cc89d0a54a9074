"""
Error protocol - fatal conditions that abort a run.

Recoverable failures (collection, upload) are never raised; they are carried
as CollectionResult / UploadOutcome values. Only discovery and configuration
problems surface as exceptions, each with the exit status the CLI uses.
"""

from typing import List, Optional


class DiagnoseError(Exception):
    """Base class for fatal orchestrator errors."""
    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(DiagnoseError):
    """Invalid or unreadable configuration."""
    exit_code = 2

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or []


class ProcessNotFoundError(DiagnoseError):
    """No process matching the runtime executable is running."""

    def __init__(self, message: str = "Could not find any running .NET process"):
        super().__init__(message)


class AmbiguousProcessError(DiagnoseError):
    """More than one candidate process and the policy forbids guessing."""

    def __init__(self, pids: List[int]):
        self.pids = list(pids)
        super().__init__(
            f"Found {len(self.pids)} running .NET processes ({', '.join(str(p) for p in self.pids)}); "
            "pass --pid to pick one"
        )


class MissingVariableError(DiagnoseError):
    """A required variable is absent from the target process environment."""

    def __init__(self, variable: str, pid: Optional[int] = None):
        self.variable = variable
        self.pid = pid
        super().__init__(f"Could not find {variable} environment variable")


class EnvironmentReadError(DiagnoseError):
    """The target process environment block could not be read."""

    def __init__(self, pid: int, reason: str):
        self.pid = pid
        self.reason = reason
        super().__init__(f"Could not read environment of process {pid}: {reason}")


class RunCancelled(Exception):
    """Raised inside the engine once teardown has been requested."""

    def __init__(self, signal_name: Optional[str] = None):
        self.signal_name = signal_name
        super().__init__(f"Run cancelled ({signal_name or 'cancel requested'})")
