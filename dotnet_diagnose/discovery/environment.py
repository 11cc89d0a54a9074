"""
EnvironmentReader - Reads identity and upload destination from the target.

The variables live in the target process environment (not ours), read from
``/proc/<pid>/environ``: NUL-separated ``NAME=VALUE`` entries.
"""

from pathlib import Path
from typing import Dict

from ..config import EnvironmentConfig
from ..logging_utils import get_stage_logger
from ..protocol.context import TargetProcess, redact_url
from ..protocol.errors import EnvironmentReadError, MissingVariableError


logger = get_stage_logger("discover", "discovery")


def parse_environ(raw: bytes) -> Dict[str, str]:
    """Split an environ block into a dict; the value is everything after the first '='."""
    env = {}
    for entry in raw.split(b"\0"):
        if not entry or b"=" not in entry:
            continue
        name, _, value = entry.partition(b"=")
        env[name.decode("utf-8", errors="replace")] = value.decode("utf-8", errors="replace")
    return env


class EnvironmentReader:
    """Projects a process environment onto a TargetProcess."""

    def __init__(self, config: EnvironmentConfig, proc_root: Path = Path("/proc")):
        self.config = config
        self.proc_root = proc_root

    def read_environ(self, pid: int) -> Dict[str, str]:
        """Read the full environment block of a process."""
        path = self.proc_root / str(pid) / "environ"
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise EnvironmentReadError(pid, "process no longer exists")
        except PermissionError:
            raise EnvironmentReadError(pid, "permission denied")
        except OSError as e:
            raise EnvironmentReadError(pid, str(e))
        return parse_environ(raw)

    def read(self, pid: int) -> TargetProcess:
        """
        Build the TargetProcess for a pid.

        Raises:
            MissingVariableError: A required variable is absent or empty
            EnvironmentReadError: The environ block is unreadable
        """
        env = self.read_environ(pid)

        host = env.get(self.config.host_variable, "").strip()
        if not host:
            raise MissingVariableError(self.config.host_variable, pid)

        destination = env.get(self.config.destination_variable, "").strip()
        if not destination:
            raise MissingVariableError(self.config.destination_variable, pid)

        logger.info(f"Instance {host}, upload destination {redact_url(destination)}")
        return TargetProcess(pid=pid, host_identifier=host, upload_destination=destination)
