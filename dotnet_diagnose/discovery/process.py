"""
ProcessLocator - Finds the target .NET process on the host.

Uses ``dotnet-dump ps`` for enumeration and keeps the entries whose command
line contains the runtime executable path.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config import ProcessConfig
from ..logging_utils import get_stage_logger
from ..protocol.errors import AmbiguousProcessError, ProcessNotFoundError
from ..processes import ProcessRegistry


logger = get_stage_logger("discover", "discovery")


@dataclass
class ProcessEntry:
    """One row of the enumeration output."""
    pid: int
    name: str
    command: str


def parse_process_table(output: str) -> List[ProcessEntry]:
    """
    Parse ``dotnet-dump ps`` output.

    Rows look like ``  4242 dotnet  /usr/share/dotnet/dotnet  dotnet app.dll``;
    anything whose first column is not a pid is skipped.
    """
    entries = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].isdigit():
            continue
        entries.append(ProcessEntry(
            pid=int(parts[0]),
            name=parts[1],
            command=" ".join(parts[2:]),
        ))
    return entries


class ProcessLocator:
    """
    Locates the single managed-runtime process to diagnose.

    Multiple matches are resolved by ``config.on_multiple``: "first" keeps the
    first row (and warns), "error" raises AmbiguousProcessError.
    """

    def __init__(
        self,
        config: ProcessConfig,
        enumerator_path: str,
        registry: ProcessRegistry,
        proc_root: Path = Path("/proc"),
    ):
        self.config = config
        self.enumerator_path = enumerator_path
        self.registry = registry
        self.proc_root = proc_root

    def locate(self) -> int:
        """
        Return the pid of the target process.

        Raises:
            ProcessNotFoundError: No candidate (or explicit pid not running)
            AmbiguousProcessError: Several candidates and policy is "error"
        """
        if self.config.pid:
            if not pid_exists(self.config.pid, self.proc_root):
                raise ProcessNotFoundError(f"Process {self.config.pid} is not running")
            logger.info(f"Using explicit target pid {self.config.pid}")
            return self.config.pid

        candidates = self.find_candidates()
        if not candidates:
            raise ProcessNotFoundError()

        if len(candidates) > 1:
            pids = [c.pid for c in candidates]
            if self.config.on_multiple == "error":
                raise AmbiguousProcessError(pids)
            logger.warning(
                f"Found {len(candidates)} matching processes ({', '.join(str(p) for p in pids)}), "
                f"using the first one"
            )

        target = candidates[0]
        logger.info(f"Found .NET process {target.pid} ({target.command or target.name})")
        return target.pid

    def find_candidates(self) -> List[ProcessEntry]:
        """All enumerated processes whose row mentions the runtime path."""
        run = self.registry.run(
            [self.enumerator_path, "ps"],
            name="dotnet-dump ps",
            capture=True,
        )
        if run.error:
            raise ProcessNotFoundError(f"Could not enumerate .NET processes: {run.error}")
        if run.returncode != 0:
            raise ProcessNotFoundError(
                f"Could not enumerate .NET processes: {run.describe_failure()}"
            )

        rows = parse_process_table(run.output)
        return [row for row in rows if self._matches(row)]

    def _matches(self, row: ProcessEntry) -> bool:
        runtime = self.config.runtime_path
        return runtime in row.command or runtime == row.name


def pid_exists(pid: int, proc_root: Optional[Path] = None) -> bool:
    """Check whether a pid is present under /proc."""
    return ((proc_root or Path("/proc")) / str(pid)).exists()
