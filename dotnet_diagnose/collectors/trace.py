"""
TraceCollector - Network trace via ``dotnet-trace collect``.

The tool stops by itself after ``--duration``; the timeout is only a safety
net slightly above that.
"""

from typing import List

from ..processes import ProcessRegistry
from ..protocol.artifacts import Artifact, ArtifactKind
from .base import Collector


def format_duration(seconds: int) -> str:
    """Seconds as the hh:mm:ss form dotnet-trace expects."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class TraceCollector(Collector):
    kind = ArtifactKind.NETWORK_TRACE
    label = "Nettrace"
    tool_name = "dotnet-trace"

    def __init__(
        self,
        tool_path: str,
        registry: ProcessRegistry,
        duration_seconds: int = 60,
        grace_seconds: float = 30.0,
    ):
        super().__init__(tool_path, registry, timeout=duration_seconds + grace_seconds)
        self.duration_seconds = duration_seconds

    def build_command(self, pid: int, artifact: Artifact) -> List[str]:
        return [
            self.tool_path, "collect",
            "-p", str(pid),
            "-o", str(artifact.file_path),
            "--duration", format_duration(self.duration_seconds),
        ]
