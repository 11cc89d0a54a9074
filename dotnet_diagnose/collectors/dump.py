"""DumpCollector - Memory dump via ``dotnet-dump collect``."""

from typing import List

from ..protocol.artifacts import Artifact, ArtifactKind
from .base import Collector


class DumpCollector(Collector):
    kind = ArtifactKind.MEMORY_DUMP
    label = "Memory dump"
    tool_name = "dotnet-dump"

    def build_command(self, pid: int, artifact: Artifact) -> List[str]:
        return [self.tool_path, "collect", "-p", str(pid), "-o", str(artifact.file_path)]
