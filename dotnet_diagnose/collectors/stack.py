"""
StackCollector - Managed stack report via ``dotnet-stack report``.

The tool writes the report to stdout, which is redirected straight into the
artifact file.
"""

from typing import List

from ..protocol.artifacts import Artifact, ArtifactKind
from ..protocol.result import CollectionResult
from .base import Collector


class StackCollector(Collector):
    kind = ArtifactKind.STACK_REPORT
    label = "Stack trace"
    tool_name = "dotnet-stack"

    def build_command(self, pid: int, artifact: Artifact) -> List[str]:
        return [self.tool_path, "report", "-p", str(pid)]

    def run_tool(self, pid: int, artifact: Artifact) -> CollectionResult:
        with open(artifact.file_path, "w", encoding="utf-8") as report:
            run = self.registry.run(
                self.build_command(pid, artifact),
                name=self.tool_name,
                stdout=report,
                timeout=self.timeout,
            )
        return self.to_result(run, artifact)
