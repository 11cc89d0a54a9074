"""
Collector - Common contract for every diagnostic artifact kind.

A collector turns (pid, output dir, host) into an Artifact by running one
external tool, and reports the outcome as a CollectionResult. Tool failures
are results, not exceptions: the orchestrator always moves on to the upload.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..logging_utils import get_stage_logger
from ..processes import ProcessRegistry, ToolRun
from ..protocol.artifacts import Artifact, ArtifactKind
from ..protocol.result import CollectionResult


class Collector:
    """
    Base class for artifact collectors.

    Subclasses set ``kind``/``label``/``tool_name`` and implement
    ``build_command``; blocking tools are handled here, the counters
    collector overrides ``run_tool``.
    """

    kind: ArtifactKind
    label: str = "Artifact"
    tool_name: str = "tool"

    def __init__(
        self,
        tool_path: str,
        registry: ProcessRegistry,
        timeout: Optional[float] = None,
    ):
        self.tool_path = tool_path
        self.registry = registry
        self.timeout = timeout
        self.log = get_stage_logger(self.kind.tag, f"collectors.{self.kind.value}")

    def build_command(self, pid: int, artifact: Artifact) -> List[str]:
        raise NotImplementedError

    def collect(
        self,
        pid: int,
        output_dir: Path,
        host_identifier: str,
        when: Optional[datetime] = None,
    ) -> CollectionResult:
        """
        Collect one artifact for the target process.

        Raises:
            RunCancelled: If teardown was requested before or while the tool ran
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        artifact = Artifact.create(self.kind, output_dir, host_identifier, when)

        self.log.info(f"Starting {self.label.lower()} collection...")
        started = time.monotonic()
        result = self.run_tool(pid, artifact)
        result.duration_seconds = time.monotonic() - started

        if result.succeeded:
            self.log.info(f"{self.label} collected: {artifact.name} ({artifact.size_bytes()} bytes)")
        else:
            self.log.error(f"{self.label} collection failed: {result.reason}")
        return result

    def run_tool(self, pid: int, artifact: Artifact) -> CollectionResult:
        """Run the tool to completion and map the exit status."""
        run = self.registry.run(
            self.build_command(pid, artifact),
            name=self.tool_name,
            timeout=self.timeout,
        )
        return self.to_result(run, artifact)

    def to_result(self, run: ToolRun, artifact: Artifact) -> CollectionResult:
        if run.ok:
            return CollectionResult.ok(artifact, returncode=run.returncode)
        return CollectionResult.failed(artifact, run.describe_failure(), returncode=run.returncode)
