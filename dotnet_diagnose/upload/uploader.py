"""
BlobUploader - Copies one artifact to the signed blob URL with azcopy.

azcopy's exit code is not trusted: an attempt only counts as successful when
its combined output contains the job-completion marker. Attempts are bounded
and spaced by a fixed delay; the delay is a wait on the cancellation token.
"""

from typing import List, Optional

from ..config import UploadConfig
from ..logging_utils import get_stage_logger
from ..processes import ProcessRegistry, ToolRun
from ..protocol.artifacts import Artifact
from ..protocol.context import redact_url
from ..protocol.errors import RunCancelled
from ..protocol.result import UploadOutcome


logger = get_stage_logger("upload", "upload")


class BlobUploader:
    """Uploads artifacts with bounded retry."""

    def __init__(
        self,
        tool_path: str,
        registry: ProcessRegistry,
        config: Optional[UploadConfig] = None,
        timeout: Optional[float] = None,
    ):
        self.tool_path = tool_path
        self.registry = registry
        self.config = config if config is not None else UploadConfig()
        self.timeout = timeout

    def build_command(self, artifact: Artifact, destination_url: str) -> List[str]:
        return [self.tool_path, "copy", str(artifact.file_path), destination_url]

    def is_success(self, run: ToolRun) -> bool:
        return self.config.success_marker in run.output

    def upload(self, artifact: Artifact, destination_url: str) -> UploadOutcome:
        """
        Upload one file, retrying until the success marker shows up.

        Returns:
            UploadOutcome; attempt_count is 0 when the file does not exist

        Raises:
            RunCancelled: If teardown is requested during or between attempts
        """
        path = artifact.file_path
        if not artifact.exists():
            logger.error(f"Upload {path} skipped: file does not exist")
            return UploadOutcome(artifact=artifact, attempt_count=0, succeeded=False, reason="file does not exist")

        max_attempts = self.config.max_attempts
        last_reason = None
        for attempt in range(1, max_attempts + 1):
            logger.info(f"Uploading {path} to {redact_url(destination_url)} (attempt {attempt}/{max_attempts})...")
            run = self.registry.run(
                self.build_command(artifact, destination_url),
                name="azcopy",
                capture=True,
                timeout=self.timeout,
            )

            if self.is_success(run):
                logger.info(f"Upload {path} succeeded.")
                return UploadOutcome(artifact=artifact, attempt_count=attempt, succeeded=True)

            last_reason = self._failure_reason(run)
            logger.debug(f"azcopy output (attempt {attempt}):\n{run.output.strip()}")

            if attempt < max_attempts:
                logger.warning(f"Upload failed ({last_reason}), retrying...")
                if self.registry.token.wait(self.config.retry_delay):
                    raise RunCancelled(self.registry.token.reason)

        logger.error(f"Upload {path} failed after {max_attempts} attempts.")
        return UploadOutcome(
            artifact=artifact,
            attempt_count=max_attempts,
            succeeded=False,
            reason=last_reason,
        )

    def _failure_reason(self, run: ToolRun) -> str:
        if run.error or run.timed_out:
            return run.describe_failure()
        if run.returncode == 0:
            return "success marker not found in azcopy output"
        return f"azcopy exited with code {run.returncode}"
