"""
Result protocol - typed outcomes of collection and upload.

Contains per-step outcomes (CollectionResult, UploadOutcome), the per-stage
pairing (StageOutcome) and the run-level summary written at the end.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
import json

from .artifacts import Artifact, ArtifactKind
from .context import TargetProcess


@dataclass
class CollectionResult:
    """Outcome of one Collector invocation."""
    artifact: Artifact
    succeeded: bool
    reason: Optional[str] = None
    returncode: Optional[int] = None
    duration_seconds: float = 0.0

    @classmethod
    def ok(cls, artifact: Artifact, returncode: Optional[int] = 0, duration_seconds: float = 0.0) -> "CollectionResult":
        return cls(artifact=artifact, succeeded=True, returncode=returncode, duration_seconds=duration_seconds)

    @classmethod
    def failed(
        cls,
        artifact: Artifact,
        reason: str,
        returncode: Optional[int] = None,
        duration_seconds: float = 0.0,
    ) -> "CollectionResult":
        return cls(
            artifact=artifact,
            succeeded=False,
            reason=reason,
            returncode=returncode,
            duration_seconds=duration_seconds,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artifact": self.artifact.to_dict(),
            "succeeded": self.succeeded,
            "reason": self.reason,
            "returncode": self.returncode,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class UploadOutcome:
    """Outcome of one Uploader invocation (all of its attempts)."""
    artifact: Artifact
    attempt_count: int
    succeeded: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": str(self.artifact.file_path),
            "attempt_count": self.attempt_count,
            "succeeded": self.succeeded,
            "reason": self.reason,
        }


@dataclass
class StageOutcome:
    """One (collect, upload) pair for a single artifact kind."""
    kind: ArtifactKind
    collection: Optional[CollectionResult] = None
    upload: Optional[UploadOutcome] = None

    @property
    def succeeded(self) -> bool:
        return bool(
            self.collection and self.collection.succeeded
            and self.upload and self.upload.succeeded
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "succeeded": self.succeeded,
            "collection": self.collection.to_dict() if self.collection else None,
            "upload": self.upload.to_dict() if self.upload else None,
        }


@dataclass
class RunSummary:
    """Everything the orchestrator accumulated during a run."""
    run_id: str
    target: Optional[TargetProcess] = None
    stages: List[StageOutcome] = field(default_factory=list)
    state_history: List[str] = field(default_factory=list)
    completed: bool = False
    cancelled: bool = False

    @property
    def failed_stages(self) -> List[StageOutcome]:
        return [s for s in self.stages if not s.succeeded]

    def stage(self, kind: ArtifactKind) -> Optional[StageOutcome]:
        for outcome in self.stages:
            if outcome.kind == kind:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "target": self.target.to_dict() if self.target else None,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "stages": [s.to_dict() for s in self.stages],
            "state_history": list(self.state_history),
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
