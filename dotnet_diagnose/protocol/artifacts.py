"""
Artifact protocol - what a Collector hands to the Uploader.

Every artifact file is named
``{prefix}_{host}_{YYYYMMDD_HHMMSS}.{ext}`` so names never collide between
kinds in one run, nor between runs on the same host at different times.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Optional


TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class ArtifactKind(str, Enum):
    """Diagnostic artifact kinds, in pipeline order."""
    NETWORK_TRACE = "trace"
    MEMORY_DUMP = "dump"
    STACK_REPORT = "stack"
    COUNTER_TRACE = "counters"

    @property
    def prefix(self) -> str:
        return ARTIFACT_NAMING[self][0]

    @property
    def extension(self) -> str:
        return ARTIFACT_NAMING[self][1]

    @property
    def tag(self) -> str:
        """Log tag for the stage handling this kind."""
        return STAGE_TAGS[self]

    @classmethod
    def from_name(cls, name: str) -> "ArtifactKind":
        """Resolve a kind from its value or enum name (case-insensitive)."""
        lookup = name.strip().lower()
        for kind in cls:
            if lookup in (kind.value, kind.name.lower(), kind.prefix, kind.tag):
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ValueError(f"Unknown artifact kind '{name}' (valid: {valid})")


# kind -> (file prefix, extension)
ARTIFACT_NAMING: Dict[ArtifactKind, tuple] = {
    ArtifactKind.NETWORK_TRACE: ("trace", "nettrace"),
    ArtifactKind.MEMORY_DUMP: ("dump", "dmp"),
    ArtifactKind.STACK_REPORT: ("stacktrace", "txt"),
    ArtifactKind.COUNTER_TRACE: ("countertrace", "csv"),
}

STAGE_TAGS: Dict[ArtifactKind, str] = {
    ArtifactKind.NETWORK_TRACE: "trace",
    ArtifactKind.MEMORY_DUMP: "dump",
    ArtifactKind.STACK_REPORT: "stack",
    ArtifactKind.COUNTER_TRACE: "counter",
}

PIPELINE_ORDER = (
    ArtifactKind.NETWORK_TRACE,
    ArtifactKind.MEMORY_DUMP,
    ArtifactKind.STACK_REPORT,
    ArtifactKind.COUNTER_TRACE,
)


def artifact_filename(kind: ArtifactKind, host_identifier: str, when: datetime) -> str:
    """Build the deterministic file name for an artifact."""
    return f"{kind.prefix}_{host_identifier}_{when.strftime(TIMESTAMP_FORMAT)}.{kind.extension}"


@dataclass
class Artifact:
    """A file produced by one collection stage."""
    kind: ArtifactKind
    file_path: Path
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        kind: ArtifactKind,
        output_dir: Path,
        host_identifier: str,
        when: Optional[datetime] = None,
    ) -> "Artifact":
        when = when or datetime.now()
        path = Path(output_dir) / artifact_filename(kind, host_identifier, when)
        return cls(kind=kind, file_path=path, created_at=when)

    @property
    def name(self) -> str:
        return self.file_path.name

    def exists(self) -> bool:
        return self.file_path.exists()

    def size_bytes(self) -> int:
        """Size on disk, 0 when the file is absent."""
        try:
            return self.file_path.stat().st_size
        except OSError:
            return 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "file_path": str(self.file_path),
            "created_at": self.created_at.isoformat(),
            "size_bytes": self.size_bytes(),
        }
