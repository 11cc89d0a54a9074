"""
Protocol definitions for dotnet_diagnose.

Dataclasses passed between components:
- TargetProcess: discovery → collectors/uploader
- Artifact / ArtifactKind: collector → uploader
- CollectionResult / UploadOutcome / StageOutcome / RunSummary: typed outcomes
- DiagnoseError and subclasses: fatal discovery/config failures
"""

from .artifacts import (
    Artifact,
    ArtifactKind,
    PIPELINE_ORDER,
    artifact_filename,
)
from .context import TargetProcess, redact_url
from .result import (
    CollectionResult,
    UploadOutcome,
    StageOutcome,
    RunSummary,
)
from .errors import (
    DiagnoseError,
    ConfigError,
    ProcessNotFoundError,
    AmbiguousProcessError,
    MissingVariableError,
    EnvironmentReadError,
    RunCancelled,
)

__all__ = [
    # Artifacts
    "Artifact",
    "ArtifactKind",
    "PIPELINE_ORDER",
    "artifact_filename",
    # Context
    "TargetProcess",
    "redact_url",
    # Results
    "CollectionResult",
    "UploadOutcome",
    "StageOutcome",
    "RunSummary",
    # Errors
    "DiagnoseError",
    "ConfigError",
    "ProcessNotFoundError",
    "AmbiguousProcessError",
    "MissingVariableError",
    "EnvironmentReadError",
    "RunCancelled",
]
