"""
dotnet_diagnose - .NET diagnostics collection orchestrator

Finds the .NET process running on this host, captures a network trace, a
memory dump, a managed stack report and a performance-counter trace, and
uploads each artifact to the blob container the process itself is
configured with.

Usage:
    # As a module
    python -m dotnet_diagnose --output-dir /tmp/diag

    # Programmatically
    from dotnet_diagnose import Config, DiagnosticEngine

    engine = DiagnosticEngine(Config.load())
    summary = engine.run()
"""

__version__ = "1.0.0"

# Main exports
from .config import Config
from .runner.engine import DiagnosticEngine
from .runner.state import StateMachine, State
from .runner.teardown import Teardown
from .processes import ProcessRegistry, CancellationToken

# Protocol exports
from .protocol.artifacts import Artifact, ArtifactKind
from .protocol.context import TargetProcess
from .protocol.result import CollectionResult, UploadOutcome, RunSummary
from .protocol.errors import DiagnoseError

__all__ = [
    # Version
    "__version__",
    # Engine
    "Config",
    "DiagnosticEngine",
    "StateMachine",
    "State",
    "Teardown",
    "ProcessRegistry",
    "CancellationToken",
    # Protocol
    "Artifact",
    "ArtifactKind",
    "TargetProcess",
    "CollectionResult",
    "UploadOutcome",
    "RunSummary",
    "DiagnoseError",
]
