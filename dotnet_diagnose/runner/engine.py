"""
DiagnosticEngine - Main orchestrator for the collection workflow.

Sequence:
    LOCATE_PROCESS → READ_ENVIRONMENT → (COLLECT(k) → UPLOAD(k)) for each kind → COMPLETE

Discovery failures are fatal (ABORTED, DiagnoseError propagates). Every
collect/upload pair is failure-isolated: whatever happens inside a stage is
recorded in its StageOutcome and the engine moves to the next kind.
"""

import json
from pathlib import Path
from typing import Optional, Dict, Any, Callable
from datetime import datetime

from .state import StateMachine, State
from ..config import Config
from ..collectors import (
    Collector,
    TraceCollector,
    DumpCollector,
    StackCollector,
    CounterCollector,
)
from ..discovery import ProcessLocator, EnvironmentReader
from ..logging_utils import get_stage_logger
from ..processes import CancellationToken, ProcessRegistry
from ..protocol.artifacts import Artifact, ArtifactKind, TIMESTAMP_FORMAT
from ..protocol.context import TargetProcess
from ..protocol.errors import DiagnoseError, RunCancelled
from ..protocol.result import CollectionResult, RunSummary, StageOutcome, UploadOutcome
from ..upload import BlobUploader


logger = get_stage_logger("main", "runner")
done_logger = get_stage_logger("done", "runner")


class DiagnosticEngine:
    """
    Main orchestrator for .NET diagnostics collection.

    Components are built lazily from the config and can be replaced before
    run() (tests swap in collectors pointing at fake tools).
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[ProcessRegistry] = None,
        proc_root: Path = Path("/proc"),
    ):
        self.config = config if config is not None else Config()
        self.registry = registry if registry is not None else ProcessRegistry()
        self.proc_root = proc_root

        # State machine
        self.state_machine = StateMachine()

        # Components (initialized lazily)
        self._process_locator: Optional[ProcessLocator] = None
        self._environment_reader: Optional[EnvironmentReader] = None
        self._uploader: Optional[BlobUploader] = None
        self._collectors: Optional[Dict[ArtifactKind, Collector]] = None

        # Run data
        self._run_id = datetime.now().strftime(TIMESTAMP_FORMAT)
        self.target: Optional[TargetProcess] = None
        self.summary = RunSummary(run_id=self._run_id)

        # Callbacks
        self._on_state_change: Optional[Callable[[State, State, Dict], None]] = None

    def on_state_change(self, callback: Callable[[State, State, Dict], None]):
        """Register callback for state changes."""
        self._on_state_change = callback

    @property
    def token(self) -> CancellationToken:
        return self.registry.token

    @property
    def output_dir(self) -> Path:
        return Path(self.config.output.dir)

    @property
    def process_locator(self) -> ProcessLocator:
        """Get or initialize process locator."""
        if self._process_locator is None:
            self._process_locator = ProcessLocator(
                self.config.process,
                enumerator_path=self.config.tools.dump,
                registry=self.registry,
                proc_root=self.proc_root,
            )
        return self._process_locator

    @property
    def environment_reader(self) -> EnvironmentReader:
        """Get or initialize environment reader."""
        if self._environment_reader is None:
            self._environment_reader = EnvironmentReader(self.config.environment, proc_root=self.proc_root)
        return self._environment_reader

    @property
    def uploader(self) -> BlobUploader:
        """Get or initialize uploader."""
        if self._uploader is None:
            self._uploader = BlobUploader(
                self.config.tools.azcopy,
                self.registry,
                config=self.config.upload,
                timeout=self.config.timeouts.upload,
            )
        return self._uploader

    @property
    def collectors(self) -> Dict[ArtifactKind, Collector]:
        """Get or initialize one collector per artifact kind."""
        if self._collectors is None:
            tools = self.config.tools
            collection = self.config.collection
            timeouts = self.config.timeouts
            self._collectors = {
                ArtifactKind.NETWORK_TRACE: TraceCollector(
                    tools.trace,
                    self.registry,
                    duration_seconds=collection.trace_duration,
                    grace_seconds=timeouts.trace_grace,
                ),
                ArtifactKind.MEMORY_DUMP: DumpCollector(tools.dump, self.registry, timeout=timeouts.dump),
                ArtifactKind.STACK_REPORT: StackCollector(tools.stack, self.registry, timeout=timeouts.stack),
                ArtifactKind.COUNTER_TRACE: CounterCollector(
                    tools.counters,
                    self.registry,
                    window_seconds=collection.counter_window,
                    ready_timeout=collection.counter_ready_timeout,
                    counters=collection.counter_list,
                    refresh_interval=collection.counter_refresh_interval,
                ),
            }
        return self._collectors

    def run(self) -> RunSummary:
        """
        Run discovery and every configured stage.

        Returns:
            RunSummary with one StageOutcome per executed stage

        Raises:
            DiagnoseError: Process or environment discovery failed (run aborted)
            RunCancelled: Teardown was requested while the run was in progress
        """
        try:
            self.target = self._discover()
            self.summary.target = self.target

            for kind in self.config.collection.pipeline():
                self.token.raise_if_cancelled()
                self._run_stage(kind)

            self._transition(State.COMPLETE)
            self.summary.completed = True
            done_logger.info(
                "All data collection and upload steps are complete, "
                "let transfer to Problem team for analyzing!"
            )

        except RunCancelled as e:
            self._transition(State.CANCELLED, {"reason": e.signal_name})
            self.summary.cancelled = True
            raise

        finally:
            # The signal handler exits via SystemExit, bypassing the branch above
            if self.token.cancelled and not self.state_machine.is_terminal():
                self._transition(State.CANCELLED, {"reason": self.token.reason})
                self.summary.cancelled = True
            self.summary.state_history = self.state_machine.path()
            logger.debug(f"State history:\n{self.state_machine.format_history()}")

        return self.summary

    def _discover(self) -> TargetProcess:
        """LOCATE_PROCESS + READ_ENVIRONMENT; any failure aborts the run."""
        try:
            self._transition(State.LOCATE_PROCESS)
            pid = self.process_locator.locate()
            self.token.raise_if_cancelled()

            self._transition(State.READ_ENVIRONMENT, {"pid": pid})
            return self.environment_reader.read(pid)
        except DiagnoseError as e:
            self._transition(State.ABORTED, {"error": e.message})
            raise

    def _run_stage(self, kind: ArtifactKind) -> StageOutcome:
        """One collect → settle → upload pair."""
        collector = self.collectors[kind]
        log = get_stage_logger(kind.tag, "runner")
        outcome = StageOutcome(kind=kind)
        self.summary.stages.append(outcome)

        self._transition(State.COLLECT, {"kind": kind.value})
        outcome.collection = self._collect(collector)

        log.info(f"{collector.label} stage finished, waiting {self.config.collection.settle_delay:g}s before upload...")
        if self.token.wait(self.config.collection.settle_delay):
            raise RunCancelled(self.token.reason)

        self._transition(State.UPLOAD, {"kind": kind.value})
        log.info(f"Starting {collector.label.lower()} upload...")
        outcome.upload = self._upload(outcome.collection.artifact)

        if outcome.upload.succeeded:
            log.info(f"{collector.label} upload succeeded.")
        else:
            log.error(f"{collector.label} upload failed")
        return outcome

    def _collect(self, collector: Collector) -> CollectionResult:
        target = self.target
        try:
            return collector.collect(target.pid, self.output_dir, target.host_identifier)
        except RunCancelled:
            raise
        except Exception as e:
            # Stage isolation: an unexpected error still yields a (failed) result
            logger.exception(f"{collector.label} collection crashed")
            artifact = Artifact.create(collector.kind, self.output_dir, target.host_identifier)
            return CollectionResult.failed(artifact, f"unexpected error: {e}")

    def _upload(self, artifact: Artifact) -> UploadOutcome:
        try:
            return self.uploader.upload(artifact, self.target.upload_destination)
        except RunCancelled:
            raise
        except Exception as e:
            logger.exception(f"Upload of {artifact.file_path} crashed")
            return UploadOutcome(artifact=artifact, attempt_count=0, succeeded=False, reason=f"unexpected error: {e}")

    def _transition(self, to_state: State, metadata: Optional[Dict[str, Any]] = None):
        """Transition state machine and notify callbacks."""
        from_state = self.state_machine.state
        self.state_machine.transition(to_state, metadata)

        if self._on_state_change:
            self._on_state_change(from_state, to_state, metadata or {})

    def save_summary(self, path: str) -> Path:
        """Write the run summary as JSON."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, 'w') as f:
            json.dump(self.summary.to_dict(), f, indent=2, default=str)

        return target
