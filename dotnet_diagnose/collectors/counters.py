"""
CounterCollector - Performance counters via ``dotnet-counters collect``.

Unlike the other collectors the tool runs in the background and writes CSV
incrementally until it is told to stop:

1. start the tool detached (CounterSession)
2. wait for the session's ready signal (output file exists), bounded
3. keep the collection window open
4. stop the tool and check the CSV is non-empty
"""

import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional

from ..processes import CancellationToken, ProcessRegistry, terminate_process
from ..protocol.artifacts import Artifact, ArtifactKind
from ..protocol.errors import RunCancelled
from ..protocol.result import CollectionResult
from .base import Collector


class CounterSession:
    """
    Handle on a running background counters process.

    A watcher thread raises ``ready`` once the output file exists and
    ``settled`` once the file exists or the process has exited, whichever
    comes first.
    """

    def __init__(
        self,
        argv: List[str],
        output_path: Path,
        registry: ProcessRegistry,
        poll_interval: float = 0.5,
    ):
        self.argv = argv
        self.output_path = Path(output_path)
        self.registry = registry
        self.poll_interval = poll_interval

        self._process: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self.ready = threading.Event()
        self.settled = threading.Event()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.poll() if self._process else None

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self):
        """Start the counters tool in its own session."""
        self._process = self.registry.spawn(
            self.argv,
            name="dotnet-counters",
            stdout=subprocess.DEVNULL,
            detached=True,
        )
        self._running = True
        self._thread = threading.Thread(target=self._watch_loop, daemon=True)
        self._thread.start()

    def _watch_loop(self):
        """Poll for the output file until it appears or the tool exits."""
        while self._running:
            if self.output_path.exists():
                self.ready.set()
                self.settled.set()
                return
            if self._process is not None and self._process.poll() is not None:
                # Exited before (or while) creating the file
                if self.output_path.exists():
                    self.ready.set()
                self.settled.set()
                return
            time.sleep(self.poll_interval)

    def wait_ready(self, timeout: float, token: Optional[CancellationToken] = None) -> bool:
        """
        Wait until the output file exists.

        Returns:
            True if ready, False on timeout, early tool exit or cancellation
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if self.settled.wait(min(remaining, 0.25)):
                break
            if token is not None and token.cancelled:
                break
        return self.ready.is_set()

    def stop(self, grace: float = 5.0) -> Optional[int]:
        """Stop the tool (SIGTERM, then SIGKILL) and return its exit code."""
        self._running = False

        if self._process:
            terminate_process(self._process, grace=grace, group=True)
            self.registry.release(self._process)

        if self._thread:
            self._thread.join(timeout=5)

        return self.returncode


class CounterCollector(Collector):
    kind = ArtifactKind.COUNTER_TRACE
    label = "Counter trace"
    tool_name = "dotnet-counters"

    def __init__(
        self,
        tool_path: str,
        registry: ProcessRegistry,
        window_seconds: float = 300,
        ready_timeout: float = 60.0,
        counters: str = "System.Runtime,System.Threading.Tasks.TplEventSource",
        refresh_interval: int = 1,
        stop_grace: float = 5.0,
        poll_interval: float = 0.5,
    ):
        super().__init__(tool_path, registry)
        self.window_seconds = window_seconds
        self.ready_timeout = ready_timeout
        self.counters = counters
        self.refresh_interval = refresh_interval
        self.stop_grace = stop_grace
        self.poll_interval = poll_interval

    @property
    def token(self) -> CancellationToken:
        return self.registry.token

    def build_command(self, pid: int, artifact: Artifact) -> List[str]:
        return [
            self.tool_path, "collect",
            "--process-id", str(pid),
            "--counters", self.counters,
            "--refresh-interval", str(self.refresh_interval),
            "--format", "csv",
            "--output", str(artifact.file_path),
        ]

    def open_session(self, pid: int, artifact: Artifact) -> CounterSession:
        return CounterSession(
            self.build_command(pid, artifact),
            artifact.file_path,
            self.registry,
            poll_interval=self.poll_interval,
        )

    def run_tool(self, pid: int, artifact: Artifact) -> CollectionResult:
        session = self.open_session(pid, artifact)
        try:
            session.start()
        except OSError as e:
            return CollectionResult.failed(artifact, f"failed to start {self.tool_name}: {e}")

        try:
            if not session.wait_ready(self.ready_timeout, self.token):
                self.token.raise_if_cancelled()
                if not session.is_running():
                    reason = f"{self.tool_name} exited with code {session.returncode} before creating its output"
                else:
                    reason = f"output file did not appear within {self.ready_timeout:g}s"
                return CollectionResult.failed(artifact, reason, returncode=session.returncode)

            self.log.info(f"Collecting counters for {self.window_seconds:g}s (pid {session.pid})...")
            if self.token.wait(self.window_seconds):
                raise RunCancelled(self.token.reason)
        finally:
            session.stop(grace=self.stop_grace)

        if artifact.size_bytes() == 0:
            return CollectionResult.failed(artifact, "output file is empty", returncode=session.returncode)
        return CollectionResult.ok(artifact, returncode=session.returncode)
