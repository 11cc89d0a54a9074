"""
Spawned-process registry and cancellation token.

Every tool subprocess (collectors and uploader) goes through ProcessRegistry
so teardown can terminate exactly the processes this run started, by handle.
The CancellationToken is the cooperative half: blocking waits in the engine
are waits on its event, so a teardown request cuts them short.
"""

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, IO, List, Optional, Sequence, Tuple, Union

from .logging_utils import get_stage_logger
from .protocol.context import redact_url
from .protocol.errors import RunCancelled


logger = get_stage_logger("cleanup", "processes")

StreamTarget = Union[int, IO, None]

# Bound on the wait after SIGKILL
KILL_WAIT = 5.0

# Poll interval of ProcessRegistry.run
WAIT_SLICE = 0.2


class CancellationToken:
    """Thread-safe cancel flag with an interruptible wait."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None):
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    def wait(self, timeout: Optional[float]) -> bool:
        """Sleep up to timeout seconds; True if cancelled meanwhile."""
        if timeout is not None and timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise RunCancelled(self.reason)


@dataclass
class ToolRun:
    """Result of one blocking tool invocation."""
    name: str
    argv: List[str]
    returncode: Optional[int] = None
    output: str = ""
    timed_out: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out and self.returncode == 0

    def describe_failure(self) -> str:
        if self.error:
            return self.error
        if self.timed_out:
            return f"{self.name} timed out after {self.duration_seconds:.0f}s"
        return f"{self.name} exited with code {self.returncode}"


@dataclass
class _Entry:
    name: str
    process: subprocess.Popen
    detached: bool = False
    started_at: float = field(default_factory=time.monotonic)


def _send(pid: int, sig: int, group: bool) -> bool:
    try:
        if group:
            os.killpg(pid, sig)
        else:
            os.kill(pid, sig)
    except ProcessLookupError:
        return False
    return True


def _exited(proc: subprocess.Popen) -> bool:
    """
    Non-blocking reap through os.waitpid.

    Popen.poll() and Popen.wait() share a non-reentrant lock that an
    interrupted Popen.wait() on the main thread may still hold when a signal
    handler runs, so termination never goes through them.
    """
    if proc.returncode is not None:
        return True
    try:
        pid, status = os.waitpid(proc.pid, os.WNOHANG)
    except ChildProcessError:
        # Already reaped by Popen itself
        return True
    if pid == 0:
        return False
    if os.WIFSIGNALED(status):
        proc.returncode = -os.WTERMSIG(status)
    else:
        proc.returncode = os.WEXITSTATUS(status)
    return True


def _wait_exit(proc: subprocess.Popen, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while not _exited(proc):
        if time.monotonic() >= deadline:
            return False
        time.sleep(0.05)
    return True


def terminate_process(proc: subprocess.Popen, grace: float = 5.0, group: bool = False) -> bool:
    """
    Stop a process: SIGTERM, then SIGKILL after grace seconds.

    Safe to call from a signal handler: the process is signalled by pid and
    reaped with os.waitpid, and every wait is bounded.

    Returns:
        True if the process had to be signalled, False if it had already exited
    """
    if _exited(proc):
        return False
    if not _send(proc.pid, signal.SIGTERM, group):
        return False
    if not _wait_exit(proc, grace):
        _send(proc.pid, signal.SIGKILL, group)
        if not _wait_exit(proc, KILL_WAIT):
            logger.warning(f"pid {proc.pid} still running {KILL_WAIT:.0f}s after SIGKILL")
    return True


class ProcessRegistry:
    """
    Registry of every subprocess spawned during a run.

    Spawning is refused once the token is cancelled, and registration happens
    under the same lock teardown takes, so a process is either terminated by
    teardown or never started. The lock is re-entrant because the signal
    handler runs on the main thread, possibly in the middle of a spawn.
    """

    def __init__(self, token: Optional[CancellationToken] = None):
        self.token = token if token is not None else CancellationToken()
        self._lock = threading.RLock()
        self._entries: Dict[int, _Entry] = {}

    def spawn(
        self,
        argv: Sequence[str],
        name: str,
        stdout: StreamTarget = subprocess.DEVNULL,
        stderr: StreamTarget = None,
        detached: bool = False,
        text: bool = False,
    ) -> subprocess.Popen:
        """
        Start and register a subprocess.

        Args:
            argv: Command line
            name: Short tool name for logs
            stdout/stderr: Popen stream targets
            detached: Start in a new session (own process group)
            text: Decode captured output as text

        Raises:
            RunCancelled: If teardown has already been requested
            OSError: If the executable cannot be started
        """
        with self._lock:
            self.token.raise_if_cancelled()
            proc = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
                start_new_session=detached,
                text=text,
            )
            self._entries[proc.pid] = _Entry(name=name, process=proc, detached=detached)
        logger.debug(f"Spawned {name} (pid {proc.pid}): {' '.join(redact_url(a) if '://' in a else a for a in argv)}")
        return proc

    def release(self, proc: subprocess.Popen):
        """Forget a process that has exited."""
        with self._lock:
            self._entries.pop(proc.pid, None)

    def run(
        self,
        argv: Sequence[str],
        name: str,
        stdout: StreamTarget = subprocess.DEVNULL,
        capture: bool = False,
        timeout: Optional[float] = None,
    ) -> ToolRun:
        """
        Run a tool to completion.

        With capture=True, stdout and stderr are merged and returned as text.
        A missing executable or a timeout is reported in the ToolRun rather
        than raised; only RunCancelled propagates. The wait is a poll loop
        that checks the token, so a cancel stops the tool even when no
        timeout is configured.
        """
        result = ToolRun(name=name, argv=list(argv))
        started = time.monotonic()
        try:
            if capture:
                proc = self.spawn(argv, name, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
            else:
                proc = self.spawn(argv, name, stdout=stdout)
        except OSError as e:
            result.error = f"failed to start {name}: {e}"
            return result

        deadline = None if timeout is None else started + timeout
        try:
            while True:
                try:
                    out, _ = proc.communicate(timeout=WAIT_SLICE)
                    result.output = out or ""
                    break
                except subprocess.TimeoutExpired:
                    pass
                if self.token.cancelled:
                    terminate_process(proc)
                    raise RunCancelled(self.token.reason)
                if deadline is not None and time.monotonic() >= deadline:
                    result.timed_out = True
                    terminate_process(proc)
                    out, _ = proc.communicate()
                    result.output = out or ""
                    break
        finally:
            self.release(proc)

        result.returncode = proc.returncode
        result.duration_seconds = time.monotonic() - started
        return result

    def running(self) -> List[Tuple[str, int]]:
        """(name, pid) of registered processes still alive."""
        with self._lock:
            entries = list(self._entries.values())
        return [(e.name, e.process.pid) for e in entries if e.process.poll() is None]

    def terminate_all(self, grace: float = 2.0) -> int:
        """
        Terminate every registered process. Safe to call repeatedly.

        Returns:
            Number of processes that were still running and got signalled
        """
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()

        stopped = 0
        for entry in entries:
            try:
                if terminate_process(entry.process, grace=grace, group=entry.detached):
                    stopped += 1
                    logger.info(f"Stopped {entry.name} (pid {entry.process.pid})")
            except OSError as e:
                logger.error(f"Error stopping {entry.name} (pid {entry.process.pid}): {e}")
        return stopped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
