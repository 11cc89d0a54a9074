"""
Teardown - Signal-driven cleanup of every spawned tool process.

Installed once for SIGINT/SIGTERM. On a signal it cancels the run token (so
no new tool starts), terminates every registered subprocess, optionally sweeps
leftovers by tool path with ``pkill -f``, and exits with status 0.
"""

import signal
import subprocess
from typing import Dict, List, Optional, Sequence

from ..config import TeardownConfig
from ..logging_utils import get_stage_logger
from ..processes import ProcessRegistry


logger = get_stage_logger("cleanup", "teardown")

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Teardown:
    """Terminates spawned tools and ends the run."""

    def __init__(
        self,
        registry: ProcessRegistry,
        config: Optional[TeardownConfig] = None,
        tool_paths: Sequence[str] = (),
    ):
        self.registry = registry
        self.config = config if config is not None else TeardownConfig()
        self.tool_paths = list(tool_paths)
        self._previous: Dict[int, object] = {}
        self._in_progress = False
        self.completed = False

    def run(self, reason: Optional[str] = None) -> int:
        """
        Stop everything this run started. Idempotent.

        Returns:
            Number of registered processes that were signalled
        """
        self.registry.token.cancel(reason)
        names = ", ".join(sorted({p.rsplit("/", 1)[-1] for p in self.tool_paths})) or "tool"
        logger.info(f"Stopping {names} processes...")

        stopped = self.registry.terminate_all(grace=self.config.grace_period)
        if self.config.sweep_tool_paths:
            self.sweep()

        logger.info("Cleanup completed.")
        self.completed = True
        return stopped

    def sweep(self) -> List[str]:
        """Kill leftover tool processes by path; returns the paths that matched."""
        matched = []
        for path in self.tool_paths:
            try:
                result = subprocess.run(
                    ["pkill", "-f", path],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=5,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug(f"pkill for {path} unavailable: {e}")
                continue
            # pkill: 0 = killed something, 1 = no match
            if result.returncode == 0:
                matched.append(path)
        return matched

    def handle_signal(self, signum, frame):
        """Signal handler: clean up, then exit 0."""
        if self._in_progress:
            return
        self._in_progress = True
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.warning(f"Received {name}")
        self.run(name)
        raise SystemExit(0)

    def install(self, signals: Sequence[int] = DEFAULT_SIGNALS):
        """Register handle_signal, remembering the previous handlers."""
        for sig in signals:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self.handle_signal)

    def uninstall(self):
        """Restore the handlers that were active before install()."""
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()
