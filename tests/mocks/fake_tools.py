"""
Fake diagnostic tools.

Each tool is a /bin/sh script accepting the same arguments as the real one
and producing the same side effect (an artifact file, stdout, or azcopy's
job summary). Behaviour is picked per test via the ``mode`` arguments.
"""

import textwrap
import time
from pathlib import Path
from typing import Dict, Iterable, Optional


DEFAULT_PID = 4242
RUNTIME_PATH = "/usr/share/dotnet/dotnet"
HOST = "web01"
SAS_URL = "https://acct.blob.core.windows.net/diag?sv=2022-11-02&sig=SECRET"

# Pulls the value following a flag out of "$@" into $out
_FIND_OUTPUT = """
out=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "{flag}" ]; then out="$arg"; fi
  prev="$arg"
done
"""


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip("\n"))
    path.chmod(0o755)
    return path


def write_environ(proc_root: Path, pid: int, env: Dict[str, str]) -> Path:
    """Create ``<proc_root>/<pid>/environ`` as a NUL-separated block."""
    target = Path(proc_root) / str(pid) / "environ"
    target.parent.mkdir(parents=True, exist_ok=True)
    block = b"".join(f"{k}={v}".encode() + b"\0" for k, v in env.items())
    target.write_bytes(block)
    return target


class FakeTools:
    """
    A tools directory laid out like /tools with scriptable fakes.

    Every invocation is appended to ``calls.log`` as ``<tool> <args...>`` so
    tests can count attempts and assert on arguments.
    """

    def __init__(self, directory: Path):
        self.dir = Path(directory)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.calls_log = self.dir / "calls.log"

        self.dotnet_dump()
        self.dotnet_trace()
        self.dotnet_stack()
        self.dotnet_counters()
        self.azcopy()

    def path(self, name: str) -> str:
        return str(self.dir / name)

    def calls(self, tool: Optional[str] = None):
        """Logged invocations, optionally only those of one tool."""
        if not self.calls_log.exists():
            return []
        lines = self.calls_log.read_text().splitlines()
        if tool:
            lines = [line for line in lines if line.split(" ", 1)[0] == tool]
        return lines

    def _record(self, name: str) -> str:
        return f'echo "{name} $*" >> "{self.calls_log}"\n'

    def _hang(self, name: str) -> str:
        """Record the script's pid, then block in place of it."""
        return f'echo $$ > "{self.dir / name}.pid"\nexec sleep 60\n'

    def pid(self, name: str, timeout: float = 5.0) -> int:
        """Pid written by a tool running in hang mode."""
        path = self.dir / f"{name}.pid"
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if path.exists() and path.read_text().strip():
                return int(path.read_text())
            time.sleep(0.05)
        raise AssertionError(f"{name} never started")

    def dotnet_dump(
        self,
        ps_rows: Optional[Iterable[str]] = None,
        ps_exit: int = 0,
        collect_exit: int = 0,
        hang: bool = False,
    ):
        if ps_rows is None:
            ps_rows = [f"  {DEFAULT_PID} dotnet  {RUNTIME_PATH}  {RUNTIME_PATH} /app/Web.dll"]
        table = "".join(f"  echo '{row}'\n" for row in ps_rows)
        body = (
            self._record("dotnet-dump")
            + 'if [ "$1" = "ps" ]; then\n'
            + table
            + f"  exit {ps_exit}\n"
            + "fi\n"
            + _FIND_OUTPUT.format(flag="-o")
        )
        if hang:
            body += self._hang("dotnet-dump")
        elif collect_exit:
            body += f"exit {collect_exit}\n"
        else:
            body += 'printf "MDMP" > "$out"\n'
        return write_script(self.dir / "dotnet-dump", body)

    def dotnet_trace(self, mode: str = "ok", exit_code: int = 1):
        """mode: ok | fail | hang"""
        body = self._record("dotnet-trace") + _FIND_OUTPUT.format(flag="-o")
        if mode == "ok":
            body += 'printf "Nettrace" > "$out"\n'
        elif mode == "fail":
            body += f'echo "Unable to connect to the target process" >&2\nexit {exit_code}\n'
        elif mode == "hang":
            body += self._hang("dotnet-trace")
        return write_script(self.dir / "dotnet-trace", body)

    def dotnet_stack(self, mode: str = "ok"):
        """mode: ok | fail | hang"""
        body = self._record("dotnet-stack")
        if mode == "ok":
            body += (
                'echo "Thread (0x1a2b):"\n'
                'echo "  [Native Frames]"\n'
                'echo "  System.Threading.Monitor.Wait(class System.Object,int32)"\n'
            )
        elif mode == "hang":
            body += self._hang("dotnet-stack")
        else:
            body += 'echo "[ERROR] process not found" >&2\nexit 1\n'
        return write_script(self.dir / "dotnet-stack", body)

    def dotnet_counters(self, mode: str = "ok", exit_code: int = 3):
        """mode: ok | empty | never | exit"""
        body = self._record("dotnet-counters") + _FIND_OUTPUT.format(flag="--output")
        if mode == "ok":
            body += (
                "trap 'exit 0' TERM\n"
                'echo "Timestamp,Provider,Counter Name,Counter Type,Mean/Increment" > "$out"\n'
                "while true; do\n"
                '  echo "10/18/2026 10:00:00,System.Runtime,CPU Usage (%),Metric,1.5" >> "$out"\n'
                "  sleep 0.2\n"
                "done\n"
            )
        elif mode == "empty":
            body += "trap 'exit 0' TERM\n" ': > "$out"\n' "while true; do sleep 0.2; done\n"
        elif mode == "never":
            body += "while true; do sleep 0.2; done\n"
        elif mode == "exit":
            body += f"exit {exit_code}\n"
        return write_script(self.dir / "dotnet-counters", body)

    def azcopy(self, mode: str = "ok"):
        """mode: ok | fail | marker-nonzero | exit-zero-no-marker"""
        body = self._record("azcopy") + 'echo "INFO: Scanning..."\n'
        if mode == "ok":
            body += 'echo "Final Job Status: Completed"\n'
        elif mode == "fail":
            body += 'echo "Final Job Status: Failed"\nexit 1\n'
        elif mode == "marker-nonzero":
            body += 'echo "Final Job Status: Completed"\nexit 2\n'
        elif mode == "exit-zero-no-marker":
            body += 'echo "Final Job Status: Failed"\n'
        return write_script(self.dir / "azcopy", body)
