"""
Run context - what discovery learns about the target before collection starts.

TargetProcess is built once (LOCATE_PROCESS + READ_ENVIRONMENT) and is
immutable for the rest of the run.
"""

from dataclasses import dataclass
from typing import Dict, Any
from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Drop the query string (the SAS signature) from a URL for display."""
    if not url:
        return url
    parts = urlsplit(url)
    if not parts.query:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "<redacted>", ""))


@dataclass(frozen=True)
class TargetProcess:
    """The single managed-runtime process being diagnosed."""
    pid: int
    host_identifier: str
    upload_destination: str

    def __repr__(self) -> str:
        return (
            f"TargetProcess(pid={self.pid}, host_identifier={self.host_identifier!r}, "
            f"upload_destination={redact_url(self.upload_destination)!r})"
        )

    @property
    def redacted_destination(self) -> str:
        return redact_url(self.upload_destination)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pid": self.pid,
            "host_identifier": self.host_identifier,
            "upload_destination": self.redacted_destination,
        }
