"""
Mock components for testing dotnet_diagnose.

The diagnostic tools are replaced by small /bin/sh scripts written into a
temporary directory, so the real subprocess, signal and file paths are
exercised without the .NET SDK or azcopy installed.
"""

from .fake_tools import (
    DEFAULT_PID,
    RUNTIME_PATH,
    SAS_URL,
    HOST,
    FakeTools,
    write_script,
    write_environ,
)

__all__ = [
    'DEFAULT_PID',
    'RUNTIME_PATH',
    'SAS_URL',
    'HOST',
    'FakeTools',
    'write_script',
    'write_environ',
]
