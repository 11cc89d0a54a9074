"""
Discovery module - Finds the target process and reads its environment.

Components:
- ProcessLocator: Finds the .NET process to diagnose
- EnvironmentReader: Reads host identity and upload URL from its environment
"""

from .process import ProcessLocator, ProcessEntry, parse_process_table
from .environment import EnvironmentReader, parse_environ

__all__ = [
    "ProcessLocator",
    "ProcessEntry",
    "parse_process_table",
    "EnvironmentReader",
    "parse_environ",
]
