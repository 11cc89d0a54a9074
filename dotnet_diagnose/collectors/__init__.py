"""
Collectors module - One collector per diagnostic artifact kind.

Components:
- TraceCollector: dotnet-trace (fixed duration)
- DumpCollector: dotnet-dump
- StackCollector: dotnet-stack (stdout into the artifact)
- CounterCollector: dotnet-counters (background session, fixed window)
"""

from .base import Collector
from .trace import TraceCollector
from .dump import DumpCollector
from .stack import StackCollector
from .counters import CounterCollector, CounterSession

__all__ = [
    "Collector",
    "TraceCollector",
    "DumpCollector",
    "StackCollector",
    "CounterCollector",
    "CounterSession",
]
