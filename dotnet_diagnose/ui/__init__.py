"""
UI module - Rich console interface for a collection run.
"""

from .console import ConsoleUI

__all__ = ["ConsoleUI"]
