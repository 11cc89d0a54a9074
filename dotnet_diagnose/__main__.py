"""
Entry point for running dotnet_diagnose as a module.

Usage:
    python -m dotnet_diagnose --pid 4242
"""

from .cli import run

if __name__ == "__main__":
    run()
