"""
Moraine CLI.
"""

from moraine.cli.main import cli

__all__ = ["cli"]
