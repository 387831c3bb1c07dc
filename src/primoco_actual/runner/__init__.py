"""
CLI runner module.

Provides commands:
- import: Parse a Primoco export and push it into Actual
- sync: Sync the budget with the server
- init: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
