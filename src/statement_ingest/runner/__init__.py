"""
CLI runner module.

Provides commands:
- parse: Extract expenses from a statement file
- duplicates: Flag duplicate transactions in a JSON export
- prompt: Show the composed extraction request(s)
- init-config / check-config: Configuration helpers
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
