"""
Command-line interface for tableload.
"""

from .main import main

__all__ = ["main"]
