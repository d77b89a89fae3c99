"""
Configuration loading for tableload.
"""

from .config_loader import LoadConfig

__all__ = ["LoadConfig"]
