"""
Configuration package
"""

from .config import Settings, get_config, reset_config

__all__ = ["Settings", "get_config", "reset_config"]
