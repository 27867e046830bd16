"""
Configuration module for the GitHub push sync service.

This package provides environment-based configuration management using Pydantic Settings.
"""

from .settings import SyncSettings, get_settings

__all__ = ["SyncSettings", "get_settings"]
