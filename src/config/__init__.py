"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
The storage backend (local or s3) is chosen here, once per process.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
