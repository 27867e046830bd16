"""
Integrations module for external service clients.

Provides the download client for GitHub's raw content endpoint.
"""

from pushsync.integrations.raw_content import RAW_CONTENT_BASE_URL, RawContentClient

__all__ = [
    "RAW_CONTENT_BASE_URL",
    "RawContentClient",
]
