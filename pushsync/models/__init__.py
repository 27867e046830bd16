"""
Data models for the GitHub push sync service.

Provides:
- Pydantic models for push webhook payloads
- Change kinds and records produced by commit folding
"""

from pushsync.models.changes import ChangeKind, ChangeRecord
from pushsync.models.github import PushCommit, PushPayload, PushRepository

__all__ = [
    # Change models
    "ChangeKind",
    "ChangeRecord",
    # GitHub models
    "PushCommit",
    "PushPayload",
    "PushRepository",
]
