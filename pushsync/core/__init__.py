"""
Change extraction and replication pipeline.

RequestContext wraps one delivery, PayloadGate turns it into a PushHandler,
and the handler lists or applies the push's changes.
"""

from pushsync.core.comments import apply_comment
from pushsync.core.gate import PayloadGate
from pushsync.core.handler import PushHandler, SyncReport, fold_commits
from pushsync.core.request_context import RequestContext

__all__ = [
    "PayloadGate",
    "PushHandler",
    "RequestContext",
    "SyncReport",
    "apply_comment",
    "fold_commits",
]
