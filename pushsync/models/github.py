"""
Pydantic models for GitHub push webhook payloads.

Only the fields the sync pipeline consumes are modelled; everything else
GitHub sends (pusher, head_commit, compare URL, ...) is ignored.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, Field

# Repository-relative path; GitHub never sends an empty one
ChangedPath = Annotated[str, Field(min_length=1)]


class PushRepository(BaseModel):
    """The repository a push was made to."""

    full_name: str = Field(..., min_length=1, max_length=512, description="owner/repo")
    name: Optional[str] = None
    private: bool = False


class PushCommit(BaseModel):
    """
    One commit of a push event.

    GitHub lists repository-relative paths per change kind; any of the
    three lists may be omitted by hand-crafted payloads.
    """

    id: Optional[str] = None
    message: Optional[str] = None
    added: list[ChangedPath] = Field(default_factory=list)
    modified: list[ChangedPath] = Field(default_factory=list)
    removed: list[ChangedPath] = Field(default_factory=list)


class PushPayload(BaseModel):
    """
    Parsed GitHub push webhook payload.

    ``commits`` is ``None`` when the key is missing or null, which is what
    GitHub sends for branch deletions.
    """

    ref: str = Field(..., description="Full ref that was pushed, e.g. refs/heads/main")
    repository: PushRepository
    commits: Optional[list[PushCommit]] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ref": "refs/heads/main",
                    "repository": {"full_name": "acme/site"},
                    "commits": [
                        {
                            "added": ["docs/readme.md"],
                            "modified": [],
                            "removed": ["docs/old.md"],
                        }
                    ],
                }
            ]
        }
    }

    def targets_branch(self, branch_name: str) -> bool:
        """Check whether this push was made to ``branch_name``."""
        return self.ref == f"refs/heads/{branch_name}"
