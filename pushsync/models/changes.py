"""Change kinds and records produced by folding a push's commits."""

from dataclasses import dataclass
from enum import Enum


class ChangeKind(str, Enum):
    """State change of a single path within a push."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ChangeRecord:
    """A path and how it changed, relative to the handler's folder scope."""

    path: str
    kind: ChangeKind

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("ChangeRecord path must not be empty")

    @property
    def is_removal(self) -> bool:
        return self.kind is ChangeKind.REMOVED
