"""
Push handler: folds a push's commits into a change set and replicates it.

A handler is created by ``PayloadGate.on_push_to_branch`` and configured
through a fluent chain. Every configuration call returns the handler to
use from then on; callers must keep the returned value::

    (
        gate.on_push_to_branch("main")
        .for_changes_in_folder("public_html")
        .set_github_credentials("deploy-bot", token)
        .set_comment("Deployed from GitHub - do not edit")
        .push_changes_to_folder("/var/www/site", sink=output.write)
    )

Inactive handlers (wrong event, wrong branch, or superseded by a rescope)
accept the same calls and do nothing.
"""

import os
import sys
from collections.abc import Iterable, Iterator, Mapping
from copy import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from pushsync.core.comments import apply_comment
from pushsync.errors import TransferError
from pushsync.integrations.raw_content import RawContentClient
from pushsync.models.changes import ChangeKind, ChangeRecord
from pushsync.models.github import PushCommit
from pushsync.utils.logging import get_logger

if TYPE_CHECKING:
    from pushsync.core.gate import PayloadGate

logger = get_logger(__name__)

LineSink = Callable[[str], Any]


def _stdout_sink(line: str) -> None:
    sys.stdout.write(line)


def fold_commits(commits: Iterable[Union[PushCommit, Mapping[str, Any]]]) -> dict[str, ChangeKind]:
    """
    Fold commits, in push order, into one kind per path.

    Within a commit the added, modified and removed lists are applied in
    that order. A later entry for a path overwrites the earlier one, so a
    file added and later removed in the same push ends up removed.
    """
    changes: dict[str, ChangeKind] = {}
    for commit in commits:
        if isinstance(commit, Mapping):
            commit = PushCommit.model_validate(commit)
        for path in commit.added:
            changes[path] = ChangeKind.ADDED
        for path in commit.modified:
            changes[path] = ChangeKind.MODIFIED
        for path in commit.removed:
            changes[path] = ChangeKind.REMOVED
    return changes


def _is_within(root: str, path: str) -> bool:
    """Whether ``path`` stays below ``root`` once ``..`` segments are collapsed."""
    path = os.path.abspath(path)
    return path != root and os.path.commonpath([root, path]) == root


@dataclass
class SyncReport:
    """Outcome of one push_changes_to_folder call, as local paths."""

    downloaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class PushHandler:
    """
    Owns the change set of one push and applies it to a local folder.

    Args:
        branch_name: Branch the push was made to (``None`` for the dummy).
        repository_full_name: Repository in "owner/repo" format.
        commits: Commits of the push; without them the handler is inactive.
        transfer: Download client; a RawContentClient is created per sync
            when omitted.
    """

    def __init__(
        self,
        branch_name: Optional[str],
        repository_full_name: str,
        commits: Optional[Iterable[Union[PushCommit, Mapping[str, Any]]]] = None,
        *,
        transfer: Optional[RawContentClient] = None,
    ):
        self.branch_name = branch_name
        self.repository_full_name = repository_full_name
        self.active = commits is not None
        self.folder_scope = ""
        self.credentials = ""
        self.comment = ""
        self.last_report: Optional[SyncReport] = None
        self._transfer = transfer
        self._changes: dict[str, ChangeKind] = fold_commits(commits) if commits is not None else {}

    @classmethod
    def create_dummy(cls) -> "PushHandler":
        """Build the inactive handler returned for deliveries that don't match."""
        return cls(None, "")

    def __repr__(self) -> str:
        state = "active" if self.active else "inactive"
        return (
            f"<PushHandler {self.repository_full_name or '-'}@{self.branch_name or '-'} "
            f"scope={self.folder_scope!r} {state} changes={len(self._changes)}>"
        )

    def _derive(self, **overrides: Any) -> "PushHandler":
        """Shallow copy sharing the change set, with ``overrides`` applied."""
        derived = copy(self)
        derived.last_report = None
        for name, value in overrides.items():
            setattr(derived, name, value)
        return derived

    # ========================
    # Configuration
    # ========================

    def for_changes_in_folder(self, folder_name: str) -> "PushHandler":
        """
        Restrict the handler to changes below ``folder_name``.

        Scopes are never combined. Asking an already scoped handler for
        another folder deactivates it and returns a fresh handler scoped to
        the new folder only.
        """
        folder_name = folder_name.strip("/")
        if not self.active:
            return self._derive(folder_scope=folder_name)

        if self.folder_scope:
            fresh = self._derive(folder_scope=folder_name)
            self.active = False
            logger.info(
                "folder_scope_replaced",
                previous_scope=self.folder_scope,
                folder_scope=folder_name,
            )
            return fresh

        return self._derive(folder_scope=folder_name)

    def set_github_credentials(self, username: str, password: str) -> "PushHandler":
        """Use basic auth for every download made by the returned handler."""
        return self._derive(credentials=f"{username}:{password}")

    def set_comment(self, comment: str) -> "PushHandler":
        """Inject ``comment`` into downloaded .php, .css and .js files."""
        return self._derive(comment=comment)

    def validate_secret_or_halt(self, gate: "PayloadGate", secret: str) -> "PushHandler":
        """Chainable form of ``PayloadGate.validate_secret_or_halt``."""
        gate.validate_secret_or_halt(secret)
        return self

    # ========================
    # Enumeration
    # ========================

    def iter_changes(self) -> Iterator[ChangeRecord]:
        """
        Yield the visible changes with folder-relative paths.

        The scope filter is recomputed from the full change set each time.
        """
        if not self.active:
            return

        if not self.folder_scope:
            for path, kind in self._changes.items():
                yield ChangeRecord(path, kind)
            return

        prefix = self.folder_scope + "/"
        for path, kind in self._changes.items():
            if path.startswith(prefix) and len(path) > len(prefix):
                yield ChangeRecord(path[len(prefix):], kind)

    def changes(self) -> dict[str, ChangeKind]:
        """Visible changes as a path -> kind mapping."""
        return {record.path: record.kind for record in self.iter_changes()}

    def invoke_for_each_change(self, callback: Callable[[str, ChangeKind], Any]) -> "PushHandler":
        """Call ``callback(path, kind)`` once per visible change."""
        for record in self.iter_changes():
            callback(record.path, record.kind)
        return self

    def invoke_with_array_of_changes(
        self, callback: Callable[[dict[str, ChangeKind]], Any]
    ) -> "PushHandler":
        """Call ``callback`` once with the whole visible mapping."""
        if self.active:
            callback(self.changes())
        return self

    def list_changes(self, sink: Optional[LineSink] = None) -> "PushHandler":
        """Write ``"<path>: <kind>"`` lines for every visible change."""
        sink = sink or _stdout_sink
        for record in self.iter_changes():
            sink(f"{record.path}: {record.kind.value}\r\n")
        return self

    # ========================
    # Sync
    # ========================

    def push_changes_to_folder(
        self,
        target_folder: Union[str, Path],
        sink: Optional[LineSink] = None,
    ) -> "PushHandler":
        """
        Replicate the visible changes into ``target_folder``.

        Removed files are deleted; added and modified files are downloaded
        from the raw content endpoint, one after the other, in change order.
        A change that fails is logged and recorded in ``last_report``; the
        remaining changes are still applied.
        Changes whose path would land outside ``target_folder`` (``..``
        segments) are skipped and recorded as failed.
        """
        if not self.active:
            return self

        sink = sink or _stdout_sink
        target_folder = str(target_folder).rstrip("/")
        report = SyncReport()
        transfer = self._transfer or RawContentClient()

        log = logger.bind(
            repository=self.repository_full_name,
            branch=self.branch_name,
            folder_scope=self.folder_scope or None,
        )
        log.info("sync_started", target_folder=target_folder, change_count=len(self.changes()))

        root = os.path.abspath(target_folder)
        try:
            for record in self.iter_changes():
                target_path = f"{target_folder}/{record.path}"
                if not _is_within(root, target_path):
                    sink(f"Skipping {target_path}: outside {target_folder}\r\n")
                    log.warning("change_rejected", path=record.path, reason="outside target folder")
                    report.failed.append(record.path)
                    continue
                if record.is_removal:
                    self._delete_change(record, target_path, sink, report, log)
                else:
                    self._download_change(record, target_path, transfer, sink, report, log)
        finally:
            if self._transfer is None:
                transfer.close()

        self.last_report = report
        log.info(
            "sync_completed",
            downloaded=len(report.downloaded),
            deleted=len(report.deleted),
            missing=len(report.missing),
            failed=len(report.failed),
        )
        return self

    def remote_path(self, local_path: str) -> str:
        """Repository path of a folder-relative ``local_path``."""
        if self.folder_scope:
            return f"{self.folder_scope}/{local_path}"
        return local_path

    def _delete_change(self, record, target_path, sink, report, log) -> None:
        sink(f"Deleting {target_path}\r\n")
        try:
            Path(target_path).unlink()
        except FileNotFoundError:
            log.info("delete_target_missing", path=record.path, target=target_path)
            report.missing.append(record.path)
        except OSError as e:
            log.warning("change_failed", path=record.path, kind=record.kind.value, error=str(e))
            report.failed.append(record.path)
        else:
            log.debug("change_deleted", path=record.path)
            report.deleted.append(record.path)

    def _download_change(self, record, target_path, transfer, sink, report, log) -> None:
        url = transfer.build_url(
            self.repository_full_name, self.branch_name, self.remote_path(record.path)
        )
        sink(f"Downloading {url} to {target_path}\r\n")

        directory = Path(target_path).parent
        try:
            if not directory.exists():
                sink(f"    But first: creating directory {directory}!\r\n")
                directory.mkdir(parents=True, exist_ok=True)

            size = transfer.download_to_file(url, target_path, credentials=self.credentials)

            if self.comment:
                for label in apply_comment(target_path, self.comment):
                    sink(f"Added {label} comment\r\n")
        except (TransferError, OSError) as e:
            log.warning(
                "change_failed",
                path=record.path,
                kind=record.kind.value,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            sink(f"    Failed: {e}\r\n")
            report.failed.append(record.path)
        else:
            log.debug("change_downloaded", path=record.path, bytes=size)
            report.downloaded.append(record.path)
