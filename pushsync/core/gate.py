"""
Entry point that turns an inbound webhook delivery into a push handler.

Usage:
    context = RequestContext(raw_body, headers)
    gate = PayloadGate(context)
    gate.validate_secret_or_halt(secret)
    gate.on_push_to_branch("main").for_changes_in_folder("docs").list_changes(sink)
"""

from typing import Optional

from pydantic import ValidationError

from pushsync.core.handler import PushHandler
from pushsync.core.request_context import SIGNATURE_HEADER, RequestContext
from pushsync.errors import SIGNATURE_MISMATCH_MESSAGE, PayloadParseError
from pushsync.integrations.raw_content import RawContentClient
from pushsync.models.github import PushPayload
from pushsync.utils.logging import get_logger
from pushsync.utils.webhook import validate_github_signature

logger = get_logger(__name__)


class PayloadGate:
    """
    Routes one delivery to an active or inactive PushHandler.

    Args:
        context: The delivery's request context.
        transfer: Download client handed to the handlers this gate creates.
    """

    def __init__(self, context: RequestContext, transfer: Optional[RawContentClient] = None):
        self.context = context
        self._transfer = transfer
        self._push: Optional[PushPayload] = None

    @property
    def push_payload(self) -> PushPayload:
        """
        The body validated as a push payload (decoded once per delivery).

        Raises:
            PayloadParseError: If the body is not JSON or not shaped like a push.
        """
        if self._push is None:
            try:
                self._push = PushPayload.model_validate(self.context.payload)
            except ValidationError as e:
                raise PayloadParseError(
                    f"Webhook body is not a push payload: {e.error_count()} validation error(s)",
                    raw_length=len(self.context.read_raw_body()),
                ) from e
        return self._push

    def on_push_to_branch(self, branch_name: str) -> PushHandler:
        """
        React to pushes to ``branch_name``.

        Returns an active handler seeded with the push's commits when the
        delivery is a push to that branch, and the inactive dummy otherwise.
        """
        event_name = self.context.event_name
        if event_name != "push":
            logger.info("delivery_ignored", reason="event", event=event_name or None)
            return PushHandler.create_dummy()

        push = self.push_payload
        if not push.targets_branch(branch_name):
            logger.info("delivery_ignored", reason="branch", ref=push.ref, watched_branch=branch_name)
            return PushHandler.create_dummy()

        handler = PushHandler(
            branch_name,
            push.repository.full_name,
            push.commits,
            transfer=self._transfer,
        )
        logger.info(
            "push_handler_created",
            repository=push.repository.full_name,
            branch=branch_name,
            commit_count=len(push.commits or []),
            change_count=len(handler.changes()),
            active=handler.active,
        )
        return handler

    def is_request_secure(self, secret: str) -> bool:
        """
        Check X-Hub-Signature against ``secret`` and the raw body.

        A delivery without a signature header is never secure.
        """
        return validate_github_signature(
            self.context.read_raw_body(),
            self.context.read_header(SIGNATURE_HEADER),
            secret,
        )

    def validate_secret_or_halt(self, secret: str) -> "PayloadGate":
        """
        Halt the delivery with 403 unless the signature matches ``secret``.

        Call this before any terminal handler operation.
        """
        if self.is_request_secure(secret):
            return self

        logger.warning(
            "signature_rejected",
            header_present=self.context.read_header(SIGNATURE_HEADER) is not None,
        )
        self.context.respond_and_halt(403, SIGNATURE_MISMATCH_MESSAGE)
        return self
