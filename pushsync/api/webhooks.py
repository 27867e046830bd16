"""
GitHub webhook endpoint for the push sync service.

This module receives push deliveries, validates their signature, and
replicates the pushed changes onto the configured local folder. The
response body is the plain-text progress log of the sync.
"""

import io
from collections.abc import Iterator
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from pushsync.config.settings import SyncSettings, get_settings
from pushsync.core.gate import PayloadGate
from pushsync.core.request_context import RequestContext
from pushsync.errors import PayloadParseError, RequestHalted, SyncConfigurationError
from pushsync.integrations.raw_content import RawContentClient
from pushsync.utils.logging import get_logger

logger = get_logger(__name__)

# Router for webhook endpoints
router = APIRouter(prefix="/webhook", tags=["Webhooks"])


def get_raw_content_client(
    settings: SyncSettings = Depends(get_settings),
) -> Iterator[RawContentClient]:
    """Download client for one delivery, closed once the response is sent."""
    client = RawContentClient(timeout=settings.download_timeout_seconds)
    try:
        yield client
    finally:
        client.close()


def process_delivery(
    context: RequestContext,
    settings: SyncSettings,
    transfer: Optional[RawContentClient] = None,
) -> str:
    """
    Run one delivery through the gate and the configured handler chain.

    Returns:
        The CRLF-terminated progress output; empty for ignored deliveries.

    Raises:
        RequestHalted: If the signature check fails.
        PayloadParseError: If a push body cannot be decoded.
        SyncConfigurationError: If the service cannot sync with its settings.
    """
    gate = PayloadGate(context, transfer=transfer)

    if settings.has_webhook_secret:
        gate.validate_secret_or_halt(settings.github_webhook_secret)
    elif settings.is_production:
        raise SyncConfigurationError("Webhook secret not configured on server")
    else:
        logger.warning("signature_check_skipped", reason="no webhook secret configured")

    handler = gate.on_push_to_branch(settings.watched_branch)
    if not handler.active:
        return ""

    if settings.folder_scope:
        handler = handler.for_changes_in_folder(settings.folder_scope)
    if settings.has_github_credentials:
        handler = handler.set_github_credentials(settings.github_username, settings.github_password)
    if settings.sync_comment:
        handler = handler.set_comment(settings.sync_comment)

    output = io.StringIO()
    if settings.dry_run:
        handler.list_changes(output.write)
    elif not settings.target_folder:
        raise SyncConfigurationError("TARGET_FOLDER not configured on server")
    else:
        handler.push_changes_to_folder(settings.target_folder, sink=output.write)

    return output.getvalue()


@router.post("/github", response_class=PlainTextResponse)
async def github_webhook(
    request: Request,
    settings: SyncSettings = Depends(get_settings),
    transfer: RawContentClient = Depends(get_raw_content_client),
) -> PlainTextResponse:
    """
    Receive a GitHub push delivery and replicate its changes.

    Downloads run sequentially in a worker thread so the event loop stays
    free while files are fetched.

    Returns:
        200 with the progress log, 403 on a signature mismatch,
        400 for an undecodable push body, 500 when the service is not
        configured to sync.
    """
    context = await RequestContext.from_request(request)

    try:
        output = await run_in_threadpool(process_delivery, context, settings, transfer)
    except RequestHalted as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except PayloadParseError as e:
        logger.warning("payload_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid push payload",
        )
    except SyncConfigurationError as e:
        logger.error("sync_not_configured", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return PlainTextResponse(output)
