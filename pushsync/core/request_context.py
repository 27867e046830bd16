"""
Per-delivery request context.

One RequestContext is built for each inbound webhook delivery and handed to
the gate. It keeps the exact bytes GitHub sent, since the signature is
computed over them, and decodes the JSON body at most once.
"""

import json
from collections.abc import Mapping
from functools import cached_property
from typing import Any, Optional

from starlette.datastructures import Headers
from starlette.requests import Request

from pushsync.errors import PayloadParseError, RequestHalted

EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_HEADER = "X-Hub-Signature"


class RequestContext:
    """Raw body, headers and the lazily decoded payload of one delivery."""

    def __init__(self, raw_body: bytes, headers: Optional[Mapping[str, str]] = None):
        self._raw_body = raw_body
        # Headers gives case-insensitive lookup
        self._headers = Headers(headers=dict(headers or {}))

    @classmethod
    async def from_request(cls, request: Request) -> "RequestContext":
        """Build a context from a Starlette/FastAPI request."""
        return cls(await request.body(), request.headers)

    def read_raw_body(self) -> bytes:
        return self._raw_body

    def read_header(self, name: str) -> Optional[str]:
        return self._headers.get(name)

    @cached_property
    def event_name(self) -> str:
        """Lower-cased X-GitHub-Event header, empty when absent."""
        return (self.read_header(EVENT_HEADER) or "").lower()

    @cached_property
    def payload(self) -> Any:
        """
        The decoded JSON body.

        Raises:
            PayloadParseError: If the body is not valid JSON.
        """
        try:
            return json.loads(self._raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadParseError(
                f"Webhook body is not valid JSON: {e}", raw_length=len(self._raw_body)
            ) from e

    def respond_and_halt(self, status_code: int, message: str) -> None:
        """Stop processing this delivery and answer with ``status_code``."""
        raise RequestHalted(status_code, message)
