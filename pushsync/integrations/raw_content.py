"""
Download client for GitHub's raw content endpoint.

Files are fetched from ``https://raw.githubusercontent.com/<repo>/<branch>/<path>``
and streamed straight to disk. Private repositories need basic-auth
credentials in ``"username:password"`` form.

Usage:
    from pushsync.integrations.raw_content import RawContentClient

    with RawContentClient(timeout=10.0) as client:
        url = client.build_url("acme/site", "main", "docs/readme.md")
        client.download_to_file(url, "/srv/out/readme.md")
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import httpx

from pushsync.errors import TransferError

logger = logging.getLogger(__name__)

RAW_CONTENT_BASE_URL = "https://raw.githubusercontent.com"


def _basic_auth(credentials: str) -> Optional[httpx.BasicAuth]:
    """Turn ``"username:password"`` into an httpx auth object."""
    if not credentials:
        return None
    username, _, password = credentials.partition(":")
    return httpx.BasicAuth(username, password)


class RawContentClient:
    """
    Streams files from the raw content endpoint to the local filesystem.

    Args:
        timeout: Upper bound in seconds for one whole download, connect to
            last byte. Expiry raises TransferError.
        client: Pre-built httpx.Client (tests pass one with a MockTransport).
        base_url: Override for the raw content host.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        base_url: str = RAW_CONTENT_BASE_URL,
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self.downloads = 0

    def build_url(self, repository_full_name: str, branch_name: str, path: str) -> str:
        """Build the raw content URL of ``path`` on ``branch_name``."""
        return f"{self._base_url}/{repository_full_name}/{branch_name}/{quote(path)}"

    def download_to_file(
        self,
        url: str,
        dest_path: Union[str, Path],
        credentials: str = "",
    ) -> int:
        """
        Stream ``url`` into ``dest_path`` and return the number of bytes written.

        The destination is opened (and truncated) before the request is sent,
        so a failed transfer leaves an empty or partially written file.
        The timeout bounds the whole transfer, not only each read.

        Raises:
            TransferError: On a non-2xx status, timeout or transport failure.
        """
        written = 0
        deadline = time.monotonic() + self._timeout
        with open(dest_path, "wb") as output:
            try:
                with self._client.stream(
                    "GET", url, auth=_basic_auth(credentials), timeout=self._timeout
                ) as response:
                    if response.status_code >= 400:
                        raise TransferError(
                            url,
                            f"HTTP {response.status_code}",
                            status_code=response.status_code,
                        )
                    for chunk in response.iter_bytes():
                        if time.monotonic() > deadline:
                            raise TransferError(url, f"timed out after {self._timeout}s")
                        output.write(chunk)
                        written += len(chunk)
            except httpx.TimeoutException as e:
                raise TransferError(url, f"timed out after {self._timeout}s") from e
            except httpx.HTTPError as e:
                raise TransferError(url, str(e) or type(e).__name__) from e

        self.downloads += 1
        logger.debug("Downloaded %s (%d bytes)", url, written)
        return written

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RawContentClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
