"""
Script download over HTTP(S).
"""

import logging
from typing import Optional

import httpx

from ...errors import DownloadError

logger = logging.getLogger(__name__)


class ScriptDownloader:
    """
    Fetches SQL scripts from http(s) URLs.

    The first attempt ignores the environment. If it fails, exactly one retry
    is made with the ambient default credentials, i.e. ``.netrc`` entries and
    proxy settings picked up by httpx when ``trust_env`` is enabled.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    def _fetch(self, url: str, trust_env: bool) -> str:
        with httpx.Client(
            timeout=self.timeout,
            trust_env=trust_env,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.text

    def download(self, url: str) -> str:
        """Return the body of ``url``, raising DownloadError if both attempts fail."""
        try:
            return self._fetch(url, trust_env=False)
        except httpx.HTTPError as e:
            logger.debug(f"Download of {url} failed ({e}), retrying with default credentials")

        try:
            return self._fetch(url, trust_env=True)
        except httpx.HTTPError as e:
            raise DownloadError(f"Could not download {url}: {e}", source=url) from e
