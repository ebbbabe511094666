"""httpx client wrapper for fetching raw skill documents from GitHub."""

from __future__ import annotations

import logging

import httpx

from skillhub import __version__

logger = logging.getLogger(__name__)

RAW_CONTENT_BASE = "https://raw.githubusercontent.com"
DEFAULT_FETCH_TIMEOUT = 10.0


def raw_content_url(org: str, repo: str, ref: str, path: str, filename: str) -> str:
    """Map a GitHub tree location plus filename to its raw-content URL."""
    path = path.strip("/")
    prefix = f"{RAW_CONTENT_BASE}/{org}/{repo}/{ref}"
    return f"{prefix}/{path}/{filename}" if path else f"{prefix}/{filename}"


class DocumentFetcher:
    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": f"skillhub/{__version__}"},
        )

    def close(self) -> None:
        self._client.close()

    def fetch_text(self, url: str) -> str | None:
        """GET url, returning the body on 2xx and None on any other outcome."""
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as e:
            logger.debug(f"Fetch failed for {url}: {e}")
            return None
        if not resp.is_success:
            logger.debug(f"Fetch returned {resp.status_code} for {url}")
            return None
        return resp.text

    def fetch_first(self, urls: list[str]) -> tuple[str, str] | None:
        """Try each url in order; return (url, text) for the first that succeeds."""
        for url in urls:
            text = self.fetch_text(url)
            if text is not None:
                return url, text
        return None
