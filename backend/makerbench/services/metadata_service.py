"""
MakerBench Backend — Page Metadata Service
============================================

What:  Fetches a submitted page and extracts its title, description and
       Open Graph image.
How:   httpx.AsyncClient for the request, BeautifulSoup (html.parser) for
       parsing.
Who:   Called by BookmarkService during submission, before the image step.

Extraction rules:
    title        <meta property="og:title">       → <title>
    description  <meta property="og:description"> → <meta name="description">
    og_image     <meta property="og:image">, resolved against the final page URL

extract() never raises. Network errors, non-2xx responses and unparseable
bodies come back as a MetadataResult with every field None and `error` set;
the submission continues without metadata.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from makerbench.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetadataResult:
    title: Optional[str] = None
    description: Optional[str] = None
    og_image: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    if not isinstance(content, str):
        return None
    content = content.strip()
    return content or None


def parse_metadata_html(html: str, base_url: str) -> MetadataResult:
    """Pure HTML → MetadataResult step, separated for testing."""
    soup = BeautifulSoup(html, "html.parser")

    title = _meta_content(soup, property="og:title")
    if title is None and soup.title is not None:
        title = soup.title.get_text().strip() or None

    description = _meta_content(soup, property="og:description") or _meta_content(
        soup, name="description"
    )

    og_image = _meta_content(soup, property="og:image")
    if og_image is not None:
        og_image = urljoin(base_url, og_image)

    return MetadataResult(title=title, description=description, og_image=og_image)


class MetadataService:
    """
    Page metadata extractor.

    Args:
        timeout:    Request timeout in seconds (default settings.metadata_timeout)
        transport:  Optional httpx transport; tests pass httpx.MockTransport
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.metadata_timeout
        self.transport = transport

    async def extract(self, url: str) -> MetadataResult:
        start_time = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": settings.metadata_user_agent},
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Metadata fetch failed for %s: %s", url, str(e) or type(e).__name__)
            return MetadataResult(error=str(e) or type(e).__name__)

        if not response.is_success:
            error = f"HTTP {response.status_code}: {response.reason_phrase}"
            logger.info("Metadata fetch for %s returned %s", url, error)
            return MetadataResult(error=error)

        try:
            result = parse_metadata_html(response.text, str(response.url))
        except Exception as e:
            logger.warning("Metadata parse failed for %s: %s", url, str(e))
            return MetadataResult(error=str(e) or type(e).__name__)

        logger.info(
            "Metadata extracted for %s in %.0fms (title=%s, og_image=%s)",
            url,
            (time.perf_counter() - start_time) * 1000,
            result.title is not None,
            result.og_image is not None,
        )
        return result


# ── Singleton Instance ────────────────────────────────────────────────────
metadata_service = MetadataService()
