"""Web page extraction using httpx and BeautifulSoup."""

import re
from urllib.parse import urlparse

import httpx
import structlog
from bs4 import BeautifulSoup

from autoquiz.config import Settings, get_settings
from autoquiz.models import ExtractionMethod, ExtractionResult, LinkSource

from .base import Extractor, ExtractorFailure, success_result
from .normalize import normalize_text, normalize_url
from .quality import clamp_quality

logger = structlog.get_logger(__name__)

REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

# Elements that never carry article text
STRIP_SELECTORS = [
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    "form",
    ".advertisement",
    ".ads",
    ".social-share",
]

# Tried in order; the first match with enough text wins
CONTENT_SELECTORS = [
    "article",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    "main",
    ".main-content",
    "#content",
    ".container",
]

JUNK_INDICATORS = ["cookie", "privacy policy", "terms of service", "subscribe", "newsletter"]

MIN_SELECTED_CHARS = 200
MIN_BODY_FALLBACK_CHARS = 100


class WebPageExtractor(Extractor):
    """Fetch a URL and extract its visible article text."""

    default_method = ExtractionMethod.WEB_PAGE

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        settings = settings or get_settings()
        self.timeout = settings.web_scraping_timeout_seconds
        self._client = client

    async def _extract(self, source: LinkSource) -> ExtractionResult:
        url = normalize_url(source.url)
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ExtractorFailure(f"Invalid URL: {url}")

        logger.info("fetching_web_page", url=url)
        html = await self._fetch(url)

        title, text = parse_html(html)
        if not text:
            raise ExtractorFailure("No readable text found on page")

        page_quality = assess_web_content(text, title)
        logger.info("web_extraction_complete", url=url, chars=len(text), quality=page_quality)
        return success_result(
            source,
            text,
            page_quality / 10,
            ExtractionMethod.WEB_PAGE,
            quality_score=page_quality,
            details={"title": title},
        )

    async def _fetch(self, url: str) -> str:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=REQUEST_HEADERS, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                    response = await client.get(url, headers=REQUEST_HEADERS)
        except httpx.TimeoutException as e:
            raise ExtractorFailure("Timed out fetching page") from e
        except httpx.HTTPError as e:
            raise ExtractorFailure(f"Could not fetch page: {e}") from e

        if response.status_code >= 400:
            raise ExtractorFailure(f"Page returned HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "text/html")
        if "html" not in content_type and "text/plain" not in content_type:
            raise ExtractorFailure(f"Unsupported content type: {content_type}")

        return response.text


def parse_html(html: str) -> tuple[str, str]:
    """Extract the page title and main visible text from HTML.

    Args:
        html: Raw HTML document.

    Returns:
        Tuple of (title, text). Either may be empty.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(strip=True) if h1 else ""

    for selector in STRIP_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    text = ""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        candidate = normalize_text(element.get_text(separator="\n"))
        if len(candidate) > MIN_SELECTED_CHARS:
            text = candidate
            break

    if len(text) < MIN_BODY_FALLBACK_CHARS:
        root = soup.body or soup
        body_text = normalize_text(root.get_text(separator="\n"))
        if len(body_text) > len(text):
            text = body_text

    return title, text


def assess_web_content(text: str, title: str = "") -> int:
    """Score scraped page text 1..10 from density and sentence structure."""
    quality = 10

    if len(text) < 200:
        quality -= 4
    elif len(text) < 500:
        quality -= 2
    elif len(text) < 1000:
        quality -= 1

    sentences = [s for s in re.split(r"[.!?]+", text) if len(s.strip()) > 10]
    if len(sentences) < 3:
        quality -= 2

    if len(title) > 5:
        quality += 1

    lowered = text.lower()
    if sum(1 for word in JUNK_INDICATORS if word in lowered) > 2:
        quality -= 2

    return clamp_quality(quality)
