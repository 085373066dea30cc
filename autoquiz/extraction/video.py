"""Video transcript extraction for YouTube links."""

import asyncio
import html
import re
from urllib.parse import parse_qs, urlparse

import httpx
import structlog
from youtube_transcript_api import YouTubeTranscriptApi

from autoquiz.config import Settings, get_settings
from autoquiz.models import ExtractionMethod, ExtractionResult, LinkSource

from .base import Extractor, ExtractorFailure, run_blocking, success_result
from .normalize import normalize_url
from .quality import clamp_quality

logger = structlog.get_logger(__name__)

VIDEO_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
    "youtu.be",
    "www.youtu.be",
}
_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_PATH_PREFIXES = ("embed", "v", "shorts", "live")

TRANSCRIPT_CONFIDENCE = 0.8
# Title/description text is a weak stand-in for what is actually said
METADATA_CONFIDENCE_FACTOR = 0.6
MIN_METADATA_CHARS = 50

PREFERRED_LANGUAGES = ("en", "en-US", "en-GB")

OEMBED_URL = "https://www.youtube.com/oembed"
DATA_API_URL = "https://www.googleapis.com/youtube/v3/videos"


def is_video_url(url: str) -> bool:
    """True when the URL points at a supported video host."""
    host = (urlparse(normalize_url(url)).hostname or "").lower()
    return host in VIDEO_HOSTS


def extract_video_id(url: str) -> str | None:
    """Resolve short, embed and canonical video links to the video id.

    ``youtu.be/ID``, ``youtube.com/embed/ID``, ``youtube.com/v/ID``,
    ``youtube.com/shorts/ID`` and ``youtube.com/watch?v=ID`` (with the
    ``v`` parameter anywhere in the query) all resolve to the same id. Links
    pasted without a scheme are accepted too.

    Args:
        url: Video link as submitted.

    Returns:
        The 11-character video id, or None when the link is not a video link.
    """
    parsed = urlparse(normalize_url(url))
    host = (parsed.hostname or "").lower()
    if host not in VIDEO_HOSTS:
        return None

    segments = [s for s in parsed.path.split("/") if s]
    candidate = None

    if host.endswith("youtu.be"):
        candidate = segments[0] if segments else None
    elif segments and segments[0] == "watch":
        candidate = parse_qs(parsed.query).get("v", [None])[0]
    elif len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
        candidate = segments[1]

    if candidate and _VIDEO_ID.match(candidate):
        return candidate
    return None


def canonical_video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def clean_transcript(text: str) -> str:
    """Remove bracketed annotations like [Music] and collapse whitespace."""
    text = html.unescape(text)
    text = re.sub(r"\[.*?\]", " ", text)
    return " ".join(text.split())


def assess_transcript(text: str) -> int:
    """Score transcript text 1..10 from length and vocabulary variety."""
    quality = 8

    if len(text) < 300:
        quality -= 3
    elif len(text) < 800:
        quality -= 1

    words = text.lower().split()
    if words:
        unique_ratio = len(set(words)) / len(words)
        if unique_ratio < 0.3:
            quality -= 2
        elif unique_ratio < 0.5:
            quality -= 1

    return clamp_quality(quality)


def fetch_transcript(video_id: str) -> str:
    """Fetch caption text, preferring English tracks. Blocking."""
    api = YouTubeTranscriptApi()
    transcripts = list(api.list(video_id))
    if not transcripts:
        return ""

    preferred = [t for t in transcripts if t.language_code in PREFERRED_LANGUAGES]
    manual = [t for t in preferred if not t.is_generated]
    transcript = (manual or preferred or transcripts)[0]

    return " ".join(snippet.text for snippet in transcript.fetch())


class VideoTranscriptExtractor(Extractor):
    """Extract spoken text from a video link, falling back to its metadata."""

    default_method = ExtractionMethod.VIDEO_TRANSCRIPT

    def __init__(
        self,
        settings: Settings | None = None,
        transcript_fetcher=None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = settings or get_settings()
        self.timeout = settings.video_transcript_timeout_seconds
        self.api_key = settings.youtube_api_key
        self.transcript_fetcher = transcript_fetcher or fetch_transcript
        self._client = client

    async def _extract(self, source: LinkSource) -> ExtractionResult:
        video_id = extract_video_id(source.url)
        if not video_id:
            raise ExtractorFailure(f"Could not find a video id in {source.url}")

        logger.info("fetching_transcript", video_id=video_id)
        transcript_error = None
        try:
            raw = await asyncio.wait_for(
                run_blocking(self.transcript_fetcher, video_id),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            transcript_error = "Transcript request timed out"
            raw = ""
        except Exception as e:
            # Disabled captions, private or unavailable videos
            transcript_error = str(e).splitlines()[0] if str(e) else type(e).__name__
            raw = ""

        text = clean_transcript(raw)
        if text:
            transcript_quality = assess_transcript(text)
            logger.info("transcript_complete", video_id=video_id, chars=len(text), quality=transcript_quality)
            return success_result(
                source,
                text,
                TRANSCRIPT_CONFIDENCE,
                ExtractionMethod.VIDEO_TRANSCRIPT,
                quality_score=transcript_quality,
                details={"video_id": video_id},
            )

        logger.info("transcript_unavailable", video_id=video_id, reason=transcript_error)
        return await self._metadata_fallback(source, video_id, transcript_error)

    async def _metadata_fallback(self, source: LinkSource, video_id: str, reason: str | None) -> ExtractionResult:
        title, description = await self._fetch_metadata(video_id)
        text = "\n\n".join(part for part in (title, description) if part).strip()

        if len(text) < MIN_METADATA_CHARS:
            raise ExtractorFailure(
                "No transcript available and video description is too short",
                method=ExtractionMethod.VIDEO_METADATA,
            )

        reduced_quality = clamp_quality(assess_transcript(text) * METADATA_CONFIDENCE_FACTOR)
        return success_result(
            source,
            text,
            TRANSCRIPT_CONFIDENCE * METADATA_CONFIDENCE_FACTOR,
            ExtractionMethod.VIDEO_METADATA,
            quality_score=reduced_quality,
            details={"video_id": video_id, "title": title, "transcript_error": reason},
        )

    async def _fetch_metadata(self, video_id: str) -> tuple[str, str]:
        """Fetch title (oEmbed) and description (Data API, when a key is set)."""
        title, description = "", ""
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            try:
                response = await client.get(
                    OEMBED_URL,
                    params={"url": canonical_video_url(video_id), "format": "json"},
                )
                if response.status_code == 200:
                    title = response.json().get("title", "")
            except (httpx.HTTPError, ValueError) as e:
                logger.debug("oembed_failed", video_id=video_id, error=str(e))

            if self.api_key:
                try:
                    response = await client.get(
                        DATA_API_URL,
                        params={"part": "snippet", "id": video_id, "key": self.api_key},
                    )
                    if response.status_code == 200:
                        items = response.json().get("items", [])
                        if items:
                            snippet = items[0].get("snippet", {})
                            title = snippet.get("title") or title
                            description = snippet.get("description", "")
                except (httpx.HTTPError, ValueError) as e:
                    logger.debug("video_data_api_failed", video_id=video_id, error=str(e))
        finally:
            if self._client is None:
                await client.aclose()

        return title.strip(), description.strip()
