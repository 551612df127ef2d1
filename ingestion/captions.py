"""Caption and metadata retrieval with a language fallback chain."""
import abc
import asyncio
from typing import List, Optional, Tuple, Type

import httpx
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_incrementing
from youtube_transcript_api import (
    YouTubeTranscriptApi,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
)

from utils.logger import setup_logger
from ingestion.models import CaptionAttempt, CaptionFetchResult, RawCaption, VideoMetadata
from ingestion.youtube import canonical_watch_url
import config

logger = setup_logger(__name__)

AUTO_LANG = "(auto)"


class CaptionsUnavailable(RuntimeError):
    """Raised when every language candidate failed to produce captions."""
    user_facing = True

    def __init__(self, message: str, tried_langs: List[str], attempts: List[CaptionAttempt]):
        super().__init__(message)
        self.tried_langs = tried_langs
        self.attempts = attempts


class _NoCaptions(RuntimeError):
    """A fetch that succeeded but returned nothing."""


class CaptionSource(abc.ABC):
    """Where captions and video metadata come from."""

    # Errors that mean "this language will never work"; these are not retried
    definitive_errors: Tuple[Type[BaseException], ...] = ()

    @abc.abstractmethod
    async def fetch_captions(self, video_id: str, lang: Optional[str]) -> List[RawCaption]:
        """Fetch raw captions; lang=None means whatever the source has."""
        pass

    @abc.abstractmethod
    async def fetch_video_metadata(self, video_id: str, lang: str) -> VideoMetadata:
        pass


class YouTubeCaptionSource(CaptionSource):
    """youtube-transcript-api for captions, oEmbed for the title."""

    definitive_errors = (NoTranscriptFound, TranscriptsDisabled, VideoUnavailable)

    OEMBED_URL = "https://www.youtube.com/oembed"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.ytt_api = YouTubeTranscriptApi()
        self.http_client = http_client

    async def fetch_captions(self, video_id: str, lang: Optional[str]) -> List[RawCaption]:
        return await asyncio.to_thread(self._fetch_captions_sync, video_id, lang)

    def _fetch_captions_sync(self, video_id: str, lang: Optional[str]) -> List[RawCaption]:
        if lang:
            fetched = self.ytt_api.fetch(video_id, languages=[lang])
        else:
            transcript = next(iter(self.ytt_api.list(video_id)), None)
            if transcript is None:
                return []
            fetched = transcript.fetch()

        return [
            RawCaption(start=s["start"], dur=s["duration"], text=s["text"])
            for s in fetched.to_raw_data()
        ]

    async def fetch_video_metadata(self, video_id: str, lang: str) -> VideoMetadata:
        params = {"url": canonical_watch_url(video_id), "format": "json"}
        headers = {"Accept-Language": lang}
        if self.http_client is not None:
            resp = await self.http_client.get(self.OEMBED_URL, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.get(self.OEMBED_URL, params=params, headers=headers)
        resp.raise_for_status()
        data = resp.json()
        return VideoMetadata(title=(data.get("title") or "").strip(), description="")


def caption_language_candidates(lang: Optional[str]) -> List[str]:
    """Ordered, de-duplicated language fallback chain.

    `a.en` is how some sources expose English auto-captions.
    """
    requested = (lang or "en").strip() or "en"
    candidates = [requested, requested.lower(), "en", "a.en", "en-US", "en-GB"]
    return list(dict.fromkeys(c for c in candidates if c))


class CaptionFetcher:
    """Fetches captions across the language fallback chain with retries."""

    def __init__(
        self,
        source: CaptionSource,
        attempts_per_lang: int = config.CAPTION_ATTEMPTS_PER_LANG,
        retry_delay: float = config.CAPTION_RETRY_DELAY
    ):
        self.source = source
        self.attempts_per_lang = attempts_per_lang
        self.retry_delay = retry_delay

    async def fetch(self, video_id: str, lang: str) -> CaptionFetchResult:
        """Fetch captions for a video, walking the fallback chain.

        Args:
            video_id: YouTube video id
            lang: Requested caption language

        Returns:
            CaptionFetchResult with the language actually used

        Raises:
            CaptionsUnavailable: If every candidate (and the final unlabelled
                attempt) failed or came back empty
        """
        candidates = caption_language_candidates(lang)
        attempts: List[CaptionAttempt] = []
        last_error: Optional[BaseException] = None

        for candidate in candidates:
            try:
                captions = await self._fetch_lang(video_id, candidate, attempts, self.attempts_per_lang)
            except Exception as e:
                last_error = e
                continue
            logger.info(f"Fetched {len(captions)} captions for {video_id} (lang={candidate})")
            return CaptionFetchResult(
                captions=captions, used_lang=candidate, tried_langs=candidates, attempts=attempts
            )

        # Last resort: let the source pick whatever language it has
        try:
            captions = await self._fetch_lang(video_id, None, attempts, 1)
        except Exception as e:
            last_error = e
        else:
            logger.info(f"Fetched {len(captions)} captions for {video_id} without a language hint")
            return CaptionFetchResult(
                captions=captions, used_lang=candidates[0], tried_langs=candidates, attempts=attempts
            )

        tried = ", ".join(candidates)
        detail = str(last_error) if last_error else "no captions returned"
        logger.warning(f"No captions for {video_id}; tried {tried}")
        raise CaptionsUnavailable(
            f"No captions found. tried={tried} lastError={detail}",
            tried_langs=candidates,
            attempts=attempts,
        )

    async def _fetch_lang(
        self,
        video_id: str,
        lang: Optional[str],
        attempts: List[CaptionAttempt],
        max_attempts: int
    ) -> List[RawCaption]:
        label = lang or AUTO_LANG
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_not_exception_type(self.source.definitive_errors),
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                try:
                    captions = await self.source.fetch_captions(video_id, lang)
                except Exception as e:
                    attempts.append(CaptionAttempt(lang=label, attempt=number, ok=False, error=str(e)))
                    raise
                count = len(captions or [])
                attempts.append(CaptionAttempt(lang=label, attempt=number, ok=count > 0, count=count))
                if count == 0:
                    raise _NoCaptions(f"No captions returned for lang={label}")
                return list(captions)
        # AsyncRetrying with reraise=True never falls through
        raise _NoCaptions(f"No captions returned for lang={label}")
