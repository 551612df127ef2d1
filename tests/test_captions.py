"""Test caption fetching across the language fallback chain."""
import asyncio

import pytest

from ingestion.captions import (
    AUTO_LANG,
    CaptionFetcher,
    CaptionsUnavailable,
    caption_language_candidates,
)
from ingestion.models import RawCaption
from fakes import FakeCaptionSource, make_captions


class FlakySource(FakeCaptionSource):
    """Fails transiently `failures` times before answering."""

    def __init__(self, failures: int, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    async def fetch_captions(self, video_id, lang):
        if self.failures > 0:
            self.failures -= 1
            self.requested.append(lang)
            raise ConnectionError("throttled")
        return await super().fetch_captions(video_id, lang)


def test_candidate_chain():
    assert caption_language_candidates("DE") == ["DE", "de", "en", "a.en", "en-US", "en-GB"]
    assert caption_language_candidates("en") == ["en", "a.en", "en-US", "en-GB"]
    assert caption_language_candidates("") == ["en", "a.en", "en-US", "en-GB"]


def test_requested_language_wins():
    source = FakeCaptionSource(captions_by_lang={"fr": make_captions(3, 5), "en": make_captions(2, 5)})
    result = asyncio.run(CaptionFetcher(source, retry_delay=0).fetch("vid", "fr"))

    assert result.used_lang == "fr"
    assert len(result.captions) == 3
    assert source.requested == ["fr"]


def test_falls_back_to_regional_variant():
    source = FakeCaptionSource(captions_by_lang={"en-GB": make_captions(2, 5)})
    result = asyncio.run(CaptionFetcher(source, retry_delay=0).fetch("vid", "de"))

    assert result.used_lang == "en-GB"
    assert source.requested == ["de", "en", "a.en", "en-US", "en-GB"]
    assert [a.lang for a in result.attempts if not a.ok] == ["de", "en", "a.en", "en-US"]


def test_transient_errors_are_retried():
    source = FlakySource(failures=2)
    result = asyncio.run(CaptionFetcher(source, attempts_per_lang=3, retry_delay=0).fetch("vid", "en"))

    assert result.used_lang == "en"
    assert [a.attempt for a in result.attempts] == [1, 2, 3]
    assert result.attempts[-1].ok


def test_empty_result_counts_as_miss():
    source = FakeCaptionSource(captions_by_lang={"en": [], "a.en": [RawCaption(start=0, dur=1, text="x")]})
    result = asyncio.run(CaptionFetcher(source, attempts_per_lang=2, retry_delay=0).fetch("vid", "en"))

    assert result.used_lang == "a.en"
    assert [(a.lang, a.ok) for a in result.attempts] == [("en", False), ("en", False), ("a.en", True)]


def test_final_attempt_without_language():
    class AnyLanguageOnly(FakeCaptionSource):
        async def fetch_captions(self, video_id, lang):
            self.requested.append(lang)
            if lang is None:
                return make_captions(4, 5)
            raise self.definitive_errors[0](f"no {lang}")

    source = AnyLanguageOnly()
    result = asyncio.run(CaptionFetcher(source, retry_delay=0).fetch("vid", "en"))

    assert source.requested[-1] is None
    assert result.attempts[-1].lang == AUTO_LANG
    assert len(result.captions) == 4


def test_all_languages_fail():
    source = FakeCaptionSource(captions_by_lang={})
    with pytest.raises(CaptionsUnavailable) as exc_info:
        asyncio.run(CaptionFetcher(source, retry_delay=0).fetch("vid", "pt"))

    message = str(exc_info.value)
    for lang in ["pt", "en", "a.en", "en-US", "en-GB"]:
        assert lang in message
    assert exc_info.value.tried_langs == ["pt", "en", "a.en", "en-US", "en-GB"]
    assert exc_info.value.user_facing is True
