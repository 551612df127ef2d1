"""Shared pytest fixtures."""
import pytest

from ingestion.chunker import TranscriptChunker
from storage.database import Database
from fakes import FakeCaptionSource, FakeChatClient


@pytest.fixture(autouse=True)
def offline_token_count(monkeypatch):
    """Keep tests off the network; tiktoken downloads its BPE file on first use."""
    monkeypatch.setattr(TranscriptChunker, "count_tokens", lambda self, text: len(text.split()))


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "pipeline.db")


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def caption_source():
    return FakeCaptionSource()
