"""
Shared pytest fixtures for passagestore tests.

Provides deterministic embedders so embedding search is reproducible
without network calls or model downloads.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone

import pytest

from passagestore import Embedding, Record, Store

_WORD_RE = re.compile(r"\w+")


class MockEmbedder:
    """
    Deterministic mock embedder for testing.

    Bag-of-words over md5 buckets: equal strings give equal vectors, and
    texts sharing words are closer than unrelated texts.
    """

    dimensions = 64
    token_limit = 2048

    def __init__(self, provider: str = "mock-model"):
        self.provider = provider
        self.embed_calls = 0
        self.embedded_texts: list[str] = []

    def vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in _WORD_RE.findall(text.lower()):
            h = int(hashlib.md5(token.encode()).hexdigest(), 16)
            vector[h % self.dimensions] += 1.0 if (h >> 7) & 1 else -1.0
        return vector

    def embed(self, documents: list[str]) -> list[Embedding]:
        self.embed_calls += 1
        self.embedded_texts.extend(documents)
        return [Embedding(self.vector(doc), self.provider) for doc in documents]


class FailingEmbedder(MockEmbedder):
    """Embedder whose every call raises, like an unreachable API."""

    def embed(self, documents: list[str]) -> list[Embedding]:
        self.embed_calls += 1
        raise ConnectionError("embedding service unreachable")


class ShortCountEmbedder(MockEmbedder):
    """Embedder that drops the last embedding of every batch."""

    def embed(self, documents: list[str]) -> list[Embedding]:
        return super().embed(documents)[:-1]


FRUIT_DOCS = {
    "a1": "I like apples",
    "o1": "I like oranges",
    "ao1": "I like apples and oranges",
    "b1": "I like bananas",
    "ab1": "I like apples and bananas",
    "a2": "I hate apples",
}

BASE_DATE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def fruit_records() -> list[Record]:
    """The six fruit passages, one minute apart in dict order."""
    return [
        Record(id=id, text=text, data={"value": id}, date=BASE_DATE + timedelta(minutes=i))
        for i, (id, text) in enumerate(FRUIT_DOCS.items())
    ]


@pytest.fixture
def embedder():
    """Create a fresh MockEmbedder instance."""
    return MockEmbedder()


@pytest.fixture
def store(embedder):
    """In-memory store, closed after the test."""
    s = Store(None, embedder)
    yield s
    s.close()


@pytest.fixture
def fruit_store(store):
    """In-memory store holding the six fruit passages."""
    store.insert(fruit_records())
    return store


@pytest.fixture
def store_path(tmp_path):
    """Location for a persisted store (not created yet)."""
    return tmp_path / "store"
