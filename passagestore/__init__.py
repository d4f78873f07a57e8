"""
Passage Store

An embedded store for short passages of text with arbitrary metadata,
searchable by full-text relevance and by embedding similarity.

Quick Start:
    from passagestore import Record, Store
    from passagestore.providers import HashEmbedder

    store = Store("~/.myapp/passages", HashEmbedder())
    store.insert([Record(id="a1", text="I like apples", data={"value": "a1"})])
    store.full_text_search("apples")
    store.embedding_search("fruit I enjoy", limit=5)
    store.save()

Stores opened with ``Store.open(path)`` read ``passagestore.toml`` in the
store directory for the embedding provider and defaults.

Environment Variables:
    PASSAGESTORE_DEBUG           - Debug logging to stderr (Store.open)
    PASSAGESTORE_OPENAI_API_KEY  - API key for the OpenAI embedder
"""

from .aio import AsyncStore
from .embedding import Embedding, cosine_similarity
from .errors import EmbedderError, EncodingError, StorageError, StoreError
from .providers import Embedder, HashEmbedder, OpenAIEmbedder
from .store import Store
from .text import chunk_for_embedding
from .types import Record

__version__ = "0.1.0"

__all__ = [
    "AsyncStore",
    "Embedder",
    "EmbedderError",
    "Embedding",
    "EncodingError",
    "HashEmbedder",
    "OpenAIEmbedder",
    "Record",
    "StorageError",
    "Store",
    "StoreError",
    "chunk_for_embedding",
    "cosine_similarity",
]
