"""
Built-in embedders.

- HashEmbedder: deterministic feature hashing, no network, no model
- OpenAIEmbedder: OpenAI embeddings endpoint over HTTP
"""

import hashlib
import logging
import os
import re

import httpx

from ..embedding import Embedding
from ..errors import EncodingError
from ..text import CHARS_PER_TOKEN
from .base import get_registry

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class HashEmbedder:
    """
    Bag-of-words embedder using signed feature hashing.

    Equal strings map to equal vectors and texts sharing words land near
    each other, which is enough for tests and offline use. Not a
    semantic model.
    """

    token_limit = 8192

    def __init__(self, dimensions: int = 256, seed: str = ""):
        if dimensions < 1:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self._dimensions = dimensions
        self._seed = seed
        self.embed_calls = 0

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider(self) -> str:
        if self._seed:
            return f"hash-{self._dimensions}-{self._seed}"
        return f"hash-{self._dimensions}"

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in _WORD_RE.findall(text.lower()):
            digest = hashlib.blake2b(
                (self._seed + "\x00" + token).encode("utf-8"), digest_size=8
            ).digest()
            h = int.from_bytes(digest, "little")
            sign = 1.0 if (h >> 63) & 1 else -1.0
            vector[h % self._dimensions] += sign
        return vector

    def embed(self, documents: list[str]) -> list[Embedding]:
        self.embed_calls += 1
        provider = self.provider
        return [Embedding(self._vector(doc), provider) for doc in documents]


# OpenAI list price for ada-002, per 1k tokens
OPENAI_COST_PER_1K_TOKENS = 0.0001

DEFAULT_TIMEOUT = 60.0


class OpenAIEmbedder:
    """
    Embedder using OpenAI's embeddings API.

    Requires: PASSAGESTORE_OPENAI_API_KEY or OPENAI_API_KEY environment
    variable, or an explicit api_key.

    One HTTP request per batch. HTTP errors propagate as httpx errors.
    """

    token_limit = 8191

    _DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        print_cost: bool = False,
        truncate_to_fit_token_limit: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        key = (
            api_key
            or os.environ.get("PASSAGESTORE_OPENAI_API_KEY")
            or os.environ.get("OPENAI_API_KEY")
        )
        if not key:
            raise ValueError(
                "OpenAI API key required. Set PASSAGESTORE_OPENAI_API_KEY or OPENAI_API_KEY"
            )

        self.model = model
        self.print_cost = print_cost
        self.truncate_to_fit_token_limit = truncate_to_fit_token_limit
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @property
    def provider(self) -> str:
        return f"openai-{self.model}"

    @property
    def dimensions(self) -> int:
        return self._DIMENSIONS.get(self.model, 1536)

    def _prepare(self, documents: list[str]) -> list[str]:
        if not self.truncate_to_fit_token_limit:
            return list(documents)
        max_chars = self.token_limit * CHARS_PER_TOKEN
        return [doc[:max_chars] for doc in documents]

    def embed(self, documents: list[str]) -> list[Embedding]:
        """POST /embeddings with the whole batch."""
        if not documents:
            return []

        resp = self._client.post(
            "/embeddings",
            json={"model": self.model, "input": self._prepare(documents)},
        )
        resp.raise_for_status()
        body = resp.json()

        items = sorted(body.get("data", []), key=lambda d: d.get("index", 0))
        if len(items) != len(documents):
            raise EncodingError(
                f"OpenAI returned {len(items)} embeddings for {len(documents)} documents"
            )

        if self.print_cost:
            tokens = body.get("usage", {}).get("prompt_tokens", 0)
            cost = tokens / 1000 * OPENAI_COST_PER_1K_TOKENS
            logger.info(
                "OpenAI embeddings: %d tokens for %d documents; "
                "1000 such requests would cost $%.4f",
                tokens, len(documents), cost * 1000,
            )

        provider = self.provider
        return [Embedding(item["embedding"], provider) for item in items]

    def close(self) -> None:
        self._client.close()


# Register providers
_registry = get_registry()
_registry.register_embedder("hash", HashEmbedder)
_registry.register_embedder("openai", OpenAIEmbedder)
