"""
Embedding vectors.

An Embedding is an immutable vector of 32-bit floats tagged with the
provider (model) that produced it. Embeddings from different providers,
or of different lengths, are never comparable: similarity is 0.

Wire/persisted form is a small JSON object with the vector packed as
little-endian floats and base64-encoded:

    {"vectors": "<float32 bytes>", "provider": "openai-text-embedding-ada-002"}
    {"vectorsHalfPrecision": "<float16 bytes>", "provider": "..."}

Half precision halves the payload at a small similarity cost. Values
below about 6e-8 flush to zero at 16 bits.
"""

import base64
import binascii
import json
import math
import struct
import sys
from array import array
from collections.abc import Iterable
from typing import Any

from .errors import EncodingError

FULL_PRECISION_KEY = "vectors"
HALF_PRECISION_KEY = "vectorsHalfPrecision"
PROVIDER_KEY = "provider"

# Largest finite IEEE 754 binary16 value
_HALF_MAX = 65504.0

# Below this, with_precision(True) keeps 32-bit values
HALF_PRECISION_MIN_SIMILARITY = 0.99


def _clamp_half(value: float) -> float:
    if math.isfinite(value) and abs(value) > _HALF_MAX:
        return math.copysign(_HALF_MAX, value)
    return value


def _pack_half(values: Iterable[float]) -> bytes:
    clamped = [_clamp_half(v) for v in values]
    return struct.pack(f"<{len(clamped)}e", *clamped)


def _unpack_half(data: bytes) -> tuple[float, ...]:
    return struct.unpack(f"<{len(data) // 2}e", data)


def _pack_full(values: array) -> bytes:
    if sys.byteorder == "big":
        values = array("f", values)
        values.byteswap()
    return values.tobytes()


def _unpack_full(data: bytes) -> array:
    values = array("f")
    values.frombytes(data)
    if sys.byteorder == "big":
        values.byteswap()
    return values


class Embedding:
    """
    A fixed-length semantic vector plus the provider tag that produced it.

    Values are held as 32-bit floats, so full-precision encoding
    round-trips exactly. The L2 norm is computed once at construction.

    Attributes:
        provider: Opaque tag naming the embedding model/source
        half_precision: Whether to_dict() uses the 16-bit encoding
        magnitude: Cached L2 norm of the vector
    """

    __slots__ = ("_values", "_provider", "_half_precision", "_magnitude")

    def __init__(
        self,
        vectors: Iterable[float],
        provider: str,
        half_precision: bool = False,
    ):
        self._values = array("f", vectors)
        self._provider = provider
        self._half_precision = bool(half_precision)
        self._magnitude = math.sqrt(math.fsum(v * v for v in self._values))

    @property
    def vectors(self) -> list[float]:
        return self._values.tolist()

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def half_precision(self) -> bool:
        return self._half_precision

    @property
    def magnitude(self) -> float:
        return self._magnitude

    @property
    def dimensions(self) -> int:
        return len(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Embedding):
            return NotImplemented
        return self._provider == other._provider and self._values == other._values

    def __hash__(self) -> int:
        return hash((self._provider, self._values.tobytes()))

    def __repr__(self) -> str:
        return (
            f"Embedding(provider={self._provider!r}, dimensions={len(self._values)}, "
            f"half_precision={self._half_precision})"
        )

    # -------------------------------------------------------------------------
    # Similarity
    # -------------------------------------------------------------------------

    def is_comparable(self, other: "Embedding") -> bool:
        """Same provider and same number of dimensions."""
        return self._provider == other._provider and len(self._values) == len(other._values)

    def cosine_similarity(self, other: "Embedding") -> float:
        """
        Cosine similarity in [-1, 1].

        Returns 0 for embeddings from different providers, of different
        lengths, or when either vector has zero magnitude.
        """
        if not self.is_comparable(other):
            return 0.0
        denom = self._magnitude * other._magnitude
        if denom == 0:
            return 0.0
        dot = math.fsum(a * b for a, b in zip(self._values, other._values))
        return max(-1.0, min(1.0, dot / denom))

    # -------------------------------------------------------------------------
    # Precision
    # -------------------------------------------------------------------------

    def with_precision(self, half_precision: bool) -> "Embedding":
        """
        Return this embedding as it will look after an encode/decode cycle
        at the given precision.

        Half precision flushes magnitudes below about 6e-8 to zero, so a
        vector of very small values can lose most or all of its direction.
        When the 16-bit form would fall below ``HALF_PRECISION_MIN_SIMILARITY``
        against the original, the full-precision embedding is returned
        instead.
        """
        if half_precision:
            half = Embedding(_unpack_half(_pack_half(self._values)), self._provider, True)
            if self._magnitude and half.cosine_similarity(self) < HALF_PRECISION_MIN_SIMILARITY:
                return self.with_precision(False)
            return half
        if not self._half_precision:
            return self
        return Embedding(self._values, self._provider, False)

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, str]:
        """Encode to the wire form, keyed by precision."""
        if self._half_precision:
            key, raw = HALF_PRECISION_KEY, _pack_half(self._values)
        else:
            key, raw = FULL_PRECISION_KEY, _pack_full(self._values)
        return {
            key: base64.b64encode(raw).decode("ascii"),
            PROVIDER_KEY: self._provider,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Embedding":
        """
        Decode the wire form produced by to_dict().

        Raises:
            EncodingError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise EncodingError(f"Embedding payload must be an object, got {type(data).__name__}")
        provider = data.get(PROVIDER_KEY)
        if not isinstance(provider, str):
            raise EncodingError("Embedding payload is missing a provider")

        has_full = FULL_PRECISION_KEY in data
        has_half = HALF_PRECISION_KEY in data
        if has_full == has_half:
            raise EncodingError(
                f"Embedding payload must contain exactly one of "
                f"{FULL_PRECISION_KEY!r} or {HALF_PRECISION_KEY!r}"
            )

        key = HALF_PRECISION_KEY if has_half else FULL_PRECISION_KEY
        encoded = data[key]
        if not isinstance(encoded, str):
            raise EncodingError(f"Embedding field {key!r} must be a base64 string")
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Embedding field {key!r} is not valid base64: {e}") from e

        width = 2 if has_half else 4
        if len(raw) % width:
            raise EncodingError(
                f"Embedding field {key!r} has {len(raw)} bytes, not a multiple of {width}"
            )
        if has_half:
            return cls(_unpack_half(raw), provider, half_precision=True)
        return cls(_unpack_full(raw), provider, half_precision=False)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | bytes) -> "Embedding":
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
            raise EncodingError(f"Embedding payload is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def encoded_size(self) -> int:
        """Size in bytes of the JSON wire form."""
        return len(self.to_json().encode("utf-8"))


def cosine_similarity(a: Embedding, b: Embedding) -> float:
    """Cosine similarity of two embeddings; 0 when they are not comparable."""
    return a.cosine_similarity(b)
