"""
Tests for Embedding: similarity and the wire encoding.
"""

import base64
import json
import math
import random
import struct

import pytest

from passagestore import Embedding, EncodingError, cosine_similarity


def _random_vector(n: int, seed: int) -> list[float]:
    rng = random.Random(seed)
    return [rng.uniform(-1.0, 1.0) for _ in range(n)]


class TestConstruction:

    def test_magnitude_is_l2_norm(self):
        e = Embedding([3.0, 4.0], "p")
        assert e.magnitude == 5.0

    def test_vectors_keep_order(self):
        values = [0.5, -1.0, 2.0, 0.0, 8.0]
        assert Embedding(values, "p").vectors == values

    def test_values_are_float32(self):
        """0.1 is stored as its nearest 32-bit float."""
        e = Embedding([0.1], "p")
        assert e.vectors[0] == struct.unpack("<f", struct.pack("<f", 0.1))[0]
        assert e.vectors[0] == pytest.approx(0.1, rel=1e-7)

    def test_dimensions(self):
        e = Embedding([1.0] * 7, "p")
        assert e.dimensions == 7
        assert len(e) == 7

    def test_equality_and_hash(self):
        a = Embedding([1.0, 2.0], "p")
        b = Embedding([1.0, 2.0], "p", half_precision=True)
        c = Embedding([1.0, 2.0], "q")
        assert a == b
        assert hash(a) == hash(b)
        assert a != c


class TestCosineSimilarity:

    def test_identical_vectors(self):
        e = Embedding([1.0, 2.0, 3.0], "p")
        assert e.cosine_similarity(e) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        a = Embedding([1.0, 2.0], "p")
        b = Embedding([-1.0, -2.0], "p")
        assert cosine_similarity(a, b) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        a = Embedding([1.0, 0.0], "p")
        b = Embedding([0.0, 1.0], "p")
        assert cosine_similarity(a, b) == 0.0

    def test_symmetric_and_bounded(self):
        for seed in range(20):
            a = Embedding(_random_vector(32, seed), "p")
            b = Embedding(_random_vector(32, seed + 100), "p")
            ab = cosine_similarity(a, b)
            assert ab == cosine_similarity(b, a)
            assert -1.0 <= ab <= 1.0

    def test_different_providers_is_zero(self):
        a = Embedding([1.0, 2.0], "p")
        b = Embedding([1.0, 2.0], "q")
        assert cosine_similarity(a, b) == 0

    def test_different_lengths_is_zero(self):
        a = Embedding([1.0, 2.0], "p")
        b = Embedding([1.0, 2.0, 3.0], "p")
        assert cosine_similarity(a, b) == 0

    def test_zero_magnitude_is_zero(self):
        a = Embedding([0.0, 0.0], "p")
        b = Embedding([1.0, 2.0], "p")
        assert cosine_similarity(a, b) == 0
        assert cosine_similarity(a, a) == 0

    def test_empty_vectors_is_zero(self):
        assert cosine_similarity(Embedding([], "p"), Embedding([], "p")) == 0


class TestFullPrecisionEncoding:

    def test_wire_format(self):
        e = Embedding([1.0, -2.5], "openai-ada")
        d = e.to_dict()
        assert set(d) == {"vectors", "provider"}
        assert d["provider"] == "openai-ada"
        assert base64.b64decode(d["vectors"]) == struct.pack("<2f", 1.0, -2.5)

    def test_round_trip_is_exact(self):
        e = Embedding(_random_vector(256, 1), "p")
        decoded = Embedding.from_dict(e.to_dict())
        assert decoded == e
        assert decoded.vectors == e.vectors
        assert decoded.magnitude == e.magnitude
        assert decoded.half_precision is False

    def test_json_round_trip(self):
        e = Embedding([0.25, 0.5], "p")
        assert Embedding.from_json(e.to_json()) == e
        assert json.loads(e.to_json())["provider"] == "p"


class TestHalfPrecisionEncoding:

    def test_wire_format(self):
        e = Embedding([1.0, -2.0], "p", half_precision=True)
        d = e.to_dict()
        assert set(d) == {"vectorsHalfPrecision", "provider"}
        assert base64.b64decode(d["vectorsHalfPrecision"]) == struct.pack("<2e", 1.0, -2.0)

    def test_decodes_as_half_precision(self):
        e = Embedding([0.1, 0.2], "p", half_precision=True)
        assert Embedding.from_dict(e.to_dict()).half_precision is True

    def test_stable_under_repetition(self):
        e = Embedding(_random_vector(256, 2), "p", half_precision=True)
        once = Embedding.from_dict(e.to_dict())
        twice = Embedding.from_dict(once.to_dict())
        assert once == twice
        assert once.to_dict() == twice.to_dict()

    def test_similarity_close_to_original(self):
        for seed in range(5):
            original = Embedding(_random_vector(1536, seed), "p")
            half = Embedding.from_dict(original.with_precision(True).to_dict())
            assert half.cosine_similarity(original) >= 0.99

    def test_smaller_than_full_precision(self):
        values = _random_vector(256, 3)
        full = Embedding(values, "p")
        half = Embedding(values, "p", half_precision=True)
        assert half.encoded_size() < full.encoded_size()

    def test_out_of_range_values_are_clamped(self):
        e = Embedding([1e6, -1e6], "p", half_precision=True)
        decoded = Embedding.from_dict(e.to_dict())
        assert decoded.vectors == [65504.0, -65504.0]

    def test_with_precision_matches_decode(self):
        e = Embedding(_random_vector(64, 4), "p")
        assert e.with_precision(True) == Embedding.from_dict(
            Embedding(e.vectors, "p", half_precision=True).to_dict()
        )
        assert e.with_precision(False) is e

    def test_underflowing_vector_stays_full_precision(self):
        """Values below the 16-bit subnormal range would decode as all zeros."""
        tiny = Embedding([1e-9, -2e-9, 3e-9], "p")
        assert Embedding.from_dict(Embedding(tiny.vectors, "p", True).to_dict()).magnitude == 0

        normalized = tiny.with_precision(True)
        assert normalized.half_precision is False
        assert normalized == tiny
        assert set(normalized.to_dict()) == {"vectors", "provider"}

    def test_zero_vector_still_half_precision(self):
        assert Embedding([0.0, 0.0], "p").with_precision(True).half_precision is True


class TestDecodeErrors:

    def test_not_an_object(self):
        with pytest.raises(EncodingError, match="must be an object"):
            Embedding.from_dict(["vectors"])

    def test_missing_provider(self):
        with pytest.raises(EncodingError, match="provider"):
            Embedding.from_dict({"vectors": ""})

    def test_no_vectors(self):
        with pytest.raises(EncodingError, match="exactly one"):
            Embedding.from_dict({"provider": "p"})

    def test_both_precisions(self):
        with pytest.raises(EncodingError, match="exactly one"):
            Embedding.from_dict({"provider": "p", "vectors": "", "vectorsHalfPrecision": ""})

    def test_bad_base64(self):
        with pytest.raises(EncodingError, match="base64"):
            Embedding.from_dict({"provider": "p", "vectors": "not base64!!"})

    def test_truncated_bytes(self):
        payload = base64.b64encode(b"\x00" * 6).decode()
        with pytest.raises(EncodingError, match="multiple of 4"):
            Embedding.from_dict({"provider": "p", "vectors": payload})

    def test_bad_json(self):
        with pytest.raises(EncodingError, match="JSON"):
            Embedding.from_json("{not json")

    def test_encoding_error_is_value_error(self):
        with pytest.raises(ValueError):
            Embedding.from_json("[]")

    def test_empty_vector_round_trips(self):
        e = Embedding([], "p")
        decoded = Embedding.from_dict(e.to_dict())
        assert decoded.vectors == []
        assert not math.isnan(decoded.magnitude)
