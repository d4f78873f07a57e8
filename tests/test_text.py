"""Tests for passage chunking and FTS query building."""

from passagestore.text import (
    CHARS_PER_TOKEN,
    build_fts_query,
    chunk_for_embedding,
    truncate_tail,
)


class TestChunkForEmbedding:

    def test_empty(self):
        assert chunk_for_embedding("") == []
        assert chunk_for_embedding("\n\n\n") == []

    def test_short_text_single_chunk(self):
        assert chunk_for_embedding("line one\nline two") == ["line one\nline two"]

    def test_empty_lines_dropped(self):
        assert chunk_for_embedding("a\n\n\nb") == ["a\nb"]

    def test_splits_on_line_boundaries(self):
        # 2 tokens * 3 chars = 6 chars per chunk
        text = "abc\ndef\nghi"
        assert chunk_for_embedding(text, token_limit=2) == ["abc\ndef", "ghi"]

    def test_long_line_truncated(self):
        limit = 4
        line = "x" * 50
        chunks = chunk_for_embedding(f"short\n{line}\nend", token_limit=limit)
        assert chunks[0] == "short"
        assert len(chunks[1]) == limit * CHARS_PER_TOKEN
        assert chunks[1].endswith("…")
        assert chunks[-1] == "end"

    def test_no_line_lost(self):
        lines = [f"line number {i}" for i in range(200)]
        chunks = chunk_for_embedding("\n".join(lines), token_limit=20)
        assert len(chunks) > 1
        assert "\n".join(chunks).split("\n") == lines


class TestTruncateTail:

    def test_short_unchanged(self):
        assert truncate_tail("abc", 5) == "abc"

    def test_truncates_with_ellipsis(self):
        assert truncate_tail("abcdef", 4) == "abc…"

    def test_tiny_limit(self):
        assert truncate_tail("abcdef", 1) == "a"


class TestBuildFtsQuery:

    def test_tokens_or_joined(self):
        assert build_fts_query("apples and oranges") == '"apples" OR "and" OR "oranges"'

    def test_punctuation_and_quotes_stripped(self):
        assert build_fts_query('"apples", (oranges)!') == '"apples" OR "oranges"'

    def test_operators_quoted(self):
        assert build_fts_query("NOT apples") == '"NOT" OR "apples"'

    def test_no_tokens(self):
        assert build_fts_query("") is None
        assert build_fts_query("  ?! ") is None

    def test_unicode_words(self):
        assert build_fts_query("café über") == '"café" OR "über"'
