"""
Text helpers: sizing passages for an embedder and building FTS5 queries.
"""

import re
from typing import Optional

# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 3

# Word tokens for FTS: letters/digits/underscore, any script
_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def truncate_tail(text: str, max_len: int) -> str:
    """Truncate text to max_len characters, marking the cut with an ellipsis."""
    if len(text) <= max_len:
        return text
    if max_len <= 1:
        return text[:max_len]
    return text[:max_len - 1] + "…"


def chunk_for_embedding(text: str, token_limit: int = 2048) -> list[str]:
    """
    Split text into newline-aligned chunks that fit an embedder's context.

    Lines are never split across chunks; a single line longer than the
    chunk size is truncated.

    Args:
        text: The text to split
        token_limit: Embedder context size in tokens

    Returns:
        List of chunks (empty for empty input)
    """
    max_chunk_length = token_limit * CHARS_PER_TOKEN
    chunks: list[list[str]] = []
    current: list[str] = []
    current_length = 0

    for line in text.split("\n"):
        if not line:
            continue
        if current and len(line) + current_length > max_chunk_length:
            chunks.append(current)
            current = []
            current_length = 0
        current.append(truncate_tail(line, max_chunk_length))
        current_length += len(line)

    if current:
        chunks.append(current)

    return ["\n".join(chunk) for chunk in chunks]


def build_fts_query(query: str) -> Optional[str]:
    """
    Build an FTS5 expression matching any token of a free-text query.

    Each token is double-quoted so FTS5 operators in user input are
    treated as plain words.

    Returns:
        The MATCH expression, or None if the query has no tokens
    """
    tokens = [t for t in _TOKEN_RE.findall(query.replace('"', " ")) if t]
    if not tokens:
        return None
    return " OR ".join(f'"{t}"' for t in tokens)
