"""
Embedding providers for passage stores.

The store consumes an Embedder; it never computes vectors itself.
Concrete providers are auto-registered when this module is imported.
"""

from .base import (
    Embedder,
    ProviderRegistry,
    get_registry,
)

# Import concrete providers to trigger registration
from .embeddings import HashEmbedder, OpenAIEmbedder

__all__ = [
    # Protocols
    "Embedder",
    # Registry
    "ProviderRegistry",
    "get_registry",
    # Embedders
    "HashEmbedder",
    "OpenAIEmbedder",
]
