"""
Base provider protocols.

These define the interfaces that concrete providers must implement.
Using Protocol for structural subtyping - no explicit inheritance required.
"""

from typing import Protocol, runtime_checkable

from ..embedding import Embedding


# -----------------------------------------------------------------------------
# Embedding Generation
# -----------------------------------------------------------------------------

@runtime_checkable
class Embedder(Protocol):
    """
    Turns batches of text into embeddings.

    The store calls ``embed`` once per batch of texts it needs vectors
    for, and once per embedding search query. It never retries a failing
    embedder.

    Example implementation:
        class SentenceTransformerEmbedder:
            def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
                from sentence_transformers import SentenceTransformer
                self.model = SentenceTransformer(model_name)
                self.provider = f"st-{model_name}"

            @property
            def dimensions(self) -> int:
                return self.model.get_sentence_embedding_dimension()

            token_limit = 256

            def embed(self, documents: list[str]) -> list[Embedding]:
                vectors = self.model.encode(documents).tolist()
                return [Embedding(v, self.provider) for v in vectors]
    """

    @property
    def provider(self) -> str:
        """
        Tag identifying the model that produces the vectors.

        Stored with every embedding; stored embeddings whose tag differs
        from the current embedder's are ignored by embedding search.
        """
        ...

    @property
    def dimensions(self) -> int:
        """The dimensionality of the embedding vectors."""
        ...

    @property
    def token_limit(self) -> int:
        """Context size of the model, in tokens."""
        ...

    def embed(self, documents: list[str]) -> list[Embedding]:
        """
        Generate embeddings for multiple texts.

        Args:
            documents: Texts to embed

        Returns:
            Exactly one Embedding per input, in input order, all with the
            same provider tag and length
        """
        ...


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating embedders.

    Embedders are registered by name and can be instantiated from the
    store configuration (TOML) rather than requiring code changes.

    Example:
        registry = ProviderRegistry()
        registry.register_embedder("openai", OpenAIEmbedder)

        # Later, from config:
        embedder = registry.create_embedder("openai", {"model": "text-embedding-3-small"})
    """

    def __init__(self):
        self._embedders: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily import the built-in provider module so it can register."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import embeddings  # noqa: F401

    def register_embedder(self, name: str, provider_class: type) -> None:
        """Register an embedder class."""
        self._embedders[name] = provider_class

    def create_embedder(self, name: str, params: dict | None = None) -> Embedder:
        """Create an embedder instance."""
        self._ensure_providers_loaded()
        if name not in self._embedders:
            available = ", ".join(self._embedders.keys()) or "none"
            raise ValueError(
                f"Unknown embedding provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return self._embedders[name](**(params or {}))
        except Exception as e:
            raise RuntimeError(
                f"Failed to create embedding provider '{name}': {e}"
            ) from e

    def list_embedders(self) -> list[str]:
        """List registered embedder names."""
        self._ensure_providers_loaded()
        return list(self._embedders.keys())


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
