"""
Configuration management for passage stores.

The configuration is stored as a TOML file in the store directory.
It names the embedding provider and its parameters, and the store's
persistence and query defaults.
"""

import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w


CONFIG_FILENAME = "passagestore.toml"
CONFIG_VERSION = 1

DEFAULT_LIMIT = 10
DEFAULT_EMBEDDER = "hash"


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    embedding: ProviderConfig = field(default_factory=lambda: ProviderConfig(DEFAULT_EMBEDDER))

    # Persist embeddings as 16-bit floats
    half_precision: bool = True
    # Result count when a search is called without a limit
    default_limit: int = DEFAULT_LIMIT
    # Rotating operations log in the store directory
    ops_log: bool = True

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(store_path) / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    default_limit = store.get("default_limit", DEFAULT_LIMIT)
    if not isinstance(default_limit, int) or default_limit < 1:
        raise ValueError(f"default_limit must be a positive integer, got {default_limit!r}")

    embedding = data.get("embedding", {"name": DEFAULT_EMBEDDER})

    return StoreConfig(
        path=Path(store_path),
        version=version,
        created=store.get("created", ""),
        embedding=ProviderConfig(
            name=embedding.get("name", DEFAULT_EMBEDDER),
            params={k: v for k, v in embedding.items() if k != "name"},
        ),
        half_precision=bool(store.get("half_precision", True)),
        default_limit=default_limit,
        ops_log=bool(store.get("ops_log", True)),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    embedding = {"name": config.embedding.name}
    embedding.update(config.embedding.params)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "half_precision": config.half_precision,
            "default_limit": config.default_limit,
            "ops_log": config.ops_log,
        },
        "embedding": embedding,
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or return defaults for a new store.

    A new config is not written here; the store writes it on first save.
    """
    store_path = Path(store_path)
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    return StoreConfig(path=store_path)
