"""
Configuration management for postgraph stores.

The configuration is stored as a TOML file in the store directory.
It specifies where posts live and how the engine caches and builds graphs.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w


CONFIG_FILENAME = "postgraph.toml"
CONFIG_VERSION = 1

DEFAULT_PRELOAD_WORKERS = 4
DEFAULT_MAX_POST_SIZE = 10_000_000


@dataclass
class GraphDefaults:
    """Default graph options applied when a caller passes none."""
    min_shared_tags: int = 1
    max_edges: int = 0


@dataclass
class EngineConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Directory of post files; relative paths resolve against the store
    content_dir: Optional[Path] = None

    # Item cache TTL in seconds (0 = entries never expire)
    cache_ttl: float = 0
    graph_enabled: bool = True
    preload_workers: int = DEFAULT_PRELOAD_WORKERS
    max_post_size: int = DEFAULT_MAX_POST_SIZE
    related_limit: int = 0
    graph: GraphDefaults = field(default_factory=GraphDefaults)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def posts_path(self) -> Path:
        """Resolved directory holding post files."""
        if self.content_dir is None:
            return self.path / "posts"
        if self.content_dir.is_absolute():
            return self.content_dir
        return self.path / self.content_dir

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def default_store_path() -> Path:
    """Store directory: POSTGRAPH_STORE_PATH or ~/.postgraph."""
    store = os.environ.get("POSTGRAPH_STORE_PATH")
    if store:
        return Path(store).expanduser()
    return Path.home() / ".postgraph"


def load_config(store_path: Path) -> EngineConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    content = data.get("content", {})
    engine = data.get("engine", {})
    graph = data.get("graph", {})

    content_dir = content.get("dir")
    cache_ttl = engine.get("cache_ttl", 0)
    if cache_ttl < 0:
        raise ValueError(f"cache_ttl must be >= 0, got {cache_ttl}")
    workers = engine.get("preload_workers", DEFAULT_PRELOAD_WORKERS)
    if workers < 1:
        raise ValueError(f"preload_workers must be >= 1, got {workers}")

    return EngineConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        content_dir=Path(content_dir) if content_dir else None,
        cache_ttl=cache_ttl,
        graph_enabled=engine.get("graph_enabled", True),
        preload_workers=workers,
        max_post_size=content.get("max_post_size", DEFAULT_MAX_POST_SIZE),
        related_limit=engine.get("related_limit", 0),
        graph=GraphDefaults(
            min_shared_tags=graph.get("min_shared_tags", 1),
            max_edges=graph.get("max_edges", 0),
        ),
    )


def save_config(config: EngineConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    content: dict = {"max_post_size": config.max_post_size}
    if config.content_dir is not None:
        content["dir"] = str(config.content_dir)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "content": content,
        "engine": {
            "cache_ttl": config.cache_ttl,
            "graph_enabled": config.graph_enabled,
            "preload_workers": config.preload_workers,
            "related_limit": config.related_limit,
        },
        "graph": {
            "min_shared_tags": config.graph.min_shared_tags,
            "max_edges": config.graph.max_edges,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> EngineConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = EngineConfig(path=store_path)
    save_config(config)
    return config
