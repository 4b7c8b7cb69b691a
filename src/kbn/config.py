"""Configuration management for kbn."""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError


DEFAULT_CONFIG = {
    "data_path": "~/.kbn/data",
    "chunking": {"chunk_size": 1000, "chunk_overlap": 200, "respect_boundaries": True, "batch_size": 100},
    "embedding": {"model": "intfloat/e5-large-v2", "timeout": 120.0},
    "llm": {"model": "claude-sonnet-4-20250514", "temperature": 1.0, "max_tokens": 4000, "timeout": 120.0},
    "reranker": {"enabled": True, "model": "cross-encoder/ms-marco-MiniLM-L-6-v2", "timeout": 60.0},
    "vector_store": {
        "chroma_path": "~/.kbn/chroma",
        "host": None,
        "port": 8000,
        "collection": "kbn_documents",
        "timeout": 30.0,
    },
    "retrieval": {"top_k": 15, "use_multi_query": True, "history_limit": 20},
    "logging": {"level": "WARNING"},
}


@dataclass
class ChunkingConfig:
    chunk_size: int = 1000
    chunk_overlap: int = 200
    respect_boundaries: bool = True
    batch_size: int = 100


@dataclass
class EmbeddingConfig:
    model: str = "intfloat/e5-large-v2"
    timeout: float = 120.0


@dataclass
class LLMConfig:
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 1.0
    max_tokens: int = 4000
    timeout: float = 120.0
    api_key: str | None = None


@dataclass
class RerankerConfig:
    enabled: bool = True
    model: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"
    timeout: float = 60.0


@dataclass
class VectorStoreConfig:
    chroma_path: str = "~/.kbn/chroma"
    host: str | None = None
    port: int = 8000
    collection: str = "kbn_documents"
    timeout: float = 30.0


@dataclass
class RetrievalConfig:
    top_k: int = 15
    use_multi_query: bool = True
    history_limit: int = 20


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class Settings:
    """Validated application settings, passed explicitly to every component."""

    data_path: str = "~/.kbn/data"
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    reranker: RerankerConfig = field(default_factory=RerankerConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> "Settings":
        """Build settings from a merged config dict. Unknown keys are an error."""
        sections = {
            "chunking": ChunkingConfig,
            "embedding": EmbeddingConfig,
            "llm": LLMConfig,
            "reranker": RerankerConfig,
            "vector_store": VectorStoreConfig,
            "retrieval": RetrievalConfig,
            "logging": LoggingConfig,
        }
        kwargs: dict[str, Any] = {}
        for key, value in cfg.items():
            if key == "data_path":
                kwargs[key] = value
            elif key in sections:
                try:
                    kwargs[key] = sections[key](**(value or {}))
                except TypeError as e:
                    raise ConfigurationError(f"Invalid '{key}' section: {e}") from e
            else:
                raise ConfigurationError(f"Unknown config key: {key}")
        settings = cls(**kwargs)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigurationError on values no component can work with."""
        c = self.chunking
        if c.chunk_size <= 0:
            raise ConfigurationError("chunking.chunk_size must be positive")
        if not 0 <= c.chunk_overlap < c.chunk_size:
            raise ConfigurationError("chunking.chunk_overlap must be in [0, chunk_size)")
        if c.batch_size <= 0:
            raise ConfigurationError("chunking.batch_size must be positive")
        if not 0.0 <= self.llm.temperature <= 1.0:
            raise ConfigurationError("llm.temperature must be between 0 and 1")
        if self.llm.max_tokens <= 0:
            raise ConfigurationError("llm.max_tokens must be positive")
        if self.retrieval.top_k <= 0:
            raise ConfigurationError("retrieval.top_k must be positive")
        if self.retrieval.history_limit < 0:
            raise ConfigurationError("retrieval.history_limit must not be negative")
        for name, timeout in (
            ("embedding", self.embedding.timeout),
            ("llm", self.llm.timeout),
            ("reranker", self.reranker.timeout),
            ("vector_store", self.vector_store.timeout),
        ):
            if timeout <= 0:
                raise ConfigurationError(f"{name}.timeout must be positive")
        if not self.vector_store.collection:
            raise ConfigurationError("vector_store.collection must not be empty")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".kbn" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> Settings:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if config_path and not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    if path and path.exists():
        with open(path) as f:
            try:
                file_cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Could not parse {path}: {e}") from e
        if not isinstance(file_cfg, dict):
            raise ConfigurationError(f"{path} must contain a mapping")
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["llm"]["api_key"] = api_key
    if data_path := os.environ.get("KBN_DATA_PATH"):
        cfg["data_path"] = data_path
    if chroma_host := os.environ.get("KBN_CHROMA_HOST"):
        cfg["vector_store"]["host"] = chroma_host

    # Expand paths
    cfg["data_path"] = str(Path(cfg["data_path"]).expanduser().resolve())
    vs = cfg["vector_store"]
    vs["chroma_path"] = str(Path(vs["chroma_path"]).expanduser().resolve())

    return Settings.from_dict(cfg)


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
