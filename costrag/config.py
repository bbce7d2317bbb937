"""Configuration models for the costrag engine."""

import os
from dataclasses import dataclass, fields
from typing import Optional


@dataclass
class CostRAGConfig:
    """Configuration for the cost query engine."""

    # Embedding settings
    embedding_provider: str = "huggingface"  # 'huggingface', 'openai'
    embedding_model: str = "BAAI/bge-base-en-v1.5"
    embedding_dim: int = 768  # bge-base-en-v1.5 dimension

    # USearch HNSW parameters
    metric: str = "cos"
    dtype: str = "f32"
    connectivity: int = 16
    expansion_add: int = 128
    expansion_search: int = 64

    # Chunking settings (words, not characters)
    chunk_size: int = 512
    chunk_overlap: int = 50

    # Retrieval
    default_top_k: int = 5

    # Generation settings
    generation_model: str = "gpt-4o-mini"
    max_tokens: int = 1024
    temperature: float = 0.7
    openai_base_url: Optional[str] = None  # OpenAI-compatible servers (vLLM, Ollama)

    # Rendering
    currency: str = "THB"

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024  # 10MB

    # Storage paths
    db_path: str = "costrag.db"
    index_path: str = "costrag.usearch"

    @classmethod
    def from_env(cls, prefix: str = "COSTRAG_") -> "CostRAGConfig":
        """
        Build a config from environment variables.

        Every field can be overridden with ``{prefix}{FIELD_NAME}``, e.g.
        ``COSTRAG_EMBEDDING_MODEL`` or ``COSTRAG_CHUNK_SIZE``. Values are
        coerced to the type of the field default.
        """
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            default = f.default
            if isinstance(default, bool):
                overrides[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif isinstance(default, int):
                overrides[f.name] = int(raw)
            elif isinstance(default, float):
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = raw
        return cls(**overrides)
