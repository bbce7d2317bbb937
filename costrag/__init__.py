"""
costrag: cost questions answered from indexed documents and cost records

Retrieval-augmented query engine for a precast concrete cost-tracking
backend:

- Word-window chunking with overlap
- Batch embeddings (sentence-transformers or OpenAI-compatible APIs)
- USearch HNSW vector index with deterministic string keys
- Cost context rendered from the SQLite cost-tracking store
- Grounded answers with sources and a best-effort cost breakdown
"""

__version__ = "1.0.0"

from .config import CostRAGConfig
from .exceptions import (
    CostRAGError,
    DimensionMismatch,
    EmbeddingFailure,
    IndexingFailure,
    QueryFailure,
    ValidationError,
)
from .models import (
    ChunkRecord,
    CostBreakdown,
    Document,
    QueryResult,
    Source,
    VectorEntry,
    VectorMatch,
)
from .chunking import chunk_text, prepare_text
from .embeddings import (
    BaseEmbeddingProvider,
    HuggingFaceEmbedding,
    OpenAIEmbedding,
    cosine_similarity,
    create_embedding_provider,
)
from .index import BaseVectorIndex, InMemoryVectorIndex, USearchVectorIndex
from .storage import CostStore
from .context import CostContextAssembler, NO_COST_DATA
from .generation import BaseTextGenerator, OpenAIChatGenerator
from .extraction import CostExtractor, LLMCostExtractor, RegexCostExtractor
from .indexing import IndexingPipeline
from .rag import GENERATION_FALLBACK, RAGEngine
from .services import CostRAGServices, create_services

__all__ = [
    # Core
    "CostRAGConfig",
    "IndexingPipeline",
    "RAGEngine",
    "CostRAGServices",
    "create_services",
    # Models
    "ChunkRecord",
    "CostBreakdown",
    "Document",
    "QueryResult",
    "Source",
    "VectorEntry",
    "VectorMatch",
    # Errors
    "CostRAGError",
    "DimensionMismatch",
    "EmbeddingFailure",
    "IndexingFailure",
    "QueryFailure",
    "ValidationError",
    # Chunking & embeddings
    "chunk_text",
    "prepare_text",
    "BaseEmbeddingProvider",
    "HuggingFaceEmbedding",
    "OpenAIEmbedding",
    "cosine_similarity",
    "create_embedding_provider",
    # Components
    "BaseVectorIndex",
    "InMemoryVectorIndex",
    "USearchVectorIndex",
    "CostStore",
    "CostContextAssembler",
    "NO_COST_DATA",
    "BaseTextGenerator",
    "OpenAIChatGenerator",
    "CostExtractor",
    "RegexCostExtractor",
    "LLMCostExtractor",
    "GENERATION_FALLBACK",
]
