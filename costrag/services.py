"""Wiring of long-lived clients and per-request pipelines."""

import logging
from typing import Any, Dict, Optional

from .config import CostRAGConfig
from .embeddings import BaseEmbeddingProvider, create_embedding_provider
from .extraction import CostExtractor
from .generation import BaseTextGenerator, OpenAIChatGenerator
from .index import BaseVectorIndex, USearchVectorIndex
from .indexing import IndexingPipeline
from .rag import RAGEngine
from .storage import CostStore

logger = logging.getLogger(__name__)


class CostRAGServices:
    """
    Holds the external clients (embedding model, vector index, relational
    store, generation model) and hands out fresh pipelines built on them.
    """

    def __init__(
        self,
        config: CostRAGConfig,
        embedder: BaseEmbeddingProvider,
        vector_index: BaseVectorIndex,
        store: CostStore,
        generator: BaseTextGenerator,
        extractor: Optional[CostExtractor] = None,
    ):
        self.config = config
        self.embedder = embedder
        self.vector_index = vector_index
        self.store = store
        self.generator = generator
        self.extractor = extractor

    def indexing_pipeline(self) -> IndexingPipeline:
        return IndexingPipeline(self.embedder, self.vector_index, self.store, self.config)

    def rag_engine(self) -> RAGEngine:
        return RAGEngine(
            self.embedder,
            self.vector_index,
            self.store,
            self.generator,
            config=self.config,
            extractor=self.extractor,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "index_size": len(self.vector_index),
            "db_path": self.config.db_path,
            "index_path": self.config.index_path,
            "embedding_model": self.embedder.model,
            "embedding_dim": self.config.embedding_dim,
            "generation_model": self.generator.model,
            "tables": self.store.stats(),
        }

    def close(self) -> None:
        """Close all connections and save."""
        close_index = getattr(self.vector_index, "close", None)
        if close_index:
            close_index()
        self.store.close()


def create_services(
    config: Optional[CostRAGConfig] = None,
    *,
    openai_api_key: Optional[str] = None,
) -> CostRAGServices:
    """
    Create services with the configured providers.

    Example:
        >>> services = create_services(CostRAGConfig.from_env())
        >>> services.indexing_pipeline().index_document(1, text)
        >>> result = services.rag_engine().answer("Average wall panel cost?")
    """
    config = config or CostRAGConfig()

    provider_kwargs: Dict[str, Any] = {}
    if config.embedding_provider.lower().startswith("openai"):
        provider_kwargs = {
            "openai_api_key": openai_api_key,
            "base_url": config.openai_base_url,
            "dimensions": config.embedding_dim,
        }
    embedder = create_embedding_provider(
        config.embedding_provider, config.embedding_model, **provider_kwargs
    )
    if embedder.dimension != config.embedding_dim:
        logger.warning(
            "Embedding model %s produces %d dimensions but the index is configured for %d",
            embedder.model, embedder.dimension, config.embedding_dim,
        )

    vector_index = USearchVectorIndex(
        config.index_path,
        config.embedding_dim,
        metric=config.metric,
        dtype=config.dtype,
        connectivity=config.connectivity,
        expansion_add=config.expansion_add,
        expansion_search=config.expansion_search,
    )
    store = CostStore(config.db_path)
    generator = OpenAIChatGenerator(
        config.generation_model,
        openai_api_key=openai_api_key,
        base_url=config.openai_base_url,
    )
    return CostRAGServices(config, embedder, vector_index, store, generator)
