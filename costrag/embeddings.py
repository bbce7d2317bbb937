"""Embedding generation with multiple provider support."""

import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from .exceptions import DimensionMismatch, EmbeddingFailure

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Raises:
        DimensionMismatch: if the vectors have different lengths
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    # sqrt(|a|^2 * |b|^2) rather than |a| * |b|: exact 1.0 for identical vectors
    norm = np.sqrt(np.dot(va, va) * np.dot(vb, vb))
    if norm == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts (provider-specific)."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return embedding dimension for this model."""
        pass

    def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in one provider call.

        Returns one vector per input text, in input order, all with the
        same dimensionality.

        Raises:
            EmbeddingFailure: on any provider error or malformed response
        """
        texts = list(texts)
        if not texts:
            return []

        try:
            vectors = self._embed_batch(texts)
        except Exception as e:
            logger.exception("Embedding call to %s failed: %s", self.model, e)
            raise EmbeddingFailure() from e

        if len(vectors) != len(texts):
            logger.error(
                "Embedding model %s returned %d vectors for %d texts",
                self.model, len(vectors), len(texts),
            )
            raise EmbeddingFailure()

        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            logger.error("Embedding model %s returned mixed dimensions %s", self.model, sorted(dims))
            raise EmbeddingFailure()

        return [[float(x) for x in v] for v in vectors]

    cosine_similarity = staticmethod(cosine_similarity)


class OpenAIEmbedding(BaseEmbeddingProvider):
    """OpenAI (or OpenAI-compatible) embedding provider with retries."""

    # Native dimensions; the 3.x models can be shortened via ``dimensions``
    MODEL_DIMENSIONS = {
        "text-embedding-3-large": 3072,
        "text-embedding-3-small": 1536,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        openai_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
    ):
        super().__init__(model)
        self.api_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass openai_api_key parameter."
            )
        self.dimensions = dimensions
        self.client = OpenAI(api_key=self.api_key, base_url=base_url)

    @property
    def dimension(self) -> int:
        if self.dimensions:
            return self.dimensions
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings via OpenAI API."""
        kwargs = {"model": self.model, "input": texts}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        response = self.client.embeddings.create(**kwargs)

        # Sort by index to ensure correct order
        embeddings = sorted(response.data, key=lambda x: x.index)
        return [emb.embedding for emb in embeddings]


class HuggingFaceEmbedding(BaseEmbeddingProvider):
    """
    HuggingFace sentence-transformers embedding provider (local, free).

    Requires: pip install "costrag[huggingface]"

    Example:
        >>> embedder = HuggingFaceEmbedding("BAAI/bge-base-en-v1.5")
        >>> vector = embedder.embed("precast wall panel cost")
    """

    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-large-en-v1.5": 1024,
    }

    def __init__(
        self,
        model: str = "BAAI/bge-base-en-v1.5",
        hf_token: Optional[str] = None,
        normalize: bool = True,
    ):
        super().__init__(model)
        self.hf_token = hf_token or os.environ.get("HF_TOKEN")
        self.normalize = normalize
        self._model = None
        self._dimension: Optional[int] = None

    def _load_model(self):
        """Lazy-load the model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "sentence-transformers not installed. "
                    "Run: pip install 'costrag[huggingface]'"
                )
            logger.info("Loading sentence-transformers model %s", self.model)
            self._model = SentenceTransformer(self.model, token=self.hf_token)
            self._dimension = self._model.get_sentence_embedding_dimension()
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is not None:
            return self._dimension
        if self.model in self.MODEL_DIMENSIONS:
            return self.MODEL_DIMENSIONS[self.model]
        self._load_model()
        return self._dimension or 768

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings using sentence-transformers."""
        model = self._load_model()
        embeddings = model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=self.normalize,
        )
        return embeddings.tolist()


# ============ Provider Factory ============

def create_embedding_provider(
    provider: str = "huggingface",
    model: Optional[str] = None,
    **kwargs
) -> BaseEmbeddingProvider:
    """
    Factory function to create embedding providers.

    Args:
        provider: Provider name ('huggingface', 'openai')
        model: Model name (uses provider default if not specified)
        **kwargs: Additional provider-specific arguments

    Example:
        >>> embedder = create_embedding_provider("huggingface", "BAAI/bge-base-en-v1.5")
        >>> embedder = create_embedding_provider("openai", "text-embedding-3-small", dimensions=768)
    """
    provider = provider.lower()

    if provider in ("huggingface", "hf", "sentence-transformers"):
        return HuggingFaceEmbedding(model or "BAAI/bge-base-en-v1.5", **kwargs)

    elif provider in ("openai", "openai-embedding"):
        return OpenAIEmbedding(model or "text-embedding-3-small", **kwargs)

    else:
        raise ValueError(
            f"Unknown provider: {provider}. "
            f"Supported: 'huggingface', 'openai'"
        )
