"""Shared fixtures: deterministic embedder and generator fakes, temp stores."""

import zlib
from typing import List, Optional

import pytest

from costrag.config import CostRAGConfig
from costrag.embeddings import BaseEmbeddingProvider
from costrag.generation import BaseTextGenerator
from costrag.index import InMemoryVectorIndex
from costrag.models import Document
from costrag.services import CostRAGServices
from costrag.storage import CostStore

DIM = 32


class FakeEmbedding(BaseEmbeddingProvider):
    """Bag-of-words hashing embedder; texts sharing words get similar vectors."""

    def __init__(self, dim: int = DIM, error: Optional[Exception] = None):
        super().__init__("fake-embedding")
        self._dim = dim
        self.error = error
        self.calls: List[List[str]] = []

    @property
    def dimension(self) -> int:
        return self._dim

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        vectors = []
        for text in texts:
            vec = [0.0] * self._dim
            for word in text.lower().split():
                vec[zlib.crc32(word.encode()) % self._dim] += 1.0
            vectors.append(vec)
        return vectors


class FakeGenerator(BaseTextGenerator):
    """Returns a canned reply, or raises ``error`` when set."""

    def __init__(self, reply: str = "The total: 8,500 THB.", error: Optional[Exception] = None):
        super().__init__("fake-generator")
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, system_prompt, user_message, *, max_tokens=1024, temperature=0.7):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_message": user_message,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def config(tmp_path):
    return CostRAGConfig(
        embedding_dim=DIM,
        chunk_size=4,
        chunk_overlap=2,
        db_path=str(tmp_path / "costrag.db"),
        index_path=str(tmp_path / "costrag.usearch"),
    )


@pytest.fixture
def store(config):
    store = CostStore(config.db_path)
    yield store
    store.close()


@pytest.fixture
def embedder():
    return FakeEmbedding()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex(DIM)


@pytest.fixture
def make_document(store):
    def _make(filename: str = "report.txt", project_id: Optional[int] = None) -> int:
        return store.create_document(Document(
            filename=filename,
            file_path=f"uploads/{filename}",
            file_type="report",
            project_id=project_id,
            file_size=100,
        ))
    return _make


@pytest.fixture
def services(config, embedder, vector_index, generator):
    # Own store: the API lifespan closes it on shutdown
    return CostRAGServices(config, embedder, vector_index, CostStore(config.db_path), generator)
