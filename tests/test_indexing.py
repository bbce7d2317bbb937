"""Tests for the indexing pipeline."""

import pytest

from costrag.exceptions import IndexingFailure, ValidationError
from costrag.indexing import IndexingPipeline

from .conftest import FakeEmbedding

TEXT = "a b c d e f g h"


@pytest.fixture
def pipeline(embedder, vector_index, store, config):
    return IndexingPipeline(embedder, vector_index, store, config)


def test_index_document(pipeline, embedder, vector_index, store, make_document):
    document_id = make_document()

    assert pipeline.index_document(document_id, TEXT, {"project_id": 5}) == 3

    # One batched embedding call for all chunks
    assert embedder.calls == [["a b c d", "c d e f", "e f g h"]]
    assert len(vector_index) == 3

    records = store.get_vector_metadata_by_document(document_id)
    assert [r.chunk_index for r in records] == [0, 1, 2]
    assert [r.vector_id for r in records] == [
        f"doc_{document_id}_chunk_{i}" for i in range(3)
    ]
    assert records[1].chunk_text == "c d e f"

    document = store.get_document(document_id)
    assert document.vector_indexed is True
    assert document.vector_id == f"doc_{document_id}"


def test_vector_metadata(pipeline, embedder, vector_index, make_document):
    document_id = make_document()
    pipeline.index_document(
        document_id, TEXT, {"project_id": 5, "file_type": "report", "chunk_index": 99}
    )

    [match] = vector_index.query(embedder.embed("e f g h"), top_k=1)
    assert match.key == f"doc_{document_id}_chunk_2"
    assert match.metadata == {
        "project_id": 5,
        "file_type": "report",
        "document_id": document_id,
        "chunk_index": 2,
        "chunk_text": "e f g h",
    }


def test_reindex_appends_records(pipeline, vector_index, store, make_document):
    document_id = make_document()
    pipeline.index_document(document_id, TEXT)
    pipeline.index_document(document_id, TEXT)

    # Keys are deterministic so vectors are overwritten, chunk records are not
    assert len(vector_index) == 3
    assert len(store.get_vector_metadata_by_document(document_id)) == 6


def test_reindex_with_purge(pipeline, vector_index, store, make_document):
    document_id = make_document()
    pipeline.index_document(document_id, TEXT)
    pipeline.index_document(document_id, TEXT, purge_existing=True)

    assert len(vector_index) == 3
    assert len(store.get_vector_metadata_by_document(document_id)) == 3


def test_text_is_cleaned_before_chunking(pipeline, embedder, make_document):
    document_id = make_document()
    assert pipeline.index_document(document_id, "  a\tb\n\nc   d \x00") == 1
    assert embedder.calls == [["a b c d"]]


@pytest.mark.parametrize("text", ["", "   \n\t  ", None])
def test_empty_text_rejected(pipeline, embedder, store, make_document, text):
    document_id = make_document()
    with pytest.raises(ValidationError):
        pipeline.index_document(document_id, text)
    assert embedder.calls == []
    assert store.get_document(document_id).vector_indexed is False


def test_embedding_failure(vector_index, store, config, make_document):
    embedder = FakeEmbedding(error=RuntimeError("rate limited"))
    pipeline = IndexingPipeline(embedder, vector_index, store, config)
    document_id = make_document()

    with pytest.raises(IndexingFailure) as excinfo:
        pipeline.index_document(document_id, TEXT)

    assert excinfo.value.document_id == document_id
    assert len(vector_index) == 0
    assert store.get_vector_metadata_by_document(document_id) == []
    assert store.get_document(document_id).vector_indexed is False


def test_dimension_mismatch_is_indexing_failure(store, config, vector_index, make_document):
    pipeline = IndexingPipeline(FakeEmbedding(dim=8), vector_index, store, config)
    with pytest.raises(IndexingFailure):
        pipeline.index_document(make_document(), TEXT)


def test_flag_failure_leaves_vectors(pipeline, vector_index, store, make_document, monkeypatch):
    document_id = make_document()

    def broken(*args, **kwargs):
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(store, "set_document_indexed", broken)

    with pytest.raises(IndexingFailure):
        pipeline.index_document(document_id, TEXT)

    assert len(vector_index) == 3
    assert store.get_document(document_id).vector_indexed is False
