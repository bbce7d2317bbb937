"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from costrag.api import create_app
from costrag.services import CostRAGServices
from costrag.storage import CostStore

from .conftest import FakeEmbedding, FakeGenerator


@pytest.fixture
def client(config, services):
    app = create_app(config, services_factory=lambda c: services)
    with TestClient(app) as client:
        yield client


def _upload(client, **overrides):
    body = {
        "filename": "beam_quote.txt",
        "file_type": "quotation",
        "text": "precast beam concrete cost",
        "project_id": 3,
    }
    body.update(overrides)
    return client.post("/api/documents", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_upload_and_query(client):
    response = _upload(client)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["vector_indexed"] is True
    assert data["file_path"].endswith("-beam_quote.txt")

    response = client.post("/api/query", json={"query": "beam concrete cost", "topK": 3})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "timestamp" in body["metadata"]
    assert body["data"]["answer"] == "The total: 8,500 THB."
    assert body["data"]["cost_breakdown"] == {"total": 8500}
    [source] = body["data"]["sources"]
    assert source["document"] == "beam_quote.txt"
    assert source["chunk_text"] == "precast beam concrete cost"


def test_upload_without_text_is_stored_unindexed(client):
    response = _upload(client, text="")
    assert response.status_code == 201
    assert response.json()["data"]["vector_indexed"] is False


def test_upload_indexing_failure_is_reported(config, vector_index, generator):
    services = CostRAGServices(
        config,
        FakeEmbedding(error=RuntimeError("model offline")),
        vector_index,
        CostStore(config.db_path),
        generator,
    )
    app = create_app(config, services_factory=lambda c: services)
    with TestClient(app) as client:
        response = _upload(client)
        document_id = response.json()["data"]["document_id"]
        assert response.status_code == 201
        assert response.json()["data"]["vector_indexed"] is False

        document = client.get(f"/api/documents/{document_id}").json()["data"]
        assert document["vector_indexed"] is False


def test_index_existing_document(client):
    document_id = _upload(client, text="").json()["data"]["document_id"]

    response = client.post("/api/query/index", json={
        "document_id": document_id,
        "text": "a b c d e f g h",
        "metadata": {"project_id": 3},
    })
    assert response.status_code == 201
    assert response.json()["data"]["chunks"] == 3

    response = client.get(f"/api/documents/{document_id}/chunks")
    assert response.json()["metadata"]["count"] == 3
    assert [c["chunk_index"] for c in response.json()["data"]] == [0, 1, 2]

    document = client.get(f"/api/documents/{document_id}").json()["data"]
    assert document["vector_indexed"] is True
    assert document["vector_id"] == f"doc_{document_id}"


def test_index_unknown_document(client):
    response = client.post("/api/query/index", json={"document_id": 999, "text": "a b c"})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_index_blank_text_is_validation_error(client):
    document_id = _upload(client, text="").json()["data"]["document_id"]
    response = client.post("/api/query/index", json={"document_id": document_id, "text": "   "})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.parametrize("path", ["/api/documents/999", "/api/documents/999/chunks"])
def test_unknown_document(client, path):
    response = client.get(path)
    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.parametrize("body", [{"query": ""}, {"query": "   "}, {}, {"query": "beam", "topK": 0}])
def test_invalid_query(client, body):
    response = client.post("/api/query", json=body)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_query_failure_hides_provider_detail(config, vector_index, generator):
    services = CostRAGServices(
        config,
        FakeEmbedding(error=RuntimeError("401 invalid api key sk-secret")),
        vector_index,
        CostStore(config.db_path),
        generator,
    )
    app = create_app(config, services_factory=lambda c: services)
    with TestClient(app) as client:
        response = client.post("/api/query", json={"query": "beam cost"})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "SERVER_ERROR"
    assert body["error"] == "Failed to process query"
    assert "sk-secret" not in response.text


def test_generation_failure_still_answers(config, embedder, vector_index):
    services = CostRAGServices(
        config, embedder, vector_index, CostStore(config.db_path),
        FakeGenerator(error=RuntimeError("upstream 503")),
    )
    app = create_app(config, services_factory=lambda c: services)
    with TestClient(app) as client:
        response = client.post("/api/query", json={"query": "beam cost"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["answer"].startswith("Sorry")
    assert "cost_breakdown" not in data


def test_list_documents_by_project(client):
    _upload(client, filename="beam_quote.txt")
    _upload(client, filename="slab_quote.txt", text="")
    _upload(client, filename="other_site.txt", project_id=4)

    body = client.get("/api/documents", params={"project_id": 3}).json()
    assert body["metadata"]["count"] == 2
    assert {d["filename"] for d in body["data"]} == {"beam_quote.txt", "slab_quote.txt"}

    body = client.get("/api/documents").json()
    assert body["data"] == []
    assert body["metadata"]["count"] == 0


def test_upload_size_limit(config, services):
    config.max_upload_bytes = 16
    app = create_app(config, services_factory=lambda c: services)
    with TestClient(app) as client:
        response = _upload(client, text="precast beam concrete cost per panel")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/documents", params={"project_id": 3}).json()["data"] == []

        document_id = _upload(client, text="").json()["data"]["document_id"]
        response = client.post("/api/query/index", json={"document_id": document_id, "text": "a " * 20})
        assert response.status_code == 400
        assert client.get(f"/api/documents/{document_id}/chunks").json()["data"] == []
