"""FastAPI REST API for indexing documents and answering cost questions."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import CostRAGConfig
from .exceptions import CostRAGError, IndexingFailure, ValidationError
from .models import Document
from .services import CostRAGServices, create_services

logger = logging.getLogger(__name__)


# ============ Request/Response Models ============

class QueryRequest(BaseModel):
    """Request body for a cost question."""
    query: str = Field(..., description="Natural-language question")
    project_id: Optional[int] = Field(default=None, description="Scope cost context to a project")
    topK: Optional[int] = Field(default=None, ge=1, le=50, description="Chunks to retrieve")


class IndexRequest(BaseModel):
    """Request body for manual indexing of an existing document."""
    document_id: int
    text: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    purge_existing: bool = False


class DocumentUploadRequest(BaseModel):
    """Register a document whose text has already been extracted."""
    filename: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1, description="e.g. 'report', 'quotation'")
    text: str = ""
    project_id: Optional[int] = None
    file_path: Optional[str] = Field(default=None, description="Object storage path of the raw file")


class SourceItem(BaseModel):
    document: str
    relevance: float
    chunk_text: Optional[str] = None


class QueryData(BaseModel):
    answer: str
    sources: List[SourceItem]
    cost_breakdown: Optional[Dict[str, float]] = None


class Envelope(BaseModel):
    success: bool = True
    data: Any = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ok(data: Any, **metadata) -> Dict[str, Any]:
    return Envelope(data=data, metadata={"timestamp": _now(), **metadata}).model_dump()


def _error(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "code": code, "timestamp": _now()},
    )


# ============ App Factory ============

def create_app(
    config: Optional[CostRAGConfig] = None,
    *,
    services_factory: Optional[Callable[[CostRAGConfig], CostRAGServices]] = None,
) -> FastAPI:
    """
    Create a FastAPI app wrapping a set of costrag services.

    Args:
        config: Engine configuration (default: ``CostRAGConfig.from_env()``)
        services_factory: Builds the services at startup (default: ``create_services``)
    """
    config = config or CostRAGConfig.from_env()
    services_factory = services_factory or create_services

    services: Optional[CostRAGServices] = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal services
        services = services_factory(config)
        yield
        if services:
            services.close()

    app = FastAPI(
        title="costrag API",
        description="Cost questions answered from indexed documents and cost records",
        version="1.0.0",
        lifespan=lifespan,
    )

    def get_services() -> CostRAGServices:
        if services is None:
            raise RuntimeError("Services not initialized")
        return services

    def check_size(text: str) -> None:
        limit = config.max_upload_bytes
        if len(text.encode("utf-8")) > limit:
            raise ValidationError(f"File size exceeds the {limit:,} byte limit")

    # ============ Error mapping ============

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) for err in exc.errors())
        return _error(400, f"Invalid request: {fields}" if fields else "Invalid request", "VALIDATION_ERROR")

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error(400, str(exc), "VALIDATION_ERROR")

    @app.exception_handler(CostRAGError)
    async def costrag_error_handler(request: Request, exc: CostRAGError):
        # Messages of the failure types are generic; provider detail stays in the logs
        return _error(500, str(exc), "SERVER_ERROR")

    # ============ Endpoints ============

    @app.post("/api/query", tags=["Query"])
    def query(request: QueryRequest):
        """Answer a cost question with sources and an optional cost breakdown."""
        engine = get_services().rag_engine()
        result = engine.answer(request.query, project_id=request.project_id, top_k=request.topK)
        return _ok(QueryData(**result.to_dict()).model_dump(exclude_none=True))

    @app.post("/api/query/index", status_code=201, tags=["Indexing"])
    def index_document(request: IndexRequest):
        """Index text for an existing document."""
        check_size(request.text)
        svc = get_services()
        if svc.store.get_document(request.document_id) is None:
            return _error(404, "Document not found", "NOT_FOUND")
        chunks = svc.indexing_pipeline().index_document(
            request.document_id,
            request.text,
            request.metadata,
            purge_existing=request.purge_existing,
        )
        return _ok({
            "message": "Document indexed successfully",
            "document_id": request.document_id,
            "chunks": chunks,
        })

    @app.post("/api/documents", status_code=201, tags=["Documents"])
    def upload_document(request: DocumentUploadRequest):
        """
        Register a document and index its text.

        Indexing problems do not fail the upload; the response reports
        ``vector_indexed: false`` instead.
        """
        check_size(request.text)
        svc = get_services()
        file_path = request.file_path or f"{int(datetime.now().timestamp() * 1000)}-{request.filename}"
        document_id = svc.store.create_document(Document(
            filename=request.filename,
            file_path=file_path,
            file_type=request.file_type,
            project_id=request.project_id,
            file_size=len(request.text.encode("utf-8")),
        ))

        indexed = False
        if request.text.strip():
            try:
                svc.indexing_pipeline().index_document(document_id, request.text, {
                    "project_id": request.project_id,
                    "file_type": request.file_type,
                    "filename": request.filename,
                })
                indexed = True
            except (ValidationError, IndexingFailure) as e:
                logger.warning("Document %s stored but not indexed: %s", document_id, e)

        return _ok({
            "document_id": document_id,
            "filename": request.filename,
            "file_path": file_path,
            "file_type": request.file_type,
            "vector_indexed": indexed,
        })

    @app.get("/api/documents", tags=["Documents"])
    def list_documents(project_id: Optional[int] = None):
        """List a project's documents, newest first. Without ``project_id`` the list is empty."""
        documents = []
        if project_id is not None:
            documents = get_services().store.get_documents_by_project(project_id)
        return _ok([d.__dict__ for d in documents], count=len(documents))

    @app.get("/api/documents/{document_id}", tags=["Documents"])
    def get_document(document_id: int):
        document = get_services().store.get_document(document_id)
        if document is None:
            return _error(404, "Document not found", "NOT_FOUND")
        return _ok(document.__dict__)

    @app.get("/api/documents/{document_id}/chunks", tags=["Documents"])
    def get_document_chunks(document_id: int):
        svc = get_services()
        if svc.store.get_document(document_id) is None:
            return _error(404, "Document not found", "NOT_FOUND")
        chunks = svc.store.get_vector_metadata_by_document(document_id)
        return _ok([c.__dict__ for c in chunks], count=len(chunks))

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "costrag"}

    return app
