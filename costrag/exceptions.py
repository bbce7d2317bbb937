"""
Exceptions raised by the costrag engine.

Provider failures are wrapped into one of the generic failure types so
callers never see provider internals; the original error is logged where
it is caught and chained with ``raise ... from``.
"""


class CostRAGError(Exception):
    """Base exception for all costrag errors."""
    pass


class ValidationError(CostRAGError):
    """
    Caller-supplied input is malformed.

    Raised when:
    - The query text is missing or blank
    - A document has no indexable text
    - Chunking or retrieval parameters are out of range
    """
    pass


class DimensionMismatch(ValidationError):
    """Two vectors (or a vector and an index) have different dimensions."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class EmbeddingFailure(CostRAGError):
    """The embedding model could not produce vectors."""

    def __init__(self, message: str = "Failed to generate embedding"):
        super().__init__(message)


class IndexingFailure(CostRAGError):
    """A document could not be made searchable."""

    def __init__(self, message: str = "Failed to index document", document_id=None):
        super().__init__(message)
        self.document_id = document_id


class QueryFailure(CostRAGError):
    """Embedding or retrieval failed while answering a query."""

    def __init__(self, message: str = "Failed to process query"):
        super().__init__(message)
