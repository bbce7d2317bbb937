"""Indexing pipeline: make a document's text searchable."""

import logging
from typing import Any, Dict, Optional

from .chunking import chunk_text, prepare_text
from .config import CostRAGConfig
from .embeddings import BaseEmbeddingProvider
from .exceptions import IndexingFailure, ValidationError
from .index import BaseVectorIndex
from .models import ChunkRecord, VectorEntry, document_handle, vector_key
from .storage import CostStore

logger = logging.getLogger(__name__)


class IndexingPipeline:
    """
    Chunks, embeds and stores one document.

    The vector upsert, the chunk record writes and the indexed flag are
    separate writes to separate stores. If a later step fails the vector
    index is ahead of the relational store; re-running with
    ``purge_existing=True`` converges both, since vector keys are
    deterministic and overwrite in place.
    """

    def __init__(
        self,
        embedder: BaseEmbeddingProvider,
        vector_index: BaseVectorIndex,
        store: CostStore,
        config: Optional[CostRAGConfig] = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.store = store
        self.config = config or CostRAGConfig()

    def index_document(
        self,
        document_id: int,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        purge_existing: bool = False,
    ) -> int:
        """
        Index a document's text.

        Args:
            document_id: Owning document id
            text: Extracted document text
            metadata: Tags copied onto every vector entry (project_id, file_type, filename)
            purge_existing: Delete the document's previous chunk records before
                writing the new ones; by default they are kept and the new
                records are appended

        Returns:
            Number of chunks indexed

        Raises:
            ValidationError: if the text has nothing to index
            IndexingFailure: on any downstream error, including vectors whose
                dimension does not match the index
        """
        chunks = chunk_text(
            prepare_text(text or ""),
            self.config.chunk_size,
            self.config.chunk_overlap,
        )
        if not chunks:
            raise ValidationError(f"Document {document_id} has no text to index")

        try:
            embeddings = self.embedder.embed_batch(chunks)

            entries = []
            for i, chunk in enumerate(chunks):
                entries.append(VectorEntry(
                    key=vector_key(document_id, i),
                    embedding=embeddings[i],
                    metadata={
                        **(metadata or {}),
                        "document_id": document_id,
                        "chunk_index": i,
                        "chunk_text": chunk,
                    },
                ))
            self.vector_index.upsert(entries)

            if purge_existing:
                removed = self.store.delete_vector_metadata_by_document(document_id)
                if removed:
                    logger.info("Purged %d stale chunk records for document %s", removed, document_id)

            for i, chunk in enumerate(chunks):
                self.store.create_vector_metadata(ChunkRecord(
                    document_id=document_id,
                    chunk_index=i,
                    chunk_text=chunk,
                    vector_id=vector_key(document_id, i),
                ))

            self.store.set_document_indexed(document_id, document_handle(document_id))
        except Exception as e:
            logger.exception("Error indexing document %s: %s", document_id, e)
            raise IndexingFailure(document_id=document_id) from e

        logger.info("Indexed document %s with %d chunks", document_id, len(chunks))
        return len(chunks)
