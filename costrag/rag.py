"""Retrieval-augmented answering of cost questions."""

import logging
from typing import List, Optional

from .config import CostRAGConfig
from .context import CostContextAssembler
from .embeddings import BaseEmbeddingProvider
from .exceptions import QueryFailure, ValidationError
from .extraction import CostExtractor, RegexCostExtractor
from .generation import BaseTextGenerator
from .index import BaseVectorIndex
from .models import CostBreakdown, QueryResult, Source, VectorMatch
from .storage import CostStore

logger = logging.getLogger(__name__)

GENERATION_FALLBACK = "Sorry, an answer could not be generated. Please try again."
NO_DOCUMENTS = "No relevant documents were found."
UNKNOWN_DOCUMENT = "Unknown"

SYSTEM_PROMPT = """You are a cost analysis expert for a precast concrete manufacturing company.

Your role:
- Analyze production, transportation and installation costs
- Give cost estimates grounded in historical data
- Explain cost breakdowns clearly, labelling material, labor, overhead and total figures
- Suggest cost reduction strategies where the data supports them

Context from documents:
{documents}

Current cost data:
{cost_context}

Answer guidelines:
- Cite the source document number when you use a specific document
- Express all amounts in {currency} and format numbers with thousands separators (e.g. 8,500 {currency})
- Give detailed, clearly separated breakdowns
- If the data is insufficient, state explicitly what is missing"""


class RAGEngine:
    """
    Answers a natural-language cost question.

    Retrieval failures are fatal (``QueryFailure``); generation failures are
    not: the result then carries ``GENERATION_FALLBACK`` as its answer and
    still lists the retrieved sources.
    """

    def __init__(
        self,
        embedder: BaseEmbeddingProvider,
        vector_index: BaseVectorIndex,
        store: CostStore,
        generator: BaseTextGenerator,
        *,
        config: Optional[CostRAGConfig] = None,
        context_assembler: Optional[CostContextAssembler] = None,
        extractor: Optional[CostExtractor] = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.store = store
        self.generator = generator
        self.config = config or CostRAGConfig()
        self.context_assembler = context_assembler or CostContextAssembler(
            store, currency=self.config.currency
        )
        self.extractor = extractor or RegexCostExtractor()

    def answer(
        self,
        query: str,
        project_id: Optional[int] = None,
        top_k: Optional[int] = None,
    ) -> QueryResult:
        """
        Answer ``query``, optionally scoped to a project.

        Args:
            query: The user's question
            project_id: Adds that project's cost statistics to the context
            top_k: Number of chunks to retrieve (default: config.default_top_k)

        Raises:
            ValidationError: blank query or non-positive top_k
            QueryFailure: embedding, vector search or document lookup failed
        """
        if not query or not query.strip():
            raise ValidationError("Query is required")
        top_k = self.config.default_top_k if top_k is None else top_k
        if top_k < 1:
            raise ValidationError(f"top_k must be positive, got {top_k}")

        try:
            query_embedding = self.embedder.embed(query)
            matches = self.vector_index.query(query_embedding, top_k=top_k, include_metadata=True)
            sources = self._resolve_sources(matches)
        except Exception as e:
            logger.exception("Error retrieving context for query: %s", e)
            raise QueryFailure() from e

        cost_context = self.context_assembler.build_context(project_id)
        answer = self._generate(query, sources, cost_context)
        breakdown = self._extract_breakdown(answer)

        return QueryResult(answer=answer, sources=sources, cost_breakdown=breakdown)

    def _resolve_sources(self, matches: List[VectorMatch]) -> List[Source]:
        """Attach document filenames to matches, keeping the index's ranking."""
        sources = []
        for match in matches:
            document_id = match.metadata.get("document_id")
            if document_id is None:
                logger.warning("Vector entry %s has no document_id, skipping", match.key)
                continue

            document = self.store.get_document(int(document_id))
            sources.append(Source(
                document=document.filename if document else UNKNOWN_DOCUMENT,
                relevance=match.score,
                chunk_text=match.metadata.get("chunk_text"),
                document_id=int(document_id),
            ))
        return sources

    def build_system_prompt(self, sources: List[Source], cost_context: str) -> str:
        documents = "\n\n".join(
            f"[Document {i}]: {s.chunk_text or ''}" for i, s in enumerate(sources, 1)
        )
        return SYSTEM_PROMPT.format(
            documents=documents or NO_DOCUMENTS,
            cost_context=cost_context,
            currency=self.config.currency,
        )

    def _generate(self, query: str, sources: List[Source], cost_context: str) -> str:
        try:
            text = self.generator.generate(
                self.build_system_prompt(sources, cost_context),
                query,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except Exception as e:
            logger.exception("Error generating answer with %s: %s", self.generator.model, e)
            return GENERATION_FALLBACK

        if not text or not text.strip():
            logger.warning("Generator %s returned an empty answer", self.generator.model)
            return GENERATION_FALLBACK
        return text.strip()

    def _extract_breakdown(self, answer: str) -> Optional[CostBreakdown]:
        if answer == GENERATION_FALLBACK:
            return None
        try:
            breakdown = self.extractor.extract(answer)
        except Exception as e:
            logger.exception("Cost breakdown extraction failed: %s", e)
            return None
        if breakdown is None or breakdown.is_empty():
            return None
        return breakdown
