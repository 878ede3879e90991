"""Best-effort retrieval of reference material for the examiner prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config
from .models import RetrievalResult, RetrievedContext

if TYPE_CHECKING:
    from .embeddings import EmbeddingService
    from .vector_store import VectorStore

logger = config.get_logger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"

MATERIALS_HEADER = "\n\n**AVAILABLE REFERENCE MATERIALS:**\n"

MATERIALS_FOOTER = """

**INSTRUCTIONS FOR USING MATERIALS:**
- Use the above materials when relevant to the question
- Cite the source when using specific examples or information
- Combine material knowledge with general IELTS expertise
- Provide both material-based and general examples when appropriate
"""


def format_context_for_ai(retrieved: RetrievedContext) -> str:
    """Render retrieved material as a block to append to agent instructions.

    Returns:
        Header, source list, joined context and usage footer, or an empty
        string when nothing was retrieved.
    """
    if not retrieved.has_context:
        return ""

    sources = f"Sources: {', '.join(retrieved.sources)}\n\n"
    return MATERIALS_HEADER + sources + retrieved.context + MATERIALS_FOOTER


class Retriever:
    """Answers "what material is relevant to this query" on top of the index."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
    ) -> None:
        """Initialize the retriever.

        Args:
            embedding_service: Service used to embed queries.
            vector_store: Index holding the ingested chunks.
        """
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    def retrieve_context(self, query: str, top_k: int = 3) -> RetrievedContext:
        """Retrieve and assemble the chunks most similar to ``query``.

        Failures are logged and reported through ``error`` instead of raised,
        so callers can always continue without material.

        Returns:
            RetrievedContext with ``has_context`` False when nothing matched.
        """
        try:
            query_embedding = self.embedding_service.embed_query(query)
            matches = self.vector_store.query(query_embedding, top_k)
        except Exception as exc:
            logger.exception("Error retrieving context")
            return RetrievedContext(has_context=False, error=str(exc))

        if not matches:
            return RetrievedContext(has_context=False)

        results = [
            RetrievalResult(
                chunk_id=match.chunk_id,
                text=match.content,
                document_id=match.document_id,
                file_name=match.file_name,
                relevance_score=1.0 - match.distance,
                ordinal=match.ordinal,
            )
            for match in matches
        ]

        context = CONTEXT_SEPARATOR.join(
            f"[Source {i}: {result.file_name}]\n{result.text}"
            for i, result in enumerate(results, start=1)
        )
        sources = list(dict.fromkeys(result.file_name for result in results))

        logger.info(
            "Retrieved %d chunks from %d source(s) for query",
            len(results),
            len(sources),
        )
        return RetrievedContext(
            has_context=True,
            context=context,
            sources=sources,
            results=results,
        )

    def has_relevant_materials(self, query: str, threshold: float = 0.7) -> bool:
        """Check whether the best match for ``query`` clears ``threshold``.

        Returns:
            True only if retrieval succeeded and the top score is at least
            ``threshold``.
        """
        retrieved = self.retrieve_context(query, top_k=1)
        if not retrieved.has_context or not retrieved.results:
            return False
        return retrieved.results[0].relevance_score >= threshold
