"""Application facade over ingestion, retrieval and session negotiation."""

from __future__ import annotations

import datetime
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, cast

from .config import config
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .errors import IndexUnavailableError, ValidationError
from .models import Document, IndexStats, IngestResult, RetrievedContext
from .realtime.session import RealtimeSession, SessionConfig, SessionNegotiator
from .retriever import Retriever
from .vector_store import VectorBackend, VectorStore, get_vector_store

if TYPE_CHECKING:
    import httpx

logger = config.get_logger(__name__)


def new_document_id() -> str:
    """Generate an opaque document identifier."""  # noqa: DOC201
    return f"doc_{uuid.uuid4().hex[:12]}"


class RAGPipeline:
    """Main pipeline: Load -> Split -> Embed -> Store, then Retrieve -> Session."""

    def __init__(  # noqa: PLR0913, PLR0917
        self,
        openai_api_key: str | None = None,
        chunk_size: int | None = None,
        overlap: int | None = None,
        sqlite_db_path: Path | None = None,
        vectors_dir: Path | None = None,
        vector_backend: str | None = None,
        faiss_index_path: Path | None = None,
        *,
        embedding_service: EmbeddingService | None = None,
        vector_store: VectorStore | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the pipeline with configurable vector storage.

        Args:
            openai_api_key: OpenAI API key for embeddings and sessions.
            chunk_size: Size of text chunks. If None, uses config.CHUNK_SIZE.
            overlap: Overlap between chunks. If None, uses config.CHUNK_OVERLAP.
            sqlite_db_path: Path for the SQLite metadata database. If None, uses
                config.VECTOR_STORE_DB_PATH.
            vectors_dir: Directory for numpy vector files (SQLite backend).
                If None, uses config.VECTOR_STORE_DIR.
            vector_backend: Which vector store backend to use ("faiss" | "sqlite").
                Defaults to config.VECTOR_BACKEND.
            faiss_index_path: Path to FAISS index file. If None, uses
                config.FAISS_INDEX_PATH.
            embedding_service: Prebuilt embedding service to use instead.
            vector_store: Prebuilt vector store to use instead.
            http_client: HTTP client for the realtime session endpoint.
        """
        if chunk_size is None:
            chunk_size = config.CHUNK_SIZE
        if overlap is None:
            overlap = config.CHUNK_OVERLAP

        self.chunker = TextChunker(chunk_size=chunk_size, overlap=overlap)
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )

        if vector_store is None:
            backend_value = (
                vector_backend if vector_backend is not None else config.VECTOR_BACKEND
            )
            vector_store = get_vector_store(
                cast("VectorBackend", backend_value.lower()),
                db_path=sqlite_db_path,
                vectors_dir=vectors_dir,
                index_path=faiss_index_path,
            )
        self.vector_store = vector_store
        logger.info("Using %s vector storage", self.vector_store.backend)
        self.vector_store.load()

        self.retriever = Retriever(self.embedding_service, self.vector_store)
        self.session_negotiator = SessionNegotiator(
            self.retriever,
            api_key=openai_api_key,
            http_client=http_client,
        )

    def ingest(self, raw_text: str, file_name: str) -> IngestResult:
        """Chunk, embed and index one document.

        Returns:
            The new document id and its chunk count.

        Raises:
            ValidationError: If the text or file name is blank, or the text
                yields no chunks.
            IndexUnavailableError: If the index cannot be written. When only
                persisting fails, the document is already stored in this
                process and the message names its id.
        """
        if not file_name or not file_name.strip():
            msg = "file_name is required"
            raise ValidationError(msg)
        if not raw_text or not raw_text.strip():
            msg = f"No text to ingest for {file_name}"
            raise ValidationError(msg)

        logger.info("Processing material: %s", file_name)
        chunks = self.chunker.chunk_text(raw_text)
        if not chunks:
            msg = f"No text to ingest for {file_name}"
            raise ValidationError(msg)

        embeddings = self.embedding_service.embed(chunks)

        document_id = new_document_id()
        self.vector_store.upsert(
            document_id,
            chunks,
            embeddings,
            {
                "file_name": file_name,
                "uploaded_at": datetime.datetime.now(tz=datetime.UTC).isoformat(),
            },
        )
        try:
            self.vector_store.save()
        except IndexUnavailableError as exc:
            msg = (
                f"{file_name} was stored as {document_id} but the index could "
                f"not be saved: {exc}"
            )
            raise IndexUnavailableError(msg) from exc

        logger.info("Stored %s as %s (%d chunks)", file_name, document_id, len(chunks))
        return IngestResult(
            document_id=document_id,
            file_name=file_name,
            chunk_count=len(chunks),
        )

    def ingest_file(
        self, file_path: Path, file_name: str | None = None
    ) -> IngestResult:
        """Load a PDF or TXT file and ingest its text.

        Returns:
            The new document id and its chunk count.
        """
        text = DocumentLoader.load_document(file_path)
        return self.ingest(text, file_name or file_path.name)

    def search(self, query: str, top_k: int | None = None) -> RetrievedContext:
        """Retrieve the material most relevant to ``query``.

        Returns:
            Ranked results with the aggregate ``has_context`` and ``sources``.

        Raises:
            ValidationError: If the query is blank.
        """
        if not query or not query.strip():
            msg = "Query is required"
            raise ValidationError(msg)
        return self.retriever.retrieve_context(
            query, top_k=top_k if top_k is not None else config.RETRIEVAL_TOP_K
        )

    def has_relevant_materials(
        self, query: str, threshold: float | None = None
    ) -> bool:
        """Check whether stored material is relevant to ``query``."""  # noqa: DOC201
        return self.retriever.has_relevant_materials(
            query,
            threshold=(
                threshold if threshold is not None else config.RELEVANCE_THRESHOLD
            ),
        )

    def list_materials(self) -> list[Document]:
        """List the ingested documents."""  # noqa: DOC201
        return self.vector_store.list_documents()

    def delete_material(self, document_id: str) -> int:
        """Delete a document and all its chunks.

        Returns:
            Number of chunks removed.
        """
        removed = self.vector_store.delete_document(document_id)
        if removed:
            self.vector_store.save()
        return removed

    def get_stats(self) -> IndexStats:
        """Return document and chunk totals."""  # noqa: DOC201
        return self.vector_store.stats()

    def open_session(
        self, session_config: SessionConfig | None = None
    ) -> RealtimeSession:
        """Create an interview session grounded in stored material."""  # noqa: DOC201
        return self.session_negotiator.create_session(session_config)

    def close(self) -> None:
        """Persist the index and release HTTP resources."""
        self.vector_store.save()
        self.session_negotiator.close()
