"""ExamCoach v0.1 - Oral exam practice with retrieval-grounded sessions."""

from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .errors import (
    EmbeddingError,
    ExamCoachError,
    IndexUnavailableError,
    SessionCreationError,
    TransportError,
    TurnStateError,
    ValidationError,
)
from .models import (
    Document,
    DocumentChunk,
    IndexMatch,
    IndexStats,
    IngestResult,
    RetrievalResult,
    RetrievedContext,
    TranscriptEntry,
)
from .pipeline import RAGPipeline
from .realtime import (
    RealtimeSession,
    RealtimeTransport,
    SessionConfig,
    SessionNegotiator,
    TurnController,
    TurnState,
)
from .retriever import Retriever, format_context_for_ai
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "Document",
    "DocumentChunk",
    "DocumentLoader",
    "EmbeddingError",
    "EmbeddingService",
    "ExamCoachError",
    "FaissVectorStore",
    "IndexMatch",
    "IndexStats",
    "IndexUnavailableError",
    "IngestResult",
    "RAGPipeline",
    "RealtimeSession",
    "RealtimeTransport",
    "RetrievalResult",
    "RetrievedContext",
    "Retriever",
    "SQLiteVectorStore",
    "SessionConfig",
    "SessionCreationError",
    "SessionNegotiator",
    "TextChunker",
    "TranscriptEntry",
    "TransportError",
    "TurnController",
    "TurnState",
    "TurnStateError",
    "ValidationError",
    "format_context_for_ai",
    "get_vector_store",
]
