"""Data models for the retrieval subsystem."""

from dataclasses import dataclass, field


@dataclass
class DocumentChunk:
    """A bounded slice of a document's normalized text."""

    chunk_id: str
    document_id: str
    ordinal: int
    content: str


@dataclass(frozen=True)
class Document:
    """Summary row for one ingested document."""

    document_id: str
    file_name: str
    uploaded_at: str
    total_chunks: int


@dataclass(frozen=True)
class IndexMatch:
    """A stored chunk returned by a nearest-neighbour query.

    ``distance`` is cosine distance, so smaller means more similar.
    """

    chunk_id: str
    content: str
    distance: float
    document_id: str
    file_name: str
    ordinal: int
    total_chunks: int
    uploaded_at: str


@dataclass(frozen=True)
class IndexStats:
    """Aggregate counts over the vector index."""

    total_chunks: int
    total_documents: int
    documents: list[Document] = field(default_factory=list)


@dataclass(frozen=True)
class RetrievalResult:
    """One ranked retrieval hit, ready for display or prompt assembly."""

    chunk_id: str
    text: str
    document_id: str
    file_name: str
    relevance_score: float
    ordinal: int


@dataclass
class RetrievedContext:
    """Outcome of a best-effort retrieval call."""

    has_context: bool
    context: str = ""
    sources: list[str] = field(default_factory=list)
    results: list[RetrievalResult] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class IngestResult:
    """Identifiers produced by ingesting one document."""

    document_id: str
    file_name: str
    chunk_count: int


@dataclass(frozen=True)
class TranscriptEntry:
    """Represents a single line in the interview conversation log."""

    role: str
    content: str
    timestamp: str
