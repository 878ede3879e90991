"""Test configuration and fixtures for ExamCoach tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService fixtures
- Text processing fixtures
- Vector store fixtures
- Realtime HTTP and media fakes
- Pipeline factories
"""

import hashlib
from unittest.mock import Mock, patch

import httpx
import numpy as np
import pytest

from examcoach import (
    EmbeddingService,
    FaissVectorStore,
    RAGPipeline,
    SQLiteVectorStore,
    TextChunker,
    TurnController,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files.

    All test constants are defined here to maintain consistency across
    the test suite and make it easy to update values globally.
    """

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    DEFAULT_EMBEDDING_DIMENSION = 384

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 1000
    DEFAULT_CHUNK_OVERLAP = 200

    # Realtime Configuration
    SESSIONS_URL = "https://realtime.test/v1/realtime/sessions"
    CALLS_URL = "https://realtime.test/v1/realtime"
    SESSION_ID = "sess_test123"
    EPHEMERAL_KEY = "ek_test_secret"
    EXPIRES_AT = 4_102_444_800  # 2100-01-01


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        """Initialize mock embedding service.

        Args:
            dimension: Dimensionality of generated embeddings.
        """
        self.dimension = dimension

    def get_embedding(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def embed(
        self,
        texts: list[str],
        batch_size: int | None = None,  # noqa: ARG002
    ) -> list[np.ndarray]:
        return [self.get_embedding(text) for text in texts]

    def embed_query(self, text: str) -> np.ndarray:
        return self.get_embedding(text)


class RecordingMedia:
    """Media controls fake that records every call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bool | None]] = []

    def set_remote_muted(self, muted: bool) -> None:  # noqa: FBT001
        self.calls.append(("remote_muted", muted))

    def set_microphone_enabled(self, enabled: bool) -> None:  # noqa: FBT001
        self.calls.append(("microphone_enabled", enabled))

    def release(self) -> None:
        self.calls.append(("release", None))


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_session_response(**overrides) -> dict:  # noqa: ANN003
    """Build a realtime session-creation response body."""
    body = {
        "id": TestConstants.SESSION_ID,
        "object": "realtime.session",
        "model": "gpt-4o-mini-realtime-preview-2024-12-17",
        "voice": "alloy",
        "client_secret": {
            "value": TestConstants.EPHEMERAL_KEY,
            "expires_at": TestConstants.EXPIRES_AT,
        },
    }
    body.update(overrides)
    return body


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch ``Embeddings.create`` on the OpenAI SDK and yield the mock."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


EMBEDDING_SCENARIOS = {
    # one response for a single query text
    "single_success": lambda _msg: {
        "return_value": create_mock_openai_response([[0.1, 0.2, 0.3, 0.4, 0.5]])
    },
    # three vectors in one response
    "batch_success": lambda _msg: {
        "return_value": create_mock_openai_response(
            [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6], [0.7, 0.8, 0.9]]
        )
    },
    "error": lambda msg: {"side_effect": Exception(msg)},
    # two inputs, then one, for batch_size=2 over three texts
    "multiple_batches": lambda _msg: {
        "side_effect": [
            create_mock_openai_response([[0.1, 0.2], [0.3, 0.4]]),
            create_mock_openai_response([[0.5, 0.6]]),
        ]
    },
    "partial_failure": lambda _msg: {
        "side_effect": [
            create_mock_openai_response([[0.1, 0.2], [0.3, 0.4]]),
            Exception("Second batch failed"),
        ]
    },
}


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Configure the patched embeddings API for one of ``EMBEDDING_SCENARIOS``."""

    def _configure(scenario: str, error_message: str = "API Error") -> Mock:
        openai_embeddings_api_mock.reset_mock(return_value=True, side_effect=True)
        openai_embeddings_api_mock.configure_mock(
            **EMBEDDING_SCENARIOS[scenario](error_message)
        )
        return openai_embeddings_api_mock

    return _configure


@pytest.fixture
def embedding_service_factory():
    """Build EmbeddingService instances against the test key and model."""

    def _create_service(
        api_key: str | None = None,
        model: str | None = None,
        batch_size: int | None = None,
    ) -> EmbeddingService:
        return EmbeddingService(
            api_key=api_key or TestConstants.TEST_API_KEY,
            model=model or TestConstants.TEST_OPENAI_MODEL,
            batch_size=batch_size,
        )

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    return embedding_service_factory()


@pytest.fixture
def text_chunker_small():
    """Chunker with 100-character windows and 20 characters of overlap."""
    return TextChunker(
        chunk_size=TestConstants.SMALL_CHUNK_SIZE,
        overlap=TestConstants.SMALL_CHUNK_OVERLAP,
    )


@pytest.fixture
def text_chunker_default():
    return TextChunker(
        chunk_size=TestConstants.DEFAULT_CHUNK_SIZE,
        overlap=TestConstants.DEFAULT_CHUNK_OVERLAP,
    )


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""

    def _create_mock_embedding(
        text: str, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> np.ndarray:
        if dimension != TestConstants.DEFAULT_EMBEDDING_DIMENSION:
            return MockEmbeddingService(dimension).get_embedding(text)
        return mock_embedding_service.get_embedding(text)

    return _create_mock_embedding


@pytest.fixture
def mock_embeddings_batch(mock_embedding_service):
    """Factory function to create batch mock embeddings using the service."""

    def _create_mock_embeddings_batch(texts: list[str]) -> list[np.ndarray]:
        return mock_embedding_service.embed(texts)

    return _create_mock_embeddings_batch


@pytest.fixture
def temp_vector_store(tmp_path) -> SQLiteVectorStore:
    """Create temporary SQLite vector store for testing."""
    return SQLiteVectorStore(tmp_path / "test_store.db", tmp_path / "vectors")


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    """Create temporary FAISS vector store for testing."""
    return FaissVectorStore(
        db_path=tmp_path / "faiss_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture(params=["sqlite", "faiss"])
def vector_store(request, tmp_path):
    """Each vector store backend in turn, backed by a temporary directory."""
    if request.param == "sqlite":
        return SQLiteVectorStore(tmp_path / "store.db", tmp_path / "vectors")
    return FaissVectorStore(
        db_path=tmp_path / "store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture
def sample_texts():
    """Short IELTS reference snippets used as chunk texts."""
    return [
        "Part 1 questions cover home, work, studies and hobbies.",
        "Describe a book you recently read and explain why you liked it.",
        "A Band 9 answer uses a wide range of vocabulary naturally.",
        "Part 3 asks abstract questions about society and change.",
        "Fluency and coherence measure how smoothly ideas are linked.",
    ]


@pytest.fixture
def populated_store(vector_store, sample_texts, mock_embeddings_batch):
    """Vector store holding ``doc_1`` (notes.pdf, 3 chunks) and ``doc_2`` (2 chunks)."""
    vector_store.upsert(
        "doc_1",
        sample_texts[:3],
        mock_embeddings_batch(sample_texts[:3]),
        {"file_name": "notes.pdf", "uploaded_at": "2024-05-01T10:00:00+00:00"},
    )
    vector_store.upsert(
        "doc_2",
        sample_texts[3:],
        mock_embeddings_batch(sample_texts[3:]),
        {"file_name": "criteria.txt", "uploaded_at": "2024-05-02T10:00:00+00:00"},
    )
    return vector_store


@pytest.fixture
def http_client_factory():
    """Factory for httpx clients whose requests are answered by ``handler``."""
    clients: list[httpx.Client] = []

    def _create_client(handler) -> httpx.Client:  # noqa: ANN001
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _create_client

    for client in clients:
        client.close()


@pytest.fixture
def session_response_factory():
    """Factory for realtime session-creation response bodies."""
    return create_session_response


@pytest.fixture
def session_endpoint(http_client_factory):
    """Mock session endpoint that records requests and returns a valid session."""
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=create_session_response())

    client = http_client_factory(_handler)
    return client, requests


@pytest.fixture
def recording_media():
    return RecordingMedia()


@pytest.fixture
def turn_controller_factory(recording_media):
    """Factory for TurnController instances wired to recording fakes."""

    def _create_controller(**kwargs) -> tuple[TurnController, list]:  # noqa: ANN003
        sent: list = []
        controller = TurnController(sent.append, recording_media, **kwargs)
        return controller, sent

    return _create_controller


@pytest.fixture
def rag_pipeline_factory(tmp_path, mock_embedding_service):
    """Factory for RAGPipeline instances with mock embeddings and temp storage."""
    pipelines: list[RAGPipeline] = []

    def _create_pipeline(
        vector_backend: str = "sqlite",
        chunk_size: int = 200,
        overlap: int = 50,
        http_client: httpx.Client | None = None,
    ) -> RAGPipeline:
        pipeline = RAGPipeline(
            openai_api_key=TestConstants.TEST_API_KEY,
            chunk_size=chunk_size,
            overlap=overlap,
            sqlite_db_path=tmp_path / f"{vector_backend}_store.db",
            vectors_dir=tmp_path / "vectors",
            vector_backend=vector_backend,
            faiss_index_path=tmp_path / "faiss" / "index.faiss",
            embedding_service=mock_embedding_service,
            http_client=http_client,
        )
        pipelines.append(pipeline)
        return pipeline

    yield _create_pipeline

    for pipeline in pipelines:
        pipeline.session_negotiator.close()
