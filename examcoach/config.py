"""Configuration management for the ExamCoach application."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

VECTOR_BACKENDS = ("faiss", "sqlite")

env_path = Path(__file__).resolve().parents[1] / ".env"

if env_path.exists():
    load_dotenv(env_path)


class Config:
    """Typed view over ExamCoach environment settings."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Read the API key from the environment at call time.

        Returns:
            The key, or an empty string when unset.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Ingestion Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "20"))

    # Vector Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "faiss").lower()
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/vector_store.db")
    )
    VECTOR_STORE_DIR: Path = Path(os.getenv("VECTOR_STORE_DIR", "data/vectors"))
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )

    # Retrieval Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "3"))
    RELEVANCE_THRESHOLD: float = float(os.getenv("RELEVANCE_THRESHOLD", "0.7"))
    SESSION_BOOTSTRAP_QUERY: str = os.getenv(
        "SESSION_BOOTSTRAP_QUERY",
        "IELTS speaking test questions and examples",
    )

    # Realtime Session Configuration
    REALTIME_SESSIONS_URL: str = os.getenv(
        "REALTIME_SESSIONS_URL",
        "https://api.openai.com/v1/realtime/sessions",
    )
    REALTIME_CALLS_URL: str = os.getenv(
        "REALTIME_CALLS_URL",
        "https://api.openai.com/v1/realtime",
    )
    REALTIME_MODEL: str = os.getenv(
        "REALTIME_MODEL", "gpt-4o-mini-realtime-preview-2024-12-17"
    )
    REALTIME_VOICE: str = os.getenv("REALTIME_VOICE", "alloy")
    REALTIME_TEMPERATURE: float = float(os.getenv("REALTIME_TEMPERATURE", "0.8"))
    REALTIME_MAX_OUTPUT_TOKENS: int = int(
        os.getenv("REALTIME_MAX_OUTPUT_TOKENS", "4096")
    )
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "ExamCoach/1.0")

    @classmethod
    def validate(cls) -> None:
        """Fail fast on settings the pipeline cannot run with.

        Raises:
            ValueError: If the API key is missing, chunking settings leave no
                room for progress, or the vector backend is unknown.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)
        if not 0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE:
            msg = (
                f"CHUNK_OVERLAP ({cls.CHUNK_OVERLAP}) must be non-negative and "
                f"smaller than CHUNK_SIZE ({cls.CHUNK_SIZE})"
            )
            raise ValueError(msg)
        if cls.VECTOR_BACKEND not in VECTOR_BACKENDS:
            msg = f"VECTOR_BACKEND must be one of {', '.join(VECTOR_BACKENDS)}"
            raise ValueError(msg)

    @classmethod
    def _environment_is(cls, name: str) -> bool:
        return cls.ENVIRONMENT.lower() == name

    @classmethod
    def is_development(cls) -> bool:
        """Whether ``ENVIRONMENT`` names a development deployment."""  # noqa: DOC201
        return cls._environment_is("development")

    @classmethod
    def is_production(cls) -> bool:
        """Whether ``ENVIRONMENT`` names a production deployment."""  # noqa: DOC201
        return cls._environment_is("production")

    @classmethod
    def setup_logging(cls) -> None:
        """Configure logging once at application startup.

        The application level comes from ``LOG_LEVEL``; the HTTP client
        libraries follow ``OPENAI_LOG_LEVEL`` so request lines stay quiet.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return the logger for ``name``, usually ``__name__``."""  # noqa: DOC201
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Headers sent on every realtime HTTP request.

        Returns:
            A User-Agent header when ``API_USER_AGENT`` is set, else nothing.
        """
        if not cls.API_USER_AGENT:
            return {}
        return {"User-Agent": cls.API_USER_AGENT}


config = Config()
