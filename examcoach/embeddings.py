"""OpenAI embeddings service."""

import numpy as np
from openai import OpenAI

from .config import config
from .errors import EmbeddingError, ValidationError

logger = config.get_logger(__name__)


class EmbeddingService:
    """Turns text into fixed-dimension vectors with batched OpenAI calls."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        batch_size: int | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            batch_size: Texts per request. If None, uses
                config.EMBEDDING_BATCH_SIZE.
        """
        self.api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=self.api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE

    def _require_credential(self) -> None:
        if not self.api_key:
            msg = "API key required for generating embeddings"
            raise EmbeddingError(msg)

    def embed_query(self, text: str) -> np.ndarray:
        """Get embedding for a single query text.

        Returns:
            np.ndarray: The embedding vector for the input text.

        Raises:
            EmbeddingError: If no credential is configured or the API call fails.
        """
        return self.embed([text], batch_size=1)[0]

    def embed(
        self,
        texts: list[str],
        batch_size: int | None = None,
    ) -> list[np.ndarray]:
        """Get embeddings for multiple texts in batches.

        The call is all-or-nothing: if any batch fails, vectors from earlier
        batches are discarded and EmbeddingError is raised.

        Args:
            texts: List of input texts to generate embeddings for.
            batch_size: Number of texts to send in each request.

        Returns:
            list[np.ndarray]: One vector per input text, in input order.

        Raises:
            ValidationError: If the batch size is smaller than 1.
            EmbeddingError: If no credential is configured or any batch fails.
        """
        size = self.batch_size if batch_size is None else batch_size
        if size < 1:
            msg = f"batch_size must be at least 1, got {size}"
            raise ValidationError(msg)
        if not texts:
            return []
        self._require_credential()

        embeddings: list[np.ndarray] = []

        for i in range(0, len(texts), size):
            batch_texts = texts[i : i + size]
            try:
                response = self.client.embeddings.create(
                    model=self.model,
                    input=batch_texts,
                )
            except Exception as exc:
                logger.exception(
                    "Error generating embeddings for batch %d", i // size + 1
                )
                msg = f"Failed to generate embeddings: {exc}"
                raise EmbeddingError(msg) from exc

            if len(response.data) != len(batch_texts):
                msg = (
                    f"Embedding response returned {len(response.data)} vectors "
                    f"for {len(batch_texts)} inputs"
                )
                raise EmbeddingError(msg)

            embeddings.extend(np.array(data.embedding) for data in response.data)
            logger.info(
                "Generated embeddings for chunks %d-%d of %d",
                i + 1,
                min(i + size, len(texts)),
                len(texts),
            )

        return embeddings
