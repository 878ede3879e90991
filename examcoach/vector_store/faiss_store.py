"""FAISS-backed vector storage with SQLite metadata."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from examcoach.config import config
from examcoach.errors import IndexUnavailableError
from examcoach.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    import sqlite3

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Vector storage using FAISS for embeddings and SQLite for metadata.

    Vectors are L2-normalised before they reach an inner-product index, so
    search scores are cosine similarities.
    """

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
    ) -> None:
        """Configure FAISS-backed vector store."""
        self.index_path = Path(index_path)
        self.index: faiss.IndexIDMap | None = None

        super().__init__(db_path)

    @staticmethod
    def _normalize(vectors: np.ndarray) -> np.ndarray:
        """Normalize rows for cosine similarity using inner product search.

        Returns:
            A float32 copy with unit-length rows; zero rows are left as is.
        """
        matrix = np.array(vectors, dtype="float32", ndmin=2)
        faiss.normalize_L2(matrix)
        return matrix

    def _init_index(self, dimension: int) -> None:
        """Initialize an empty FAISS index."""
        base_index = faiss.IndexFlatIP(dimension)
        self.index = faiss.IndexIDMap(base_index)
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def _dimension(self) -> int | None:
        return None if self.index is None else int(self.index.d)

    def _add_vectors(
        self,
        cursor: sqlite3.Cursor,  # noqa: ARG002
        vector_ids: list[int],
        vectors: np.ndarray,
    ) -> None:
        normalized = self._normalize(vectors)
        if self.index is None:
            self._init_index(normalized.shape[1])

        ids_array = np.asarray(vector_ids, dtype="int64")
        try:
            self.index.add_with_ids(normalized, ids_array)  # pyright: ignore[reportCallIssue, reportOptionalMemberAccess]
        except RuntimeError as exc:
            logger.exception("FAISS index rejected %d vectors", len(vector_ids))
            msg = f"FAISS index write failed: {exc}"
            raise IndexUnavailableError(msg) from exc
        logger.info("Added %d vectors to FAISS index", len(vector_ids))

    def _remove_vectors(self, rows: list[tuple[int, str | None]]) -> None:
        if self.index is None or not rows:
            return
        ids_array = np.asarray([row_id for row_id, _ in rows], dtype="int64")
        removed = self.index.remove_ids(ids_array)
        logger.info("Removed %d vectors from FAISS index", removed)

    def _nearest(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        index = self.index
        if index is None or index.ntotal == 0:
            return []

        scores, vector_ids = index.search(
            self._normalize(query),
            min(k, index.ntotal),
        )  # pyright: ignore[reportCallIssue]

        return [
            (int(vector_id), float(score))
            for score, vector_id in zip(scores[0], vector_ids[0], strict=True)
            if int(vector_id) != -1  # faiss returns -1 for empty results
        ]

    def save(self) -> None:
        """Persist FAISS index to disk.

        Raises:
            IndexUnavailableError: If the index file cannot be written.
        """
        index = self.index
        if index is None:
            logger.warning("No FAISS index to save")
            return

        try:
            self.index_path.parent.mkdir(exist_ok=True, parents=True)
            faiss.write_index(index, str(self.index_path))
        except (OSError, RuntimeError) as exc:
            logger.exception("Unable to save FAISS index to %s", self.index_path)
            msg = f"FAISS index could not be saved: {exc}"
            raise IndexUnavailableError(msg) from exc
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk and check it against the metadata.

        Raises:
            IndexUnavailableError: If the index file exists but cannot be read.
        """
        if self.index_path.exists():
            try:
                loaded_index = faiss.read_index(str(self.index_path))
            except RuntimeError as exc:
                logger.exception("Unable to read FAISS index %s", self.index_path)
                msg = f"FAISS index could not be loaded: {exc}"
                raise IndexUnavailableError(msg) from exc
            self.index = loaded_index
            logger.info(
                "Loaded FAISS index from %s with %d vectors",
                self.index_path,
                loaded_index.ntotal,
            )
        else:
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            self.index = None

        index = self.index
        if index is not None and not isinstance(
            index, (faiss.IndexIDMap, faiss.IndexIDMap2)
        ):
            logger.warning(
                "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                type(index).__name__,
            )
            self.index = faiss.IndexIDMap(index)

        stored = self.count()
        indexed = 0 if self.index is None else self.index.ntotal
        if stored != indexed:
            logger.warning(
                "Metadata holds %d chunks but FAISS index holds %d vectors; "
                "re-ingest materials to rebuild the index",
                stored,
                indexed,
            )
