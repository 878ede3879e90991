"""SQLite-based vector storage with numpy file backend."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import numpy as np

from examcoach.config import config
from examcoach.errors import IndexUnavailableError
from examcoach.vector_store.base import BaseSQLiteStore

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.

        Raises:
            IndexUnavailableError: If the vectors directory cannot be created.
        """
        self.vectors_dir = Path(vectors_dir)
        try:
            self.vectors_dir.mkdir(exist_ok=True, parents=True)
        except OSError as exc:
            msg = f"Cannot create vectors directory {self.vectors_dir}"
            raise IndexUnavailableError(msg) from exc

        self.embeddings: np.ndarray | None = None
        self.vector_ids: list[int] = []

        super().__init__(db_path)

    def _dimension(self) -> int | None:
        return None if self.embeddings is None else int(self.embeddings.shape[1])

    def _add_vectors(
        self,
        cursor: sqlite3.Cursor,
        vector_ids: list[int],
        vectors: np.ndarray,
    ) -> None:
        written: list[tuple[int, str | None]] = []
        for vector_id, embedding in zip(vector_ids, vectors, strict=True):
            vector_filename = f"chunk{vector_id:08d}.npy"
            try:
                np.save(self.vectors_dir / vector_filename, embedding)
            except OSError as exc:
                logger.exception("Unable to write vector file %s", vector_filename)
                self._remove_vectors(written)
                msg = f"Vector file could not be written: {exc}"
                raise IndexUnavailableError(msg) from exc
            written.append((vector_id, vector_filename))
            cursor.execute(
                "UPDATE chunks SET vector_file = ? WHERE id = ?",
                (vector_filename, vector_id),
            )

    def _remove_vectors(self, rows: list[tuple[int, str | None]]) -> None:
        for _row_id, vector_file in rows:
            if vector_file:
                (self.vectors_dir / vector_file).unlink(missing_ok=True)

    def _after_write(self) -> None:
        self._rebuild_embeddings_matrix()

    def _rebuild_embeddings_matrix(self) -> None:
        """Rebuild the embeddings matrix from individual vector files."""
        with self._transaction() as cursor:
            cursor.execute(
                """
                SELECT id, vector_file FROM chunks
                WHERE vector_file IS NOT NULL
                ORDER BY id
                """
            )
            rows = cursor.fetchall()

        embeddings_list = []
        vector_ids = []
        for vector_id, vector_file in rows:
            vector_path = self.vectors_dir / vector_file
            if vector_path.exists():
                embeddings_list.append(np.load(vector_path))
                vector_ids.append(int(vector_id))
            else:
                logger.warning("Vector file not found: %s", vector_path)

        self.vector_ids = vector_ids
        self.embeddings = np.vstack(embeddings_list) if embeddings_list else None

        logger.info("Rebuilt embeddings matrix with %d vectors", len(vector_ids))

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and document embeddings.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each document embedding.
        """
        query_norm = np.linalg.norm(query_embedding)
        doc_norms = np.linalg.norm(embeddings, axis=1)
        denominators = doc_norms * query_norm
        dots = embeddings @ query_embedding
        return np.divide(
            dots,
            denominators,
            out=np.zeros_like(dots, dtype="float64"),
            where=denominators != 0,
        )

    def _nearest(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        if self.embeddings is None:
            return []

        similarities = self.cosine_similarity(query, self.embeddings)
        top_indices = np.argsort(similarities)[::-1][:k]
        return [(self.vector_ids[idx], float(similarities[idx])) for idx in top_indices]

    def save(self) -> None:  # noqa: PLR6301
        """Save operation - data is already persisted in SQLite and files.

        Note:
            This method is kept as an instance method for interface consistency
            with other vector store implementations, even though it does not use `self`.
        """
        logger.info("Data already persisted in SQLite database and vector files")

    def load(self) -> None:
        """Load the embeddings matrix for the stored chunks."""
        self._rebuild_embeddings_matrix()
        logger.info("Loaded %d chunks from SQLite vector store", len(self.vector_ids))
