"""Shared SQLite metadata layer for the vector store backends."""

from __future__ import annotations

import datetime
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from examcoach.config import config
from examcoach.errors import IndexUnavailableError, ValidationError
from examcoach.models import Document, DocumentChunk, IndexMatch, IndexStats

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

logger = config.get_logger(__name__)

UNKNOWN_FILE_NAME = "unknown"

_MATCH_COLUMNS = """
    id,
    chunk_id,
    content,
    document_id,
    file_name,
    ordinal,
    total_chunks,
    uploaded_at
"""


def make_chunk_id(document_id: str, ordinal: int) -> str:
    """Derive the stable chunk id for a document ordinal.

    Returns:
        Chunk id of the form ``<document_id>_chunk_<ordinal>``.
    """
    return f"{document_id}_chunk_{ordinal}"


class BaseSQLiteStore:
    """Chunk metadata in SQLite plus the operations shared by all backends.

    Subclasses own the vectors themselves and implement ``_add_vectors``,
    ``_remove_vectors``, ``_nearest``, ``_dimension``, ``save`` and ``load``.
    Every SQLite row id doubles as the vector id in the backend.
    """

    backend = "base"

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists.

        Raises:
            IndexUnavailableError: If the database location cannot be used.
        """
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(exist_ok=True, parents=True)
        except OSError as exc:
            msg = f"Cannot create vector store directory for {self.db_path}"
            raise IndexUnavailableError(msg) from exc
        self._create_tables()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside one committed-or-rolled-back transaction.

        Raises:
            IndexUnavailableError: If SQLite reports any error.
        """
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as exc:
            logger.exception("Unable to open vector store database %s", self.db_path)
            msg = f"Vector store database unavailable: {exc}"
            raise IndexUnavailableError(msg) from exc

        try:
            with conn:
                yield conn.cursor()
        except sqlite3.Error as exc:
            logger.exception("Vector store metadata operation failed")
            msg = f"Vector store operation failed: {exc}"
            raise IndexUnavailableError(msg) from exc
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create the chunk metadata table if it doesn't exist."""
        with self._transaction() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chunk_id TEXT NOT NULL UNIQUE,
                    document_id TEXT NOT NULL,
                    ordinal INTEGER NOT NULL,
                    total_chunks INTEGER NOT NULL,
                    file_name TEXT NOT NULL,
                    uploaded_at TEXT NOT NULL,
                    content TEXT NOT NULL,
                    vector_file TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id)",
            )

    # Backend hooks

    def _dimension(self) -> int | None:
        raise NotImplementedError

    def _add_vectors(
        self,
        cursor: sqlite3.Cursor,
        vector_ids: list[int],
        vectors: np.ndarray,
    ) -> None:
        raise NotImplementedError

    def _remove_vectors(self, rows: list[tuple[int, str | None]]) -> None:
        raise NotImplementedError

    def _nearest(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        """Return ``(vector_id, cosine_similarity)`` pairs, best first."""
        raise NotImplementedError

    def _after_write(self) -> None:
        """Refresh in-memory state once a write transaction has committed."""

    def save(self) -> None:
        raise NotImplementedError

    def load(self) -> None:
        raise NotImplementedError

    # Shared operations

    def _check_dimension(self, dimension: int) -> None:
        expected = self._dimension()
        if expected is not None and dimension != expected:
            msg = (
                f"Embedding dimension {dimension} does not match "
                f"index dimension {expected}"
            )
            raise ValidationError(msg)

    @staticmethod
    def _delete_rows(
        cursor: sqlite3.Cursor,
        document_id: str,
    ) -> list[tuple[int, str | None]]:
        cursor.execute(
            "SELECT id, vector_file FROM chunks WHERE document_id = ?",
            (document_id,),
        )
        rows = [(int(row[0]), row[1]) for row in cursor.fetchall()]
        if rows:
            cursor.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        return rows

    def upsert(
        self,
        document_id: str,
        chunks: Sequence[str],
        embeddings: Sequence[np.ndarray],
        metadata: dict[str, Any] | None = None,
        *,
        replace: bool = True,
    ) -> list[str]:
        """Store one document's chunks with their embeddings.

        Args:
            document_id: Owner of every chunk written.
            chunks: Chunk texts in document order.
            embeddings: One vector per chunk.
            metadata: ``file_name`` and ``uploaded_at`` for the document.
            replace: Delete any chunks already stored for ``document_id`` in
                the same transaction. With ``replace=False`` a re-used chunk
                id raises ValidationError.

        Returns:
            The generated chunk ids, ordered by ordinal.

        Raises:
            ValidationError: On length or dimension mismatches, or duplicate
                chunk ids when ``replace`` is False.
        """
        if not document_id:
            msg = "document_id is required"
            raise ValidationError(msg)
        if len(chunks) != len(embeddings):
            msg = (
                f"Got {len(chunks)} chunks but {len(embeddings)} embeddings "
                f"for document {document_id}"
            )
            raise ValidationError(msg)
        if not chunks:
            return []

        vectors = np.vstack([
            np.asarray(embedding, dtype="float32") for embedding in embeddings
        ])
        self._check_dimension(vectors.shape[1])

        metadata = metadata or {}
        file_name = str(metadata.get("file_name") or UNKNOWN_FILE_NAME)
        uploaded_at = str(
            metadata.get("uploaded_at")
            or datetime.datetime.now(tz=datetime.UTC).isoformat()
        )
        total_chunks = len(chunks)
        chunk_ids = [make_chunk_id(document_id, i) for i in range(total_chunks)]

        with self._transaction() as cursor:
            removed = self._delete_rows(cursor, document_id) if replace else []

            vector_ids: list[int] = []
            for ordinal, (chunk_id, content) in enumerate(
                zip(chunk_ids, chunks, strict=True)
            ):
                try:
                    cursor.execute(
                        """
                        INSERT INTO chunks (
                            chunk_id,
                            document_id,
                            ordinal,
                            total_chunks,
                            file_name,
                            uploaded_at,
                            content
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            chunk_id,
                            document_id,
                            ordinal,
                            total_chunks,
                            file_name,
                            uploaded_at,
                            content,
                        ),
                    )
                except sqlite3.IntegrityError as exc:
                    msg = (
                        f"Chunk {chunk_id} already exists; delete document "
                        f"{document_id} before re-ingesting it"
                    )
                    raise ValidationError(msg) from exc
                row_id = cursor.lastrowid
                if row_id is None:
                    msg = "Failed to insert chunk row"
                    raise IndexUnavailableError(msg)
                vector_ids.append(int(row_id))

            self._add_vectors(cursor, vector_ids, vectors)

        # Old vectors go only after the new rows have committed.
        if removed:
            self._remove_vectors(removed)
        self._after_write()
        if removed:
            logger.info(
                "Replaced %d existing chunks of document %s", len(removed), document_id
            )
        logger.info("Added %d chunks from document %s", total_chunks, document_id)
        return chunk_ids

    def query(self, query_embedding: np.ndarray, k: int = 5) -> list[IndexMatch]:
        """Return up to ``k`` stored chunks nearest to ``query_embedding``.

        Returns:
            Matches ordered by ascending cosine distance. Empty for ``k <= 0``
            or an empty index.
        """
        if k <= 0:
            return []

        query = np.asarray(query_embedding, dtype="float32").reshape(-1)
        self._check_dimension(query.shape[0])

        hits = self._nearest(query, k)
        if not hits:
            return []

        similarity_by_id = dict(hits)
        placeholders = ", ".join("?" for _ in similarity_by_id)
        with self._transaction() as cursor:
            cursor.execute(
                f"SELECT {_MATCH_COLUMNS} FROM chunks WHERE id IN ({placeholders})",  # noqa: S608
                tuple(similarity_by_id),
            )
            rows = cursor.fetchall()

        matches = [
            IndexMatch(
                chunk_id=chunk_id,
                content=content,
                distance=1.0 - similarity_by_id[int(row_id)],
                document_id=document_id,
                file_name=file_name,
                ordinal=int(ordinal),
                total_chunks=int(total_chunks),
                uploaded_at=uploaded_at,
            )
            for (
                row_id,
                chunk_id,
                content,
                document_id,
                file_name,
                ordinal,
                total_chunks,
                uploaded_at,
            ) in rows
        ]
        matches.sort(key=lambda match: match.distance)
        for match in matches:
            logger.debug(
                "Retrieved chunk %s with distance %.4f", match.chunk_id, match.distance
            )
        return matches[:k]

    def delete_document(self, document_id: str) -> int:
        """Remove every chunk of ``document_id``.

        Returns:
            Number of chunks removed; 0 when the document is unknown.
        """
        with self._transaction() as cursor:
            removed = self._delete_rows(cursor, document_id)

        if removed:
            self._remove_vectors(removed)
            self._after_write()
            logger.info("Deleted document %s (%d chunks)", document_id, len(removed))
        else:
            logger.info("Document %s not found; nothing to delete", document_id)
        return len(removed)

    def list_documents(self) -> list[Document]:
        """Summarize stored chunks per document, first-seen row wins.

        Returns:
            One Document per distinct document id in insertion order.
        """
        with self._transaction() as cursor:
            cursor.execute(
                """
                SELECT document_id, file_name, uploaded_at, total_chunks
                FROM chunks
                ORDER BY id
                """
            )
            rows = cursor.fetchall()

        documents: dict[str, Document] = {}
        for document_id, file_name, uploaded_at, total_chunks in rows:
            if document_id not in documents:
                documents[document_id] = Document(
                    document_id=document_id,
                    file_name=file_name,
                    uploaded_at=uploaded_at,
                    total_chunks=int(total_chunks),
                )
        return list(documents.values())

    def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Fetch the stored chunks of one document ordered by ordinal.

        Returns:
            DocumentChunk records; vectors stay in the backend.
        """
        with self._transaction() as cursor:
            cursor.execute(
                """
                SELECT chunk_id, document_id, ordinal, content
                FROM chunks
                WHERE document_id = ?
                ORDER BY ordinal
                """,
                (document_id,),
            )
            rows = cursor.fetchall()

        return [
            DocumentChunk(
                chunk_id=chunk_id,
                document_id=doc_id,
                ordinal=int(ordinal),
                content=content,
            )
            for chunk_id, doc_id, ordinal, content in rows
        ]

    def count(self) -> int:
        """Return the number of stored chunk records."""  # noqa: DOC201
        with self._transaction() as cursor:
            cursor.execute("SELECT COUNT(*) FROM chunks")
            return int(cursor.fetchone()[0])

    def stats(self) -> IndexStats:
        """Return chunk and document totals with the listing."""  # noqa: DOC201
        documents = self.list_documents()
        return IndexStats(
            total_chunks=self.count(),
            total_documents=len(documents),
            documents=documents,
        )
