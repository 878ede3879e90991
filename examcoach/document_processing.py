"""Document loading and text chunking functionality."""

import re
from pathlib import Path

import pypdf

from .config import config
from .errors import ValidationError

logger = config.get_logger(__name__)

_HORIZONTAL_WHITESPACE = re.compile(r"[^\S\n]+")
_NEWLINE_RUNS = re.compile(r"\s*\n\s*")


class DocumentLoader:
    """Handles loading of PDF and TXT reference materials."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text of every page, one page per line block.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            text = "\n".join(pages)
            logger.info("Extracted %d characters from %s", len(text), file_path.name)
            return text

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a TXT file.

        Returns:
            The file content as a string.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
            logger.info("Successfully loaded TXT file %s", file_path.name)
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return text

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValidationError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext == ".txt":
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValidationError(msg)


class TextChunker:
    """Splits normalized text into overlapping, sentence-aware segments.

    Each window of ``chunk_size`` characters is cut after the last period or
    newline when that break lies past the middle of the window. Otherwise the
    whole window is kept and the next one starts ``chunk_size - overlap``
    characters later, which produces the overlap.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        """Initialize the TextChunker with chunk size and overlap.

        Args:
            chunk_size: Maximum number of characters in a chunk.
            overlap: Characters shared by consecutive chunks when no sentence
                boundary is found.

        Raises:
            ValidationError: If ``chunk_size <= overlap`` or ``overlap < 0``.
        """
        if overlap < 0 or chunk_size <= overlap:
            msg = (
                f"chunk_size must be greater than overlap >= 0 "
                f"(got chunk_size={chunk_size}, overlap={overlap})"
            )
            raise ValidationError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap

    @staticmethod
    def normalize(text: str) -> str:
        """Collapse whitespace runs to one space and newline runs to one newline.

        Returns:
            The normalized, trimmed text.
        """
        text = _HORIZONTAL_WHITESPACE.sub(" ", text)
        return _NEWLINE_RUNS.sub("\n", text).strip()

    def chunk_text(self, text: str) -> list[str]:
        """Split text into chunks.

        Returns:
            Non-empty chunk strings in document order.
        """
        clean_text = self.normalize(text)
        length = len(clean_text)
        step = self.chunk_size - self.overlap

        chunks: list[str] = []
        start = 0
        while start < length:
            end = min(start + self.chunk_size, length)
            window = clean_text[start:end]

            if end < length:
                break_point = max(window.rfind("."), window.rfind("\n"))
                if break_point > self.chunk_size * 0.5:
                    window = window[: break_point + 1]
                    start += break_point + 1
                else:
                    start += step
            else:
                start = length

            piece = window.strip()
            if piece:
                chunks.append(piece)

        logger.info("Text split into %d chunks", len(chunks))
        return chunks
