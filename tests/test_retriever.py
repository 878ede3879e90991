"""Tests for the Retriever and context formatting."""

from unittest.mock import Mock

import pytest

from examcoach import EmbeddingError, IndexUnavailableError, Retriever
from examcoach.models import RetrievedContext
from examcoach.retriever import CONTEXT_SEPARATOR, format_context_for_ai


@pytest.fixture
def retriever(populated_store, mock_embedding_service):
    return Retriever(mock_embedding_service, populated_store)


def test_retrieve_context_empty_index(vector_store, mock_embedding_service):
    retriever = Retriever(mock_embedding_service, vector_store)

    retrieved = retriever.retrieve_context("Part 1 questions", top_k=3)

    assert retrieved.has_context is False
    assert retrieved.sources == []
    assert retrieved.results == []
    assert retrieved.error is None


def test_retrieve_top_match_from_notes(retriever, sample_texts):
    retrieved = retriever.retrieve_context(sample_texts[2], top_k=1)

    assert retrieved.has_context is True
    assert len(retrieved.results) == 1
    result = retrieved.results[0]
    assert result.file_name == "notes.pdf"
    assert result.document_id == "doc_1"
    assert 0 <= result.ordinal < 3
    assert result.relevance_score == pytest.approx(1.0, abs=1e-5)
    assert retrieved.sources == ["notes.pdf"]


def test_results_are_ranked_by_relevance(retriever, sample_texts):
    retrieved = retriever.retrieve_context(sample_texts[0], top_k=5)

    scores = [result.relevance_score for result in retrieved.results]
    assert scores == sorted(scores, reverse=True)
    assert all(-1.0 - 1e-6 <= score <= 1.0 + 1e-6 for score in scores)


def test_context_blocks_are_numbered_and_separated(retriever, sample_texts):
    retrieved = retriever.retrieve_context(sample_texts[0], top_k=2)

    blocks = retrieved.context.split(CONTEXT_SEPARATOR)
    assert len(blocks) == 2
    assert blocks[0] == f"[Source 1: notes.pdf]\n{sample_texts[0]}"
    assert blocks[1].startswith("[Source 2: ")


def test_sources_are_deduplicated_in_rank_order(retriever, sample_texts):
    retrieved = retriever.retrieve_context(sample_texts[3], top_k=5)

    assert retrieved.sources[0] == "criteria.txt"
    assert sorted(retrieved.sources) == ["criteria.txt", "notes.pdf"]


@pytest.mark.parametrize(
    "error",
    [EmbeddingError("embedding service down"), IndexUnavailableError("db locked")],
)
def test_retrieval_failures_degrade_to_no_context(populated_store, error):
    embedding_service = Mock()
    embedding_service.embed_query.side_effect = error
    retriever = Retriever(embedding_service, populated_store)

    retrieved = retriever.retrieve_context("anything")

    assert retrieved.has_context is False
    assert retrieved.error == str(error)


def test_has_relevant_materials(retriever, sample_texts):
    assert retriever.has_relevant_materials(sample_texts[1], threshold=0.7)
    assert not retriever.has_relevant_materials(
        "completely unrelated query text", threshold=0.7
    )


def test_has_relevant_materials_fails_closed(populated_store):
    embedding_service = Mock()
    embedding_service.embed_query.side_effect = EmbeddingError("down")
    retriever = Retriever(embedding_service, populated_store)

    assert retriever.has_relevant_materials("anything", threshold=0.0) is False


def test_format_context_for_ai_without_context():
    assert format_context_for_ai(RetrievedContext(has_context=False)) == ""


def test_format_context_for_ai_with_context():
    retrieved = RetrievedContext(
        has_context=True,
        context="[Source 1: notes.pdf]\nDescribe a book you enjoyed.",
        sources=["notes.pdf", "criteria.txt"],
    )

    formatted = format_context_for_ai(retrieved)

    assert formatted.startswith("\n\n**AVAILABLE REFERENCE MATERIALS:**\n")
    assert "Sources: notes.pdf, criteria.txt\n\n" in formatted
    assert "Describe a book you enjoyed." in formatted
    assert "**INSTRUCTIONS FOR USING MATERIALS:**" in formatted
