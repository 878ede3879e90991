"""Tests for the RAGPipeline facade."""

import datetime
import json
import re
from unittest.mock import patch

import pytest

from examcoach import (
    EmbeddingError,
    IndexUnavailableError,
    RAGPipeline,
    ValidationError,
)

NOTES_TEXT = (
    "Part 1 questions cover familiar topics such as home, work and hobbies. "
    "Candidates should answer in two or three sentences.\n\n"
    "Part 2 gives the candidate a task card and one minute to prepare. "
    "The candidate then speaks for up to two minutes.\n\n"
    "Part 3 is a discussion of abstract ideas linked to the Part 2 topic."
)
CRITERIA_TEXT = (
    "Fluency and coherence describe how smoothly ideas are connected. "
    "Lexical resource measures vocabulary range and precision."
)


@pytest.fixture(params=["sqlite", "faiss"])
def pipeline(request, rag_pipeline_factory):
    return rag_pipeline_factory(vector_backend=request.param)


def test_ingest_returns_document_id_and_chunk_count(pipeline):
    result = pipeline.ingest(NOTES_TEXT, "notes.txt")

    assert re.fullmatch(r"doc_[0-9a-f]{12}", result.document_id)
    assert result.file_name == "notes.txt"
    assert result.chunk_count == len(pipeline.chunker.chunk_text(NOTES_TEXT))
    assert result.chunk_count > 1


def test_ingested_material_is_listed(pipeline):
    first = pipeline.ingest(NOTES_TEXT, "notes.txt")
    second = pipeline.ingest(CRITERIA_TEXT, "criteria.txt")

    materials = {doc.document_id: doc for doc in pipeline.list_materials()}

    assert set(materials) == {first.document_id, second.document_id}
    notes = materials[first.document_id]
    assert notes.file_name == "notes.txt"
    assert notes.total_chunks == first.chunk_count
    uploaded_at = datetime.datetime.fromisoformat(notes.uploaded_at)
    assert uploaded_at.utcoffset() == datetime.timedelta(0)


@pytest.mark.parametrize(
    ("raw_text", "file_name", "message"),
    [
        ("", "notes.txt", "No text to ingest"),
        ("   \n\t ", "notes.txt", "No text to ingest"),
        (NOTES_TEXT, "", "file_name is required"),
        (NOTES_TEXT, "   ", "file_name is required"),
    ],
)
def test_ingest_rejects_blank_input(pipeline, raw_text, file_name, message):
    with pytest.raises(ValidationError, match=message):
        pipeline.ingest(raw_text, file_name)

    assert pipeline.get_stats().total_chunks == 0


def test_embedding_failure_leaves_index_unchanged(pipeline):
    with (
        patch.object(
            pipeline.embedding_service,
            "embed",
            side_effect=EmbeddingError("quota exceeded"),
        ),
        pytest.raises(EmbeddingError, match="quota exceeded"),
    ):
        pipeline.ingest(NOTES_TEXT, "notes.txt")

    assert pipeline.list_materials() == []
    assert pipeline.get_stats().total_chunks == 0


def test_save_failure_names_the_stored_document(pipeline):
    with (
        patch.object(
            pipeline.vector_store,
            "save",
            side_effect=IndexUnavailableError("disk full"),
        ),
        pytest.raises(IndexUnavailableError, match="disk full") as exc_info,
    ):
        pipeline.ingest(NOTES_TEXT, "notes.txt")

    materials = pipeline.list_materials()
    assert len(materials) == 1
    assert f"stored as {materials[0].document_id}" in str(exc_info.value)
    assert pipeline.search(NOTES_TEXT[:60], top_k=1).has_context is True


def test_search_returns_ranked_context(pipeline):
    pipeline.ingest(NOTES_TEXT, "notes.txt")
    pipeline.ingest(CRITERIA_TEXT, "criteria.txt")
    query = pipeline.chunker.chunk_text(CRITERIA_TEXT)[0]

    retrieved = pipeline.search(query, top_k=3)

    assert retrieved.has_context is True
    assert len(retrieved.results) == 3
    assert retrieved.results[0].file_name == "criteria.txt"
    assert retrieved.results[0].relevance_score == pytest.approx(1.0, abs=1e-5)
    assert retrieved.sources[0] == "criteria.txt"


def test_search_uses_configured_top_k(pipeline):
    pipeline.ingest(NOTES_TEXT, "notes.txt")

    with patch("examcoach.pipeline.config.RETRIEVAL_TOP_K", 1):
        retrieved = pipeline.search("task card")

    assert len(retrieved.results) == 1


def test_search_rejects_blank_query(pipeline):
    with pytest.raises(ValidationError, match="Query is required"):
        pipeline.search("  ")


def test_search_on_empty_index(pipeline):
    retrieved = pipeline.search("Part 2 cue card")

    assert retrieved.has_context is False
    assert retrieved.sources == []


def test_has_relevant_materials(pipeline):
    pipeline.ingest(CRITERIA_TEXT, "criteria.txt")
    query = pipeline.chunker.chunk_text(CRITERIA_TEXT)[0]

    assert pipeline.has_relevant_materials(query, threshold=0.9)
    assert not pipeline.has_relevant_materials("weather in Lisbon", threshold=0.9)


def test_delete_material_removes_all_chunks(pipeline):
    notes = pipeline.ingest(NOTES_TEXT, "notes.txt")
    criteria = pipeline.ingest(CRITERIA_TEXT, "criteria.txt")

    removed = pipeline.delete_material(notes.document_id)

    assert removed == notes.chunk_count
    stats = pipeline.get_stats()
    assert stats.total_documents == 1
    assert stats.total_chunks == criteria.chunk_count
    results = pipeline.search(NOTES_TEXT[:60], top_k=10).results
    assert {result.document_id for result in results} == {criteria.document_id}


def test_delete_unknown_material_is_noop(pipeline):
    pipeline.ingest(CRITERIA_TEXT, "criteria.txt")

    assert pipeline.delete_material("doc_missing") == 0
    assert pipeline.get_stats().total_documents == 1


def test_ingest_file(pipeline, tmp_path):
    path = tmp_path / "speaking_notes.txt"
    path.write_text(NOTES_TEXT, encoding="utf-8")

    result = pipeline.ingest_file(path)

    assert result.file_name == "speaking_notes.txt"
    assert pipeline.list_materials()[0].file_name == "speaking_notes.txt"


def test_ingest_file_with_display_name(pipeline, tmp_path):
    path = tmp_path / "tmp1234.txt"
    path.write_text(CRITERIA_TEXT, encoding="utf-8")

    result = pipeline.ingest_file(path, file_name="criteria.txt")

    assert result.file_name == "criteria.txt"


def test_materials_survive_reopen(rag_pipeline_factory):
    first = rag_pipeline_factory(vector_backend="faiss")
    result = first.ingest(NOTES_TEXT, "notes.txt")
    first.close()

    reopened = rag_pipeline_factory(vector_backend="faiss")

    assert [doc.document_id for doc in reopened.list_materials()] == [
        result.document_id
    ]
    assert reopened.search("task card").has_context is True


def test_open_session_injects_materials(rag_pipeline_factory, session_endpoint):
    client, requests = session_endpoint
    pipeline = rag_pipeline_factory(http_client=client)
    pipeline.ingest(NOTES_TEXT, "notes.txt")

    session = pipeline.open_session()

    assert session.session_id == "sess_test123"
    assert session.sources == ("notes.txt",)
    instructions = json.loads(requests[0].content)["instructions"]
    assert "Sources: notes.txt" in instructions


def test_pipeline_accepts_prebuilt_store(temp_vector_store, mock_embedding_service):
    pipeline = RAGPipeline(
        openai_api_key="test-key",
        embedding_service=mock_embedding_service,
        vector_store=temp_vector_store,
    )

    try:
        result = pipeline.ingest(CRITERIA_TEXT, "criteria.txt")
        assert temp_vector_store.count() == result.chunk_count
    finally:
        pipeline.close()
