"""Materials console using Streamlit."""

import tempfile
from pathlib import Path

import streamlit as st

from examcoach import RAGPipeline
from examcoach.config import config
from examcoach.errors import ExamCoachError

RELEVANCE_HIGH = 0.6
RELEVANCE_MEDIUM = 0.3

MAX_CONTEXT_PREVIEW_LENGTH = 200

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Keys this console keeps in ``st.session_state``."""

    @staticmethod
    def initialize() -> None:
        """Seed missing keys with their defaults."""
        defaults = {
            "rag_pipeline": None,
            "last_search": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def is_system_ready() -> bool:
        """Whether the materials pipeline has been opened.

        Returns:
            bool: True once ``rag_pipeline`` is set.
        """
        return st.session_state.get("rag_pipeline") is not None


def validate_configuration() -> bool:
    """Check settings and report problems in the page.

    Returns:
        bool: True when ``config.validate()`` passes.
    """
    try:
        config.validate()
    except ValueError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


def initialize_system() -> bool:
    """Open the vector index and build the materials pipeline.

    Returns:
        bool: True when the index opened.
    """
    try:
        with st.spinner("Opening vector index..."):
            st.session_state.rag_pipeline = RAGPipeline()

        logger.info("Materials pipeline initialized successfully")
        backend = st.session_state.rag_pipeline.vector_store.backend
        st.success(f"Opened {backend} index.")

    except ExamCoachError as e:
        logger.exception("Failed to open materials index")
        st.error(f"Failed to open materials index: {e}")
        return False
    else:
        return True


def process_material(uploaded_file) -> bool:  # noqa: ANN001
    """Ingest an uploaded file through the RAG pipeline.

    Returns:
        bool: True if ingestion succeeds, False otherwise.
    """
    tmp_file_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            delete=False,
            suffix=Path(uploaded_file.name).suffix,
        ) as tmp_file:
            tmp_file.write(uploaded_file.getbuffer())
            tmp_file_path = Path(tmp_file.name)

        with st.spinner(
            f"Processing '{uploaded_file.name}'... This may take a few moments."
        ):
            result = st.session_state.rag_pipeline.ingest_file(
                tmp_file_path, uploaded_file.name
            )

        st.success(
            f"'{result.file_name}' stored as {result.document_id} "
            f"({result.chunk_count} chunks)."
        )

    except (OSError, ExamCoachError) as e:
        logger.exception("Material ingestion failed")
        st.error(f"Failed to process material: {e}")
        return False
    else:
        return True
    finally:
        if tmp_file_path is not None:
            tmp_file_path.unlink(missing_ok=True)


def render_sidebar() -> None:
    """Render the sidebar with configuration and index status."""
    with st.sidebar:
        st.header("Materials Index")

        if (
            st.button("Open Index", use_container_width=True)
            and validate_configuration()
            and initialize_system()
        ):
            st.rerun()

        st.divider()
        st.subheader("Status")
        config_status = "Valid" if validate_configuration() else "Invalid"
        st.write(f"**Configuration:** {config_status}")
        if not SessionState.is_system_ready():
            st.write("**Index:** Closed")
            return

        st.write(f"**Index:** {st.session_state.rag_pipeline.vector_store.backend}")
        try:
            stats = st.session_state.rag_pipeline.get_stats()
        except ExamCoachError as e:
            logger.exception("Failed to read index stats")
            st.error(f"Index unavailable: {e}")
            return
        st.write(f"**Materials:** {stats.total_documents}")
        st.write(f"**Chunks:** {stats.total_chunks}")


def render_material_upload() -> None:
    """Render material upload section."""
    st.header("Upload Reference Material")
    uploaded_file = st.file_uploader(
        "Upload a PDF or TXT document",
        type=["pdf", "txt"],
        help="Question banks, model answers or vocabulary notes for the examiner",
    )
    if (
        uploaded_file
        and st.button("Process Material", use_container_width=True)
        and process_material(uploaded_file)
    ):
        st.rerun()


def render_materials_list() -> None:
    """Render the stored materials with delete controls."""
    st.header("Stored Materials")
    try:
        documents = st.session_state.rag_pipeline.list_materials()
    except ExamCoachError as e:
        logger.exception("Failed to list materials")
        st.error(f"Failed to list materials: {e}")
        return

    if not documents:
        st.info("No materials uploaded yet.")
        return

    for document in documents:
        col1, col2 = st.columns([4, 1])
        with col1:
            st.markdown(
                f"**{document.file_name}** ({document.total_chunks} chunks)  \n"
                f"`{document.document_id}` uploaded {document.uploaded_at}"
            )
        with col2:
            if st.button("Delete", key=f"delete_{document.document_id}"):
                try:
                    st.session_state.rag_pipeline.delete_material(
                        document.document_id
                    )
                except ExamCoachError as e:
                    logger.exception("Failed to delete material")
                    st.error(f"Failed to delete material: {e}")
                else:
                    st.session_state.last_search = None
                    st.rerun()


def render_search() -> None:
    """Render the semantic search tester."""
    st.header("Test Retrieval")
    query = st.text_input(
        "Search query:",
        placeholder="e.g. Part 2 cue card about a memorable journey",
    )
    top_k = st.slider(
        "Results", min_value=1, max_value=10, value=config.RETRIEVAL_TOP_K
    )

    if st.button("Search", use_container_width=True) and query.strip():
        with st.spinner("Searching materials..."):
            st.session_state.last_search = st.session_state.rag_pipeline.search(
                query, top_k=top_k
            )

    retrieved = st.session_state.last_search
    if retrieved is None:
        return
    if not retrieved.has_context:
        st.warning(retrieved.error or "No relevant materials found.")
        return

    st.markdown(f"**Sources:** {', '.join(retrieved.sources)}")
    for i, item in enumerate(retrieved.results):
        score = item.relevance_score
        score_color = (
            "green"
            if score > RELEVANCE_HIGH
            else "orange"
            if score > RELEVANCE_MEDIUM
            else "red"
        )
        with st.expander(
            f"Result {i + 1} - {item.file_name} (chunk {item.ordinal})",
            expanded=i == 0,
        ):
            st.markdown(f"**Relevance:** :{score_color}[{score:.4f}]")
            st.code(
                item.text[:MAX_CONTEXT_PREVIEW_LENGTH] + "..."
                if len(item.text) > MAX_CONTEXT_PREVIEW_LENGTH
                else item.text,
            )


def render_system_info() -> None:
    """Render the model and backend footer."""
    st.markdown("---")
    st.subheader("Setup")

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Embedding Model**")
        st.markdown(f"**{config.EMBEDDING_MODEL}**")
    with col2:
        st.markdown("**Vector Backend**")
        st.markdown(f"**{config.VECTOR_BACKEND}**")
    with col3:
        st.markdown("**Realtime Model**")
        st.markdown(f"**{config.REALTIME_MODEL}**")

    with st.expander("How Materials Reach the Examiner", expanded=False):
        st.markdown("""
        1. **Upload**: Text is normalized and split into overlapping chunks
        2. **Embed**: Each chunk becomes a vector via the OpenAI embeddings API
        3. **Index**: Vectors and metadata are stored for cosine similarity search
        4. **Session start**: The most relevant chunks are appended to the
           examiner's instructions before the voice session opens
        """)


def main() -> None:
    """Main entry point for the Streamlit materials console."""
    st.set_page_config(
        page_title="ExamCoach v0.1 - Materials",
        layout="wide",
    )

    SessionState.initialize()

    st.title("ExamCoach v0.1 - Reference Materials")
    st.markdown("---")

    render_sidebar()

    if not SessionState.is_system_ready():
        st.info("Open the materials index from the sidebar to manage uploads.")
        return

    render_material_upload()
    render_materials_list()
    render_search()
    render_system_info()


if __name__ == "__main__":
    main()
