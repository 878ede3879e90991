"""Command-line entry point for ExamCoach materials, sessions and the UI."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from examcoach.config import config
from examcoach.errors import ExamCoachError
from examcoach.pipeline import RAGPipeline
from examcoach.realtime import SessionConfig

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"
PREVIEW_LENGTH = 200


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Manage ExamCoach reference materials and interview sessions.",
    )
    parser.add_argument(
        "--backend",
        choices=["faiss", "sqlite"],
        default=None,
        help="Vector store backend (default: VECTOR_BACKEND from config).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a PDF or TXT file.")
    ingest.add_argument("path", type=Path, help="File to ingest.")
    ingest.add_argument(
        "--name",
        default=None,
        help="Display name for the material (default: the file name).",
    )

    search = subparsers.add_parser("search", help="Search the stored materials.")
    search.add_argument("query", help="Search query.")
    search.add_argument(
        "--top-k",
        type=int,
        default=config.RETRIEVAL_TOP_K,
        help=f"Number of results (default: {config.RETRIEVAL_TOP_K}).",
    )

    subparsers.add_parser("materials", help="List ingested materials.")

    delete = subparsers.add_parser("delete", help="Delete a material.")
    delete.add_argument("document_id", help="Document id to delete.")

    subparsers.add_parser("stats", help="Show index totals.")

    session = subparsers.add_parser(
        "session", help="Create a realtime interview session."
    )
    session.add_argument("--model", default=None, help="Realtime model override.")
    session.add_argument("--voice", default=None, help="Voice override.")

    ui = subparsers.add_parser("ui", help="Launch the Streamlit console.")
    ui.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    ui.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    ui.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    ui.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    ui.set_defaults(headless=True)
    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("ExamCoach stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def launch_ui(args: argparse.Namespace, logger: Logger) -> int:
    """Resolve the Streamlit script and run it."""  # noqa: DOC201
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting ExamCoach console at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


def run_command(pipeline: RAGPipeline, args: argparse.Namespace) -> None:
    """Dispatch one materials or session subcommand against ``pipeline``."""
    if args.command == "ingest":
        result = pipeline.ingest_file(args.path, args.name)
        print(
            f"Ingested {result.file_name} as {result.document_id} "
            f"({result.chunk_count} chunks)"
        )
    elif args.command == "search":
        retrieved = pipeline.search(args.query, top_k=args.top_k)
        if not retrieved.has_context:
            print("No relevant materials found.")
            return
        for i, item in enumerate(retrieved.results, start=1):
            preview = item.text[:PREVIEW_LENGTH].replace("\n", " ")
            print(
                f"{i}. [{item.relevance_score:.3f}] {item.file_name} "
                f"#{item.ordinal}: {preview}"
            )
    elif args.command == "materials":
        documents = pipeline.list_materials()
        if not documents:
            print("No materials uploaded.")
        for document in documents:
            print(
                f"{document.document_id}\t{document.file_name}\t"
                f"{document.total_chunks} chunks\t{document.uploaded_at}"
            )
    elif args.command == "delete":
        removed = pipeline.delete_material(args.document_id)
        print(f"Deleted {args.document_id} ({removed} chunks)")
    elif args.command == "stats":
        stats = pipeline.get_stats()
        print(f"Documents: {stats.total_documents}")
        print(f"Chunks: {stats.total_chunks}")
    elif args.command == "session":
        session = pipeline.open_session(
            SessionConfig(model=args.model, voice=args.voice)
        )
        print(f"Session: {session.session_id}")
        print(f"Model: {session.model} ({session.voice})")
        print(f"Expires at: {session.expires_at}")
        if session.sources:
            print(f"Context from: {', '.join(session.sources)}")


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and run the requested subcommand."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "ui":
        return launch_ui(args, logger)

    try:
        pipeline = RAGPipeline(vector_backend=args.backend)
    except ExamCoachError:
        logger.exception("Failed to initialize pipeline")
        return 1

    try:
        run_command(pipeline, args)
    except (ExamCoachError, OSError):
        logger.exception("Command %s failed", args.command)
        return 1
    finally:
        pipeline.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
