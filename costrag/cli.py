"""CLI for the costrag engine."""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import CostRAGConfig
from .exceptions import CostRAGError

logger = logging.getLogger("costrag")


def _config(args: argparse.Namespace) -> CostRAGConfig:
    config = CostRAGConfig.from_env()
    if args.db:
        config.db_path = args.db
    if args.index:
        config.index_path = args.index
    return config


def _services(args: argparse.Namespace):
    from .services import create_services
    return create_services(_config(args))


def _require_extractable(path: str) -> None:
    from .loaders import is_text_extractable

    if not is_text_extractable(path):
        print(f"Error: cannot extract text from {Path(path).name} (expected PDF or plain text)", file=sys.stderr)
        sys.exit(1)


def index(args: argparse.Namespace) -> None:
    """Index the text of a file for an existing document row."""
    from .loaders import load_document_text

    _require_extractable(args.file)
    services = _services(args)
    try:
        document = services.store.get_document(args.document_id)
        if document is None:
            print(f"Error: document {args.document_id} not found", file=sys.stderr)
            sys.exit(1)

        text = load_document_text(args.file)
        chunks = services.indexing_pipeline().index_document(
            args.document_id,
            text,
            {"project_id": document.project_id, "file_type": document.file_type, "filename": document.filename},
            purge_existing=args.purge,
        )
        print(f"Indexed document {args.document_id} with {chunks} chunks")
    finally:
        services.close()


def register(args: argparse.Namespace) -> None:
    """Create a document row for a file, then index it."""
    from .loaders import load_document_text
    from .models import Document

    path = Path(args.file)
    _require_extractable(args.file)
    services = _services(args)
    try:
        text = load_document_text(path)
        document_id = services.store.create_document(Document(
            filename=path.name,
            file_path=str(path),
            file_type=args.file_type,
            project_id=args.project_id,
            file_size=path.stat().st_size,
        ))
        chunks = services.indexing_pipeline().index_document(document_id, text, {
            "project_id": args.project_id,
            "file_type": args.file_type,
            "filename": path.name,
        })
        print(f"Registered {path.name} as document {document_id} ({chunks} chunks)")
    finally:
        services.close()


def ask(args: argparse.Namespace) -> None:
    """Answer a cost question."""
    services = _services(args)
    try:
        result = services.rag_engine().answer(
            args.question, project_id=args.project_id, top_k=args.top_k
        )
    finally:
        services.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    print(result.answer)
    if result.sources:
        print("\nSources:")
        for i, s in enumerate(result.sources, 1):
            print(f"  {i}. [{s.relevance:.3f}] {s.document}")
    if result.cost_breakdown:
        print("\nCost breakdown:")
        for name, value in result.cost_breakdown.as_dict().items():
            print(f"  {name}: {value:,.2f}")


def serve(args: argparse.Namespace) -> None:
    """Start the REST API server."""
    try:
        import uvicorn
        from .api import create_app
    except ImportError:
        print("Error: API dependencies not installed.")
        print("  Run: pip install 'costrag[api]'")
        sys.exit(1)

    app = create_app(_config(args))
    print(f"Starting costrag API server on http://{args.host}:{args.port}")
    print(f"  Docs: http://{args.host}:{args.port}/docs\n")
    uvicorn.run(app, host=args.host, port=args.port)


def stats(args: argparse.Namespace) -> None:
    """Show engine statistics."""
    services = _services(args)
    try:
        print(json.dumps(services.get_stats(), indent=2))
    finally:
        services.close()


def main() -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="costrag",
        description="costrag - cost questions answered from documents and cost records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  costrag register report.pdf --file-type report --project-id 3
  costrag index notes.txt --document-id 12 --purge
  costrag ask "What is the average installation cost?" --project-id 3
  costrag serve --port 8000

Environment variables:
  OPENAI_API_KEY    Required for answer generation (and OpenAI embeddings)
  HF_TOKEN          Optional for HuggingFace models
  COSTRAG_*         Override any config field, e.g. COSTRAG_CHUNK_SIZE=256
"""
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--db", type=str, help="Database path (default: costrag.db)")
    parser.add_argument("--index", type=str, help="Index path (default: costrag.usearch)")
    parser.add_argument(
        "--log-level", type=str, default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    index_parser = subparsers.add_parser("index", help="Index a file for an existing document")
    index_parser.add_argument("file", help="Text or PDF file")
    index_parser.add_argument("--document-id", type=int, required=True)
    index_parser.add_argument(
        "--purge", action="store_true", help="Replace the document's previous chunk records"
    )
    index_parser.set_defaults(func=index)

    register_parser = subparsers.add_parser("register", help="Register and index a new document")
    register_parser.add_argument("file", help="Text or PDF file")
    register_parser.add_argument("--file-type", type=str, default="report")
    register_parser.add_argument("--project-id", type=int, default=None)
    register_parser.set_defaults(func=register)

    ask_parser = subparsers.add_parser("ask", help="Ask a cost question")
    ask_parser.add_argument("question")
    ask_parser.add_argument("--project-id", type=int, default=None)
    ask_parser.add_argument("--top-k", type=int, default=None)
    ask_parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    ask_parser.set_defaults(func=ask)

    serve_parser = subparsers.add_parser("serve", help="Start REST API server")
    serve_parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    serve_parser.set_defaults(func=serve)

    stats_parser = subparsers.add_parser("stats", help="Show engine statistics")
    stats_parser.set_defaults(func=stats)

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        args.func(args)
    except CostRAGError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
