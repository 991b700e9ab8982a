"""
Command line entry point: serve the API, run a one-off query, or ingest documents.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import uvicorn

from . import __version__
from .config.container import setup_container
from .config.settings import get_settings
from .core.orchestrator import RAGRequest
from .errors import RAGError
from .models import DocumentInfo
from .observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="regrag", description="Regulatory document RAG core")
    parser.add_argument("--version", action="store_true", help="Show version")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Host to bind to")
    serve.add_argument("--port", type=int, default=None, help="Port to bind to")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")

    query = subparsers.add_parser("query", help="Run a single query and print the response as JSON")
    query.add_argument("text", help="Query text")
    query.add_argument("--search-type", default=None, help="vector, keyword, hybrid or knowledge_graph")
    query.add_argument("--limit", type=int, default=None, help="Maximum documents to return")
    query.add_argument("--documents", type=Path, default=None, help="JSON file ingested before querying")

    ingest = subparsers.add_parser("ingest", help="Ingest documents from a JSON file")
    ingest.add_argument("path", type=Path, help="JSON file with a list of documents")

    return parser


def load_documents(path: Path) -> list[DocumentInfo]:
    """Read a JSON list (or ``{"documents": [...]}``) of document mappings."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("documents", [])
    return [DocumentInfo.from_dict(item) for item in data]


async def run_ingest(path: Path) -> int:
    container = setup_container()
    async with container.lifespan():
        pipeline = container.get("ingestion_pipeline")
        results = await pipeline.process_batch(load_documents(path))
    failed = [r for r in results if not r.succeeded]
    for result in results:
        status = "ok" if result.succeeded else "failed"
        print(f"{result.document_id}: {status} chunks={result.chunks_processed} "
              f"relationships={result.relationships_created}")
        for error in result.errors:
            print(f"  error: {error}")
    return 1 if failed else 0


async def run_query(text: str, search_type: str | None, limit: int | None, documents: Path | None) -> int:
    settings = get_settings()
    container = setup_container(settings)
    async with container.lifespan():
        if documents is not None:
            await container.get("ingestion_pipeline").process_batch(load_documents(documents))
        request = RAGRequest(
            query=text,
            search_type=search_type,
            limit=limit or settings.retrieval.default_limit,
        )
        response = await container.get("orchestrator").process_query(request)
    print(json.dumps(response.to_dict(), indent=2, default=str))
    return 0


def serve(host: str | None, port: int | None, reload: bool) -> None:
    settings = get_settings()
    logger.info("Starting regrag server", environment=settings.environment)
    uvicorn.run(
        "regrag.api.server:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        reload=reload or settings.api.reload,
    )


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"regrag v{__version__}")
        return 0

    setup_logging(get_settings().observability.log_level)

    try:
        if args.command == "serve":
            serve(args.host, args.port, args.reload)
            return 0
        if args.command == "query":
            return asyncio.run(run_query(args.text, args.search_type, args.limit, args.documents))
        if args.command == "ingest":
            return asyncio.run(run_ingest(args.path))
    except KeyboardInterrupt:
        print("\nregrag shutdown")
        return 0
    except (RAGError, OSError, ValueError) as e:
        logger.error(f"Command failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


def cli_main() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli_main()
