"""Command-line entry point: ``kg-weaver ingest|query|list|remove``."""

from __future__ import annotations

import argparse
import logging
import sys

from kg_weaver.config import Settings, load_settings
from kg_weaver.errors import ConfigurationError, DocumentReadError, WeaverError
from kg_weaver.ingestion.weaver import KnowledgeWeaver
from kg_weaver.retrieval import SemanticRetriever

logger = logging.getLogger("kg_weaver.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kg-weaver", description="Document ingestion and retrieval")
    parser.add_argument("--storage-url", help="Override STORAGE_URL")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest UTF-8 text / Markdown files")
    ingest.add_argument("paths", nargs="+")

    query = sub.add_parser("query", help="Search stored chunks")
    query.add_argument("text")
    query.add_argument("--top-k", type=int, default=5)

    sub.add_parser("list", help="List reference documents")

    remove = sub.add_parser("remove", help="Remove a reference document and its chunks")
    remove.add_argument("document_id")
    return parser


def _settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.storage_url:
        overrides["storage_url"] = args.storage_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    return load_settings(**overrides)


def _ingest(weaver: KnowledgeWeaver, paths: list[str]) -> int:
    status = 0
    for path in paths:
        try:
            report = weaver.ingest(path)
        except DocumentReadError as exc:
            logger.error("Skipping %s: %s", path, exc)
            status = 1
            continue
        except WeaverError as exc:
            logger.error("Failed to ingest %s: %s", path, exc)
            status = 1
            continue
        print(f"{path}: document={report.document_id} stored={report.stored}/{report.total_chunks}")
        if report.failed_positions:
            logger.warning("%s: dropped chunk positions %s", path, report.failed_positions)
            status = 1
    return status


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _settings(args)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        weaver = KnowledgeWeaver.from_settings(settings)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "ingest":
        return _ingest(weaver, args.paths)

    if args.command == "query":
        retriever = SemanticRetriever(weaver.chunk_store, weaver.reference_store)
        for result in retriever.search(args.text, k=args.top_k):
            print(f"{result.citation.score:.3f} {result}")
        return 0

    if args.command == "list":
        for document in weaver.reference_store.list():
            print(f"{document.id}\t{document.type.value}\t{document.metadata.get('source', '')}")
        return 0

    removed = weaver.remove_document(args.document_id)
    print(f"removed {args.document_id} ({removed} chunks)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
