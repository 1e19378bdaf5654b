"""
Ingestion: document loading, chunking, and embedding into the chunk store.

This package turns source files into deduplicated reference documents and
embedded chunks: :mod:`~kg_weaver.ingestion.loader` reads files,
:mod:`~kg_weaver.ingestion.chunker` splits text,
:mod:`~kg_weaver.ingestion.embedder` talks to the embedding service, and
:mod:`~kg_weaver.ingestion.weaver` orchestrates the whole run.
"""
