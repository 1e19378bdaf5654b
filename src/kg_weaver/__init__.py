"""kg_weaver: content-deduplicated document ingestion and vector retrieval."""

__version__ = "0.1.0"
