"""
Retrieval: similarity search over stored chunks with citation tracking.

Public surface
--------------
- :class:`SemanticRetriever`: main entry point for retrieval with citations.
- :class:`Citation`, :class:`RetrievalResult`: data models.
"""

from kg_weaver.retrieval.models import Citation, RetrievalResult
from kg_weaver.retrieval.retriever import SemanticRetriever

__all__ = [
    "Citation",
    "RetrievalResult",
    "SemanticRetriever",
]
