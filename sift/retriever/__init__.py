"""
Retriever - Historical Context for Extraction

Finds the user's past dumps that read most like a new one, so the extractor
can infer categories and preferences from history.
"""

from .context import ContextRetriever, SimilarDump

__all__ = [
    "ContextRetriever",
    "SimilarDump",
]
