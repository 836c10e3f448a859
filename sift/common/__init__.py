"""
Sift Common Module

Shared infrastructure for the ingest pipeline and the context retriever.
"""

from .config import SiftConfig, load_config
from .embedding_service import EmbeddingService
from .llm_client import LLMClient, MediaPart
from .store import SiftStore

__all__ = [
    "SiftConfig",
    "load_config",
    "EmbeddingService",
    "LLMClient",
    "MediaPart",
    "SiftStore",
]
