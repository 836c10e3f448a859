"""
Embedding Service

Turns dump text into vectors for context retrieval.

Modes:
- google: Gemini embedding API (text-embedding-004)
- femb: fastembed, on-device

embed() never raises: a failure yields an empty vector and the pipeline
continues without retrieved context.
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger("sift.common.embedding_service")


class EmbeddingService:
    """
    Embedding generation behind a single ``embed(text)`` call.

    Constructed once at startup and injected into the orchestrator and
    context retriever.
    """

    def __init__(
        self,
        mode: str = "google",
        model: str = "models/text-embedding-004",
        api_key: Optional[str] = None,
    ):
        self._mode = (mode or "google").lower()
        self._model = model
        self._backend = None
        self._init_backend(api_key)

    def _init_backend(self, api_key: Optional[str]) -> None:
        """Initialize the underlying embedding backend"""
        if self._mode == "google":
            if not api_key:
                logger.info("Gemini API key not provided, embeddings unavailable")
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=api_key)
                self._backend = genai
            except ImportError:
                logger.warning("google-generativeai package not installed")
            return

        if self._mode == "femb":
            try:
                from fastembed import TextEmbedding

                self._backend = TextEmbedding(model_name=self._model)
            except ImportError:
                logger.warning("fastembed package not installed")
            except Exception as e:
                logger.warning("Failed to load fastembed model %s: %s", self._model, e)
            return

        logger.warning("Unsupported embedding mode: %s", self._mode)

    @classmethod
    def from_config(cls, embedding_config, google_api_key: Optional[str] = None) -> "EmbeddingService":
        return cls(
            mode=embedding_config.mode,
            model=embedding_config.model,
            api_key=google_api_key,
        )

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._backend is not None

    @property
    def mode(self) -> str:
        return self._mode

    def _embed_raw(self, text: str) -> List[float]:
        if self._mode == "google":
            result = self._backend.embed_content(model=self._model, content=text)
            return list(result["embedding"])

        vectors = list(self._backend.embed([text]))
        return np.asarray(vectors[0], dtype=float).tolist()

    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector, or [] if the text is empty or the backend fails
        """
        if not text or not text.strip():
            return []
        if not self.is_available:
            return []

        try:
            return self._embed_raw(text)
        except Exception as e:
            logger.error("Error generating embedding: %s", e)
            return []


def cosine_distances(query: List[float], vectors: List[List[float]]) -> List[float]:
    """
    Cosine distance (1 - cosine similarity) between a query and many vectors.

    Zero-norm vectors are at distance 1.0.
    """
    if not vectors:
        return []

    q = np.asarray(query, dtype=float)
    matrix = np.asarray(vectors, dtype=float)

    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm

    similarities = np.zeros(len(vectors))
    nonzero = denom > 0
    similarities[nonzero] = matrix[nonzero] @ q / denom[nonzero]
    similarities = np.clip(similarities, -1.0, 1.0)

    return (1.0 - similarities).tolist()
