"""
Context Retriever

Finds the k historically processed dumps most similar to a new dump's
embedding. Search is cosine distance over stored vectors, scoped to a
single user.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..common.embedding_service import cosine_distances
from ..common.store import SiftStore

logger = logging.getLogger("sift.retriever.context")

DEFAULT_LIMIT = 3


@dataclass
class SimilarDump:
    """A past dump returned as extraction context"""
    dump_id: str
    text: str
    similarity: float  # 1 - cosine distance

    @property
    def distance(self) -> float:
        return 1.0 - self.similarity


class ContextRetriever:
    """
    Nearest-neighbour lookup over the user's embedded dumps.

    Degrades to an empty result on any failure; context is an optimization,
    never a requirement.
    """

    def __init__(self, store: SiftStore):
        self._store = store

    def find_similar(
        self,
        embedding: List[float],
        limit: int = DEFAULT_LIMIT,
        *,
        user_id: str,
        exclude_dump_id: Optional[str] = None,
    ) -> List[SimilarDump]:
        """
        Return up to ``limit`` dumps, closest first.

        Args:
            embedding: Query vector; empty means no context
            limit: Maximum number of results
            user_id: Owner whose dumps are searched
            exclude_dump_id: Usually the dump being processed

        Returns:
            List of SimilarDump sorted by ascending distance
        """
        if not embedding or limit <= 0:
            return []

        try:
            candidates = self._store.list_embedded_dumps(user_id, exclude_dump_id=exclude_dump_id)
        except Exception as e:
            logger.error("Context lookup failed for user %s: %s", user_id, e)
            return []

        # Vectors from a different embedding model cannot be compared
        dim = len(embedding)
        candidates = [c for c in candidates if len(c[2]) == dim]
        if not candidates:
            return []

        distances = cosine_distances(embedding, [c[2] for c in candidates])
        ranked = sorted(zip(candidates, distances), key=lambda pair: pair[1])

        return [
            SimilarDump(dump_id=dump_id, text=text, similarity=1.0 - distance)
            for (dump_id, text, _), distance in ranked[:limit]
        ]
