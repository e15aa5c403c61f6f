# =============================================================================
# lib/vector_store.py - In-Process Conversation Vector Index
# =============================================================================
# Cosine-similarity lookup over embeddings of past coach replies.
#
# The index lives in process memory, one flat numpy matrix per user. It is
# warmed lazily from the embeddings stored on the messages table the first
# time a user is searched, then kept current as new replies are added.
# Instances don't share state; a restart simply re-warms from the database.
#
# Usage:
#   from lib.vector_store import vector_store
#   vector_store.add(user_id, message_id, embedding, content, conversation_id)
#   matches = vector_store.search(user_id, query_embedding, top_k=3)
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from app.config import settings
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 500


def parse_embedding(value: Any) -> np.ndarray | None:
    """
    Convert a stored embedding into a float vector.

    PostgREST returns pgvector columns as strings like "[0.1,0.2]" and
    float8[] columns as lists; both are accepted.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    try:
        vector = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if vector.ndim != 1 or vector.size == 0:
        return None
    return vector


@dataclass
class VectorRecord:
    """One indexed reply."""
    message_id: str
    conversation_id: str | None
    content: str
    created_at: str | None = None


class VectorStore:
    """
    Per-user flat vector index.

    Attributes:
        max_per_user: Vectors kept per user; the oldest are evicted first
        threshold: Default minimum cosine similarity for search results
    """

    def __init__(self, max_per_user: int | None = None, threshold: float | None = None):
        self.max_per_user = max_per_user or settings.VECTOR_STORE_MAX_PER_USER
        self.threshold = threshold if threshold is not None else settings.SIMILARITY_THRESHOLD
        self._records: dict[str, list[VectorRecord]] = {}
        self._vectors: dict[str, list[np.ndarray]] = {}
        self._loaded: set[str] = set()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def ensure_loaded(self, user_id: str) -> None:
        """Warm a user's index from the database once per process."""
        user_id = str(user_id)
        if user_id in self._loaded:
            return

        try:
            rows = SupabaseClient.fetch_message_embeddings(user_id, limit=self.max_per_user)
        except SupabaseClientError as e:
            # Retry on the next search instead of caching an empty index
            logger.warning(f"Could not warm vector index for user {user_id}: {e}")
            return

        for row in rows:
            embedding = parse_embedding(row.get("embedding"))
            if embedding is not None:
                self._append(user_id, row["id"], embedding, row.get("content") or "",
                             row.get("conversation_id"), row.get("created_at"))

        self._loaded.add(user_id)
        logger.debug(f"Vector index warmed for user {user_id}: {len(self._records.get(user_id, []))} vectors")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _append(
        self,
        user_id: str,
        message_id: str,
        embedding: np.ndarray,
        content: str,
        conversation_id: str | None,
        created_at: str | None,
    ) -> None:
        records = self._records.setdefault(user_id, [])
        vectors = self._vectors.setdefault(user_id, [])

        if any(r.message_id == message_id for r in records):
            return

        records.append(VectorRecord(message_id, conversation_id, content[:MAX_CONTENT_LENGTH], created_at))
        vectors.append(embedding)

        overflow = len(records) - self.max_per_user
        if overflow > 0:
            del records[:overflow]
            del vectors[:overflow]

    def add(
        self,
        user_id: str,
        message_id: str,
        embedding: Sequence[float] | np.ndarray,
        content: str,
        conversation_id: str | None = None,
        created_at: str | None = None,
    ) -> bool:
        """
        Index a reply. Returns False when the embedding is unusable.

        Adding the same message twice is a no-op.
        """
        vector = parse_embedding(embedding)
        if vector is None:
            return False
        self._append(str(user_id), str(message_id), vector, content, conversation_id, created_at)
        return True

    def clear_user(self, user_id: str) -> None:
        """Forget everything indexed for a user."""
        user_id = str(user_id)
        self._records.pop(user_id, None)
        self._vectors.pop(user_id, None)
        self._loaded.discard(user_id)

    def remove_conversation(self, user_id: str, conversation_id: str) -> None:
        user_id = str(user_id)
        records = self._records.get(user_id, [])
        vectors = self._vectors.get(user_id, [])
        keep = [i for i, r in enumerate(records) if r.conversation_id != conversation_id]
        self._records[user_id] = [records[i] for i in keep]
        self._vectors[user_id] = [vectors[i] for i in keep]

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search(
        self,
        user_id: str,
        embedding: Sequence[float] | np.ndarray,
        top_k: int = 3,
        threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Most similar past replies for a query embedding.

        Returns:
            Up to top_k dicts (message_id, conversation_id, content, score),
            best first, all scoring above the threshold
        """
        user_id = str(user_id)
        self.ensure_loaded(user_id)

        query = parse_embedding(embedding)
        vectors = self._vectors.get(user_id) or []
        if query is None or not vectors:
            return []

        records = self._records[user_id]
        candidates = [i for i, v in enumerate(vectors) if v.shape == query.shape]
        if not candidates:
            return []

        matrix = np.vstack([vectors[i] for i in candidates])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ query / norms, 0.0)

        minimum = self.threshold if threshold is None else threshold
        order = np.argsort(-scores)
        results = []
        for position in order[:top_k]:
            score = float(scores[position])
            if score <= minimum:
                break
            record = records[candidates[position]]
            results.append({
                "message_id": record.message_id,
                "conversation_id": record.conversation_id,
                "content": record.content,
                "score": round(score, 4),
            })
        return results

    def stats(self) -> dict[str, int]:
        return {
            "users": len(self._records),
            "vectors": sum(len(records) for records in self._records.values()),
        }


# Process-wide index used by the chat service
vector_store = VectorStore()
