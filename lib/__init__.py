# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - security.py: Password hashing and access tokens
# - vector_store.py: In-process similarity index over reply embeddings
# - memory.py: Coaching context builder for the coach agent
# - utils.py: Shared utilities (error handling, UUID and date helpers)
#
# memory.py depends on core.models, so import it directly:
#   from lib.memory import build_coaching_context
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from lib.utils import ApplicationError, normalize_uuid, parse_datetime, utc_now
from lib.vector_store import VectorStore, vector_store

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Security
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
    # Vector index
    "VectorStore",
    "vector_store",
    # Utils
    "ApplicationError",
    "normalize_uuid",
    "parse_datetime",
    "utc_now",
]
