"""Persistence: SQLAlchemy tables, the pipeline store and change feeds."""

from .store import ChangeFeed, PodcastStore, Subscription
from .supabase_store import SupabaseChangeFeed, SupabaseStore, create_supabase_client

__all__ = [
    "ChangeFeed",
    "PodcastStore",
    "Subscription",
    "SupabaseChangeFeed",
    "SupabaseStore",
    "create_supabase_client",
]
