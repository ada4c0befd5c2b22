"""Database access helpers"""

from .supabase_client import close_supabase_client, get_supabase_client

__all__ = ["get_supabase_client", "close_supabase_client"]
