"""Persistence layer backed by Supabase."""

from .supabase_client import CreatorRepository

__all__ = ["CreatorRepository"]
