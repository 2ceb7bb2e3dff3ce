"""Persistence: store interface, in-memory and PostgreSQL implementations"""
from gamify.db.store import GamificationStore
from gamify.db.memory_store import InMemoryStore

__all__ = ["GamificationStore", "InMemoryStore"]
