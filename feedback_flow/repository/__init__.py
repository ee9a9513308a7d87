"""Storage backends for purchases, feedbacks, publications and refunds."""

from .base import EntityRepository, FeedbackFlowDB
from .duckdb_store import DuckDBStore
from .memory import InMemoryDB

__all__ = ["DuckDBStore", "EntityRepository", "FeedbackFlowDB", "InMemoryDB"]
