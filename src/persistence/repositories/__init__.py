"""Repository layer for database access."""

from src.persistence.repositories.visitor_repo import VisitorRepository, visitor_key

__all__ = ["VisitorRepository", "visitor_key"]
