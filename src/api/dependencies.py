"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.core.config import settings
from src.persistence.repositories.visitor_repo import VisitorRepository
from src.services.forwarder import AnalyticsForwarder
from src.services.visitor_service import VisitorService


def get_visitor_repository() -> VisitorRepository:
    """FastAPI dependency injection for VisitorRepository.

    Each request gets a new repository pointed at the configured database.
    """
    return VisitorRepository(str(settings.database_path), settings.visitor_ttl_seconds)


@lru_cache(maxsize=1)
def get_shared_forwarder() -> AnalyticsForwarder:
    """Process-wide analytics forwarder.

    Shared so in-flight forwards can be drained at shutdown.
    """
    return AnalyticsForwarder.from_settings(settings)


def get_visitor_service(
    visitor_repo: VisitorRepository = Depends(get_visitor_repository),
    forwarder: AnalyticsForwarder = Depends(get_shared_forwarder),
) -> VisitorService:
    """FastAPI dependency injection for VisitorService."""
    return VisitorService(visitor_repo=visitor_repo, forwarder=forwarder)


# Type aliases for dependency injection
VisitorRepoDep = Annotated[VisitorRepository, Depends(get_visitor_repository)]
ForwarderDep = Annotated[AnalyticsForwarder, Depends(get_shared_forwarder)]
VisitorServiceDep = Annotated[VisitorService, Depends(get_visitor_service)]
