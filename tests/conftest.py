"""
Shared test fixtures.

Temporary visitor store, a forwarder with forwarding disabled, and a
helper for building pixel events.
"""

import pytest
import tempfile
from pathlib import Path
from typing import Any, Optional
from unittest.mock import patch

from src.domain.models.event import PixelEvent
from src.persistence.database import init_database
from src.persistence.repositories.visitor_repo import VisitorRepository
from src.services.forwarder import AnalyticsForwarder
from src.services.visitor_service import VisitorService

TEST_TTL_SECONDS = 30 * 24 * 60 * 60


def build_event(
    event: str = "page_view",
    anonymous_id: str = "visitor-1",
    page_url: Optional[str] = None,
    timestamp: Optional[str] = None,
    **properties: Any,
) -> PixelEvent:
    """Build a PixelEvent; keyword arguments become event properties."""
    return PixelEvent(
        event=event,
        anonymous_id=anonymous_id,
        session_id="session-1",
        timestamp=timestamp,
        page_url=page_url,
        page_title="Test Page" if page_url else None,
        properties=properties,
    )


@pytest.fixture
async def test_db():
    """Create and initialize a temporary visitor store database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from src.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        with patch("src.persistence.database.settings", config.settings):
            yield db_path

        config.settings.database_path = original_path


@pytest.fixture
async def visitor_repo(test_db):
    """Visitor repository backed by the test database."""
    return VisitorRepository(str(test_db), TEST_TTL_SECONDS)


@pytest.fixture
def forwarder():
    """Forwarder with no webhook configured (forwarding disabled)."""
    return AnalyticsForwarder(webhook_url=None, brand_id="test-brand")


@pytest.fixture
async def visitor_service(visitor_repo, forwarder):
    """Visitor service wired to the test store."""
    return VisitorService(visitor_repo=visitor_repo, forwarder=forwarder)


@pytest.fixture
def make_event():
    """Factory fixture for PixelEvents (see build_event)."""
    return build_event
