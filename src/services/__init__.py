# noqa
from src.services.visitor_service import VisitorService
from src.services.forwarder import AnalyticsForwarder

__all__ = ["VisitorService", "AnalyticsForwarder"]
