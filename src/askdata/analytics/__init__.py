"""Analytics backends consumed by the data lookup tool."""

from .base import AnalyticsBackend
from .static import StaticBackend
from .thoughtspot import ThoughtSpotBackend

__all__ = ["AnalyticsBackend", "StaticBackend", "ThoughtSpotBackend"]
