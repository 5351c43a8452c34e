"""Service facade and HTTP surface."""

from .service import FAILURE_FRAGMENT, ChatService, build_service

__all__ = ["FAILURE_FRAGMENT", "ChatService", "build_service"]
