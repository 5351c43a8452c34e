"""askdata - ask your data anything."""

from .app import ChatService, build_service
from .conversation import ConversationStore
from .core import StreamingOrchestrator

__version__ = "0.1.0"

__all__ = ["ChatService", "ConversationStore", "StreamingOrchestrator", "build_service"]
