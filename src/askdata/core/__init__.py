"""Core turn orchestration."""

from .orchestrator import StreamingOrchestrator, TurnState

__all__ = ["StreamingOrchestrator", "TurnState"]
