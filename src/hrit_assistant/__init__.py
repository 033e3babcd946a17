"""HR/IT assistant package."""

from .agent.orchestrator import QueryOrchestrator, build_orchestrator
from .agent.registry import ServiceRegistry
from .config import AppSettings, load_settings
from .conversation.store import ConversationStateStore

__all__ = [
    "AppSettings",
    "ConversationStateStore",
    "QueryOrchestrator",
    "ServiceRegistry",
    "build_orchestrator",
    "load_settings",
]
