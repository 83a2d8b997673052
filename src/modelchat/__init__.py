"""
Modelchat: provider-agnostic chat orchestration with document grounding.

Each module hides one design decision: how models are discovered and chosen,
how a request is assembled, how it is dispatched, and how grounding
documents are managed.
"""

__version__ = "0.1.0"

from .assets import Asset, AssetManager
from .config import Settings
from .conversation import ConversationState, Message, Role, build_request
from .dispatcher import Dispatcher
from .engine import ChatEngine
from .errors import (
    ChatError,
    DispatcherBusy,
    HttpError,
    ModelUnavailable,
    NetworkError,
    UploadError,
    ValidationError,
)
from .llm import ChatRequest, ChatResult
from .registry import ModelCatalog, ModelRegistry, ProviderConfig, pick_best_model

__all__ = [
    "Asset",
    "AssetManager",
    "ChatEngine",
    "ChatError",
    "ChatRequest",
    "ChatResult",
    "ConversationState",
    "Dispatcher",
    "DispatcherBusy",
    "HttpError",
    "Message",
    "ModelCatalog",
    "ModelRegistry",
    "ModelUnavailable",
    "NetworkError",
    "ProviderConfig",
    "Role",
    "Settings",
    "UploadError",
    "ValidationError",
    "build_request",
    "pick_best_model",
]
