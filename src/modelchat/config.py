"""Runtime configuration.

Settings are read from environment variables (a ``.env`` file is loaded by the
CLI). Magic numbers used across the engine live here as module constants.
"""

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Conversation windowing
CONTEXT_WINDOW_SIZE = 10  # Most recent log entries sent with each turn

# Providers
PROVIDER_GEMINI = "gemini"  # Managed cloud provider
PROVIDER_CUSTOM = "custom"  # Self-hosted model server
PROVIDERS = (PROVIDER_GEMINI, PROVIDER_CUSTOM)

# Model selection
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_PREFERRED_MODELS = ("gemini-2.5-flash", "gemini-2.0-flash")
GEMINI_OFFLINE_CATALOG = ("gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.0-flash-lite")
DEFAULT_CUSTOM_MODEL = "qwen2:0.5b"

# Default system context
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that answers user questions clearly and informatively."
)

# Asset upload limits
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_UPLOAD_SUFFIXES = frozenset({
    ".pdf", ".txt", ".doc", ".docx", ".xls", ".xlsx",
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".svg",
})

# Backend routes
CHAT_API_PATH = "/api/chat"
FILES_API_PATH = "/api/files"


class Settings(BaseModel):
    """Engine settings resolved from the environment."""

    model_config = ConfigDict(frozen=True)

    backend_url: str = Field(default="http://localhost:3001", description="Base URL of the chat backend")
    transport: Literal["proxy", "direct"] = Field(
        default="proxy",
        description="'proxy' routes chat through the backend, 'direct' calls provider SDKs"
    )
    provider: Literal["gemini", "custom"] = Field(default=PROVIDER_GEMINI)
    request_timeout: float = Field(default=120.0, gt=0, description="Seconds before a request fails")
    log_level: str = Field(default="warning")
    gemini_api_key: str | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    custom_server_url: str | None = None
    custom_server_api_key: str = "not-needed"
    custom_model: str = DEFAULT_CUSTOM_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Environment variables:
            MODELCHAT_BACKEND_URL: Chat backend base URL (default: http://localhost:3001)
            MODELCHAT_TRANSPORT: proxy or direct (default: proxy)
            MODELCHAT_PROVIDER: gemini or custom (default: gemini)
            MODELCHAT_REQUEST_TIMEOUT: Request timeout in seconds (default: 120)
            MODELCHAT_LOG_LEVEL: debug, info, warning or error (default: warning)
            MODELCHAT_SYSTEM_PROMPT: Initial system context
            GEMINI_API_KEY: Google AI key (direct transport only)
            GEMINI_MODEL: Initial Gemini model (default: gemini-2.5-flash)
            CUSTOM_SERVER_URL: OpenAI-compatible server URL (direct transport only)
            CUSTOM_SERVER_API_KEY: Key for the custom server, if it wants one
            CUSTOM_MODEL: Default model on the custom server (default: qwen2:0.5b)
        """
        return cls(
            backend_url=os.getenv("MODELCHAT_BACKEND_URL", "http://localhost:3001").rstrip("/"),
            transport=os.getenv("MODELCHAT_TRANSPORT", "proxy").lower(),
            provider=os.getenv("MODELCHAT_PROVIDER", PROVIDER_GEMINI).lower(),
            request_timeout=float(os.getenv("MODELCHAT_REQUEST_TIMEOUT", "120")),
            log_level=os.getenv("MODELCHAT_LOG_LEVEL", "warning"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            custom_server_url=os.getenv("CUSTOM_SERVER_URL"),
            custom_server_api_key=os.getenv("CUSTOM_SERVER_API_KEY", "not-needed"),
            custom_model=os.getenv("CUSTOM_MODEL", DEFAULT_CUSTOM_MODEL),
            system_prompt=os.getenv("MODELCHAT_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        )
