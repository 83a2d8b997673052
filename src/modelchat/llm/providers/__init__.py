from .gemini import GeminiBackend
from .openai import OpenAICompatibleBackend
from .proxy import ProxyBackend

__all__ = ["GeminiBackend", "OpenAICompatibleBackend", "ProxyBackend"]
