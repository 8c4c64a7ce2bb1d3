"""Chat model clients."""

from .client import CompletionResponse, LLMClient, Message, ToolCall, Usage
from .factory import MissingAPIKeyError, create_chat_model
from .openai_compat import OpenAICompatibleClient

__all__ = [
    "CompletionResponse",
    "LLMClient",
    "Message",
    "MissingAPIKeyError",
    "OpenAICompatibleClient",
    "ToolCall",
    "Usage",
    "create_chat_model",
]
