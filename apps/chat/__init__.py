"""Chat surface: streamed transport decoding and the per-conversation session."""

from .session import ChatMessage, ChatSession, TurnResult
from .stream import ChatStreamClient, SSEDecoder, StreamEvent

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatStreamClient",
    "SSEDecoder",
    "StreamEvent",
    "TurnResult",
]
