"""Data models for the Robotics Troubleshooting Advisor."""

from .session_model import Stage, Turn, SessionState, AppendResult
from .chat_models import (
    ChatMessage,
    ChatRequest, ChatResponse,
    HistoryResponse, ErrorResponse,
    TurnResult
)

__all__ = [
    "Stage", "Turn", "SessionState", "AppendResult",
    "ChatMessage",
    "ChatRequest", "ChatResponse",
    "HistoryResponse", "ErrorResponse",
    "TurnResult"
]
