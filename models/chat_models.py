"""
Data models for the chat API and the generation request.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .session_model import Stage, Turn


class ChatMessage(BaseModel):
    """Role-tagged message sent to the text generation backend."""
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Model for chat endpoint requests."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    user_message: Optional[str] = Field(None, alias="userMessage")


class ChatResponse(BaseModel):
    """Model for chat endpoint responses."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    stage: Stage
    session_id: str = Field(..., alias="sessionId")


class HistoryResponse(BaseModel):
    """Model for the session history endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    stage: Stage
    message_count: int = Field(..., alias="messageCount")
    history: List[Turn] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str


class TurnResult(BaseModel):
    """What the orchestrator hands back for one completed turn."""
    reply_text: str
    stage: Stage
