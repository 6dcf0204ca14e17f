"""
Data models for Session, Turn and Stage entities.
"""

import time
from enum import Enum
from typing import List, Literal, Optional, Any
from pydantic import BaseModel, Field


class Stage(str, Enum):
    """Phase of the troubleshooting conversation."""
    INITIAL = "initial"
    DIAGNOSTIC = "diagnostic"
    SOLUTION = "solution"

    @classmethod
    def coerce(cls, value: Any) -> "Stage":
        """Map a stored or client-supplied value to a Stage, falling back to INITIAL."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.INITIAL


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Turn(BaseModel):
    """A single stored chat message."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: int = Field(default_factory=now_ms)


class SessionState(BaseModel):
    """The durable (stage, history) pair for one conversation."""
    stage: Stage = Stage.INITIAL
    history: List[Turn] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SessionState":
        """State of a session that has never been written."""
        return cls()

    @classmethod
    def from_optional(cls, state: Optional["SessionState"]) -> "SessionState":
        """Absent sessions read as a fresh initial session."""
        return state if state is not None else cls.empty()

    @property
    def message_count(self) -> int:
        return len(self.history)

    def append_pair(self, user_message: str, assistant_message: str, next_stage: Stage) -> None:
        """
        Append a user/assistant pair and set the stage.

        Timestamps never go backwards within a session, even if the
        wall clock does.
        """
        last = self.history[-1].timestamp if self.history else 0
        stamp = max(now_ms(), last)
        self.history.append(Turn(role="user", content=user_message, timestamp=stamp))
        self.history.append(Turn(role="assistant", content=assistant_message, timestamp=stamp))
        self.stage = Stage.coerce(next_stage)


class AppendResult(BaseModel):
    """Outcome of a session store write."""
    count: int
    stage: Stage
