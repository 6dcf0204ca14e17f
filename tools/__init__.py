"""External collaborators of the advisor: session storage and text generation."""

from .session_store import (
    SessionStore, InMemorySessionStore, RedisSessionStore,
    SessionStoreError, create_session_store
)
from .generation import (
    TextGenerator, GeminiGenerator, OpenAIGenerator,
    GenerationError, GenerationResult, HasText, NoText,
    coerce_text, create_generator
)

__all__ = [
    "SessionStore", "InMemorySessionStore", "RedisSessionStore",
    "SessionStoreError", "create_session_store",
    "TextGenerator", "GeminiGenerator", "OpenAIGenerator",
    "GenerationError", "GenerationResult", "HasText", "NoText",
    "coerce_text", "create_generator"
]
