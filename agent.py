"""
Troubleshooting advisor agent - per-turn chat orchestration.

For every user message the agent reads the session, asks the stage policy
for the system prompt and next stage, calls the text generation backend
with a bounded slice of history, persists the exchange, and returns the
reply. It holds no conversation state of its own.
"""

import time
from typing import List, Optional, Sequence

from config import AppConfig, get_config
from models import ChatMessage, SessionState, Turn, TurnResult
from tools import (
    SessionStore, SessionStoreError, create_session_store,
    TextGenerator, GenerationError, coerce_text, create_generator
)
from workflow import decide, has_solution_hint
from logger import get_logger

logger = get_logger(__name__)

MISSING_INPUT_MESSAGE = "sessionId and userMessage required"
MAX_SESSION_ID_LENGTH = 256
SESSION_ID_TOO_LONG_MESSAGE = f"sessionId must be at most {MAX_SESSION_ID_LENGTH} characters"


class AgentError(Exception):
    """Base exception for agent errors."""
    pass


class InputValidationError(AgentError):
    """Required request fields are missing or empty."""
    pass


class GenerationFailedError(AgentError):
    """The text generation backend failed or was unreachable."""
    pass


class PersistenceError(AgentError):
    """The reply was generated but the session could not be saved."""
    pass


def build_messages(
    system_prompt: str,
    history: Sequence[Turn],
    user_message: str,
    window: int = 8
) -> List[ChatMessage]:
    """
    Assemble the generation request.

    One system message, then the last `window` stored turns in their
    original order, then the new user message.
    """
    recent = list(history)[-window:] if window > 0 else []
    return [
        ChatMessage(role="system", content=system_prompt),
        *(ChatMessage(role=turn.role, content=turn.content) for turn in recent),
        ChatMessage(role="user", content=user_message),
    ]


class AdvisorAgent:
    """
    Coordinates one chat turn across the session store, the stage policy
    and the text generation backend.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        generator: Optional[TextGenerator] = None,
        config: Optional[AppConfig] = None
    ):
        """
        Initialize the advisor agent.

        Args:
            store: Session store (default: built from configuration on first use)
            generator: Text generator (default: built from configuration on first use)
            config: Application configuration (default: global config)
        """
        self.config = config or get_config()
        self._store = store
        self._generator = generator

    @property
    def store(self) -> SessionStore:
        """Lazy-load the session store."""
        if self._store is None:
            try:
                self._store = create_session_store(self.config)
            except Exception as e:
                logger.error(f"Failed to initialize session store: {str(e)}")
                raise AgentError(f"Failed to initialize session store: {str(e)}")
        return self._store

    @property
    def generator(self) -> TextGenerator:
        """Lazy-load the text generator."""
        if self._generator is None:
            self._generator = create_generator(self.config)
            logger.info(
                "Text generator initialized",
                provider=self._generator.provider,
                model=self._generator.model
            )
        return self._generator

    def load_session(self, session_id: str) -> SessionState:
        """
        Read session state, degrading to a fresh session if the store fails.

        A failed read restarts the conversation at the initial stage.
        """
        try:
            return SessionState.from_optional(self.store.read(session_id))
        except (SessionStoreError, AgentError) as e:
            logger.warning(
                "Session read failed, starting fresh",
                session_id=session_id,
                error=str(e)
            )
            return SessionState.empty()

    def get_history(self, session_id: str) -> SessionState:
        """Return stored state for a session. Store errors propagate."""
        try:
            return self.store.read(session_id)
        except SessionStoreError as e:
            logger.error(f"History read failed: {str(e)}", session_id=session_id)
            raise PersistenceError(str(e)) from e

    def handle_turn(self, session_id: Optional[str], user_message: Optional[str]) -> TurnResult:
        """
        Process one user message.

        Args:
            session_id: Caller-supplied session identifier (required, non-empty)
            user_message: Latest user text (required, non-empty)

        Returns:
            TurnResult with the assistant reply and the session's new stage

        Raises:
            InputValidationError: Missing, empty or over-long input; nothing is read or written
            GenerationFailedError: Backend failed; nothing is persisted
            PersistenceError: Reply generated but the session write failed
        """
        start_time = time.time()

        if not session_id or not session_id.strip() or not user_message or not user_message.strip():
            logger.warning(
                "Invalid chat input",
                has_session_id=bool(session_id and session_id.strip()),
                has_message=bool(user_message and user_message.strip())
            )
            raise InputValidationError(MISSING_INPUT_MESSAGE)

        if len(session_id) > MAX_SESSION_ID_LENGTH:
            logger.warning("Session id too long", length=len(session_id))
            raise InputValidationError(SESSION_ID_TOO_LONG_MESSAGE)

        state = self.load_session(session_id)
        decision = decide(state.stage, user_message, state.history)

        if decision.next_stage is not state.stage:
            logger.stage_transition(
                session_id=session_id,
                from_stage=state.stage.value,
                to_stage=decision.next_stage.value,
                turns=state.message_count
            )
        if has_solution_hint(user_message):
            logger.debug("Solution hint in user message", session_id=session_id, stage=state.stage.value)

        messages = build_messages(
            decision.system_prompt,
            state.history,
            user_message,
            window=self.config.history_window
        )

        try:
            result = self.generator.generate(
                messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens
            )
        except GenerationError as e:
            logger.error(f"Generation failed: {str(e)}", session_id=session_id)
            raise GenerationFailedError(str(e)) from e

        assistant_message = coerce_text(result)

        try:
            saved = self.store.append(session_id, user_message, assistant_message, decision.next_stage)
        except SessionStoreError as e:
            logger.error(f"Session write failed: {str(e)}", session_id=session_id)
            raise PersistenceError(str(e)) from e

        duration = (time.time() - start_time) * 1000
        logger.info(
            "Turn completed",
            session_id=session_id,
            stage=saved.stage.value,
            message_count=saved.count,
            context_messages=len(messages),
            duration_ms=round(duration, 2)
        )

        return TurnResult(reply_text=assistant_message, stage=decision.next_stage)


# Global agent instance (singleton pattern)
_agent_instance: Optional[AdvisorAgent] = None


def get_agent() -> AdvisorAgent:
    """
    Get or create the global advisor agent.

    Returns:
        AdvisorAgent instance

    Raises:
        AgentError: If agent initialization fails
    """
    global _agent_instance

    if _agent_instance is None:
        logger.info("Initializing AdvisorAgent singleton")
        try:
            _agent_instance = AdvisorAgent()
            logger.info("AdvisorAgent initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize AdvisorAgent: {str(e)}")
            raise AgentError(f"Agent initialization failed: {str(e)}")

    return _agent_instance


def reset_agent() -> None:
    """Reset the global agent instance (useful for testing or reloading config)."""
    global _agent_instance
    _agent_instance = None
    logger.info("Agent instance reset")
