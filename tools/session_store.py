"""
Session storage for the troubleshooting conversation.

Each session is two keys: a JSON-encoded list of turns ("history") and a
stage label ("stage"). Reads of unknown sessions return a fresh initial
session. Writes append one user/assistant pair and set the stage in a single
atomic step, and writers for the same session id are serialized.
"""

import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import redis
from pydantic import ValidationError

from connection import get_redis_client
from models import AppendResult, SessionState, Stage, Turn
from logger import get_logger, log_function_call

logger = get_logger(__name__)


class SessionStoreError(Exception):
    """Raised when session state cannot be read or written."""
    pass


def decode_state(history_raw: Optional[str], stage_raw: Optional[str]) -> SessionState:
    """Build a SessionState from the two stored values; absent values mean defaults."""
    try:
        items = json.loads(history_raw) if history_raw else []
        if not isinstance(items, list):
            raise SessionStoreError(f"Stored history is {type(items).__name__}, expected list")
        history = [Turn.model_validate(item) for item in items]
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise SessionStoreError(f"Corrupt session history: {e}") from e

    return SessionState(stage=Stage.coerce(stage_raw or Stage.INITIAL), history=history)


def encode_history(state: SessionState) -> str:
    """Serialize history as a JSON list of {role, content, timestamp}."""
    return json.dumps([turn.model_dump() for turn in state.history])


class SessionStore(ABC):
    """Get/append interface over per-session durable storage."""

    backend_name = "base"

    @abstractmethod
    def read(self, session_id: str) -> SessionState:
        """Return the stored state, or an initial empty state if none exists."""
        raise NotImplementedError

    @abstractmethod
    def append(
        self,
        session_id: str,
        user_message: str,
        assistant_message: str,
        next_stage: Stage
    ) -> AppendResult:
        """Append a user turn then an assistant turn and set the stage."""
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-local store. State is lost on restart."""

    backend_name = "memory"

    def __init__(self):
        self._data: Dict[str, Dict[str, str]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            if session_id not in self._locks:
                self._locks[session_id] = threading.Lock()
            return self._locks[session_id]

    def read(self, session_id: str) -> SessionState:
        start = time.time()
        with self._lock_for(session_id):
            entry = self._data.get(session_id)
        if entry is None:
            state = SessionState.empty()
        else:
            state = decode_state(entry.get("history"), entry.get("stage"))

        logger.store_op(
            self.backend_name, "read", session_id,
            (time.time() - start) * 1000,
            message_count=state.message_count
        )
        return state

    def append(
        self,
        session_id: str,
        user_message: str,
        assistant_message: str,
        next_stage: Stage
    ) -> AppendResult:
        start = time.time()
        with self._lock_for(session_id):
            entry = self._data.get(session_id, {})
            state = decode_state(entry.get("history"), entry.get("stage"))
            state.append_pair(user_message, assistant_message, next_stage)
            # Replace the whole entry so history and stage change together
            self._data[session_id] = {
                "history": encode_history(state),
                "stage": state.stage.value,
            }

        logger.store_op(
            self.backend_name, "append", session_id,
            (time.time() - start) * 1000,
            message_count=state.message_count,
            stage=state.stage.value
        )
        return AppendResult(count=state.message_count, stage=state.stage)


class RedisSessionStore(SessionStore):
    """
    Redis-backed store.

    Keys:
        {prefix}:{session_id}:history  -> JSON list of turns
        {prefix}:{session_id}:stage    -> stage label

    Appends run inside WATCH/MULTI/EXEC, so concurrent writers for one
    session are retried instead of overwriting each other.
    """

    backend_name = "redis"

    def __init__(self, client: redis.Redis, key_prefix: str = "advisor"):
        self.client = client
        self.key_prefix = key_prefix

    def _keys(self, session_id: str) -> Tuple[str, str]:
        base = f"{self.key_prefix}:{session_id}"
        return f"{base}:history", f"{base}:stage"

    @log_function_call()
    def read(self, session_id: str) -> SessionState:
        start = time.time()
        history_key, stage_key = self._keys(session_id)
        try:
            history_raw, stage_raw = self.client.mget(history_key, stage_key)
        except redis.RedisError as e:
            raise SessionStoreError(f"Redis read failed: {e}") from e

        state = decode_state(history_raw, stage_raw)
        logger.store_op(
            self.backend_name, "read", session_id,
            (time.time() - start) * 1000,
            message_count=state.message_count
        )
        return state

    @log_function_call()
    def append(
        self,
        session_id: str,
        user_message: str,
        assistant_message: str,
        next_stage: Stage
    ) -> AppendResult:
        start = time.time()
        history_key, stage_key = self._keys(session_id)

        def apply(pipe) -> AppendResult:
            # Pipeline is in immediate mode until multi() while keys are watched
            history_raw, stage_raw = pipe.mget(history_key, stage_key)
            state = decode_state(history_raw, stage_raw)
            state.append_pair(user_message, assistant_message, next_stage)
            pipe.multi()
            pipe.set(history_key, encode_history(state))
            pipe.set(stage_key, state.stage.value)
            return AppendResult(count=state.message_count, stage=state.stage)

        try:
            result = self.client.transaction(
                apply, history_key, stage_key, value_from_callable=True
            )
        except redis.RedisError as e:
            raise SessionStoreError(f"Redis write failed: {e}") from e

        logger.store_op(
            self.backend_name, "append", session_id,
            (time.time() - start) * 1000,
            message_count=result.count,
            stage=result.stage.value
        )
        return result


def create_session_store(config) -> SessionStore:
    """
    Build the session store selected by configuration.

    Args:
        config: AppConfig with session_backend, redis_url and session_key_prefix

    Returns:
        SessionStore instance
    """
    if config.session_backend == "redis":
        client = get_redis_client(config.redis_url)
        logger.info("Using Redis session store", key_prefix=config.session_key_prefix)
        return RedisSessionStore(client, key_prefix=config.session_key_prefix)

    logger.info("Using in-memory session store")
    return InMemorySessionStore()
