"""
Connection utilities for Redis, Gemini, and OpenAI.

Clients are created lazily and cached; SDK exceptions propagate to callers.
"""

import os
import time
from typing import Optional
from dotenv import load_dotenv

# Load dotenv at module level FIRST
load_dotenv(override=True)

import redis
import google.generativeai as genai
from openai import OpenAI

from logger import get_logger

logger = get_logger(__name__)


class RedisConnectionError(Exception):
    """Redis connection error - wraps raw SDK exceptions."""
    pass


class GeminiConnectionError(Exception):
    """Gemini connection error."""
    pass


class OpenAIConnectionError(Exception):
    """OpenAI connection error."""
    pass


class Connections:
    """Manages connections to external services."""

    def __init__(self):
        self._redis_client: Optional[redis.Redis] = None
        self._openai_client: Optional[OpenAI] = None
        self._gemini_configured: bool = False

    def get_redis_client(self, url: Optional[str] = None) -> redis.Redis:
        """
        Get or create the Redis client.

        Creates client from the given url or REDIS_URL. Does NOT ping; the
        first command surfaces connection problems.
        """
        if self._redis_client is not None:
            return self._redis_client

        url = (url or os.getenv("REDIS_URL", "")).strip()
        if not url:
            raise RedisConnectionError("REDIS_URL environment variable is not set")

        logger.info(f"[REDIS] Creating client with url={url.split('@')[-1][:50]}")

        self._redis_client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )

        logger.info("[REDIS] Client instance created")
        return self._redis_client

    def test_redis_connection(self) -> dict:
        """
        Test Redis connection with PING.

        Returns raw result or raw exception - NO custom messages.
        """
        try:
            client = self.get_redis_client()

            start = time.time()
            client.ping()
            duration = (time.time() - start) * 1000

            logger.info(f"[REDIS] PING ok, duration: {duration:.2f}ms")
            return {
                "success": True,
                "duration_ms": duration
            }

        except Exception as e:
            error_info = {
                "success": False,
                "exception_type": type(e).__name__,
                "exception_message": str(e),
                "raw_error": repr(e)
            }
            logger.error(f"[REDIS] FAILED: {error_info}")
            return error_info

    def configure_gemini(self) -> bool:
        """Configure Gemini API."""
        if self._gemini_configured:
            return True

        api_key = os.getenv("GEMINI_API_KEY", "").strip()
        if not api_key:
            raise GeminiConnectionError("GEMINI_API_KEY not set")

        genai.configure(api_key=api_key)
        self._gemini_configured = True
        logger.info("[GEMINI] Configured successfully")
        return True

    def get_openai_client(self) -> OpenAI:
        """Get OpenAI client."""
        if self._openai_client is not None:
            return self._openai_client

        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise OpenAIConnectionError("OPENAI_API_KEY not set")

        base_url = os.getenv("OPENAI_BASE_URL", "").strip() or None
        self._openai_client = OpenAI(api_key=api_key, base_url=base_url)
        logger.info("[OPENAI] Client created")
        return self._openai_client

    def health_check(self, provider: str = "gemini", session_backend: str = "memory") -> dict:
        """Health check for the configured provider and session backend - returns raw results."""
        status = {}

        if session_backend == "redis":
            redis_result = self.test_redis_connection()
            status["redis"] = {
                "healthy": redis_result.get("success", False),
                "details": redis_result
            }
        else:
            status["memory"] = {"healthy": True, "details": "In-process session store"}

        try:
            if provider == "openai":
                self.get_openai_client()
            else:
                self.configure_gemini()
            status[provider] = {"healthy": True, "details": "Configured"}
        except Exception as e:
            status[provider] = {
                "healthy": False,
                "details": {"exception_type": type(e).__name__, "message": str(e)}
            }

        return status

    def reset(self) -> None:
        """Forget cached clients."""
        if self._redis_client is not None:
            try:
                self._redis_client.close()
            except redis.RedisError as e:
                logger.warning(f"[REDIS] Error while closing client: {e}")
        self._redis_client = None
        self._openai_client = None
        self._gemini_configured = False


# Global instance
connections = Connections()


def get_redis_client(url: Optional[str] = None) -> redis.Redis:
    """Get global Redis client."""
    return connections.get_redis_client(url)


def get_openai_client() -> OpenAI:
    """Get global OpenAI client."""
    return connections.get_openai_client()


def configure_gemini() -> bool:
    """Configure Gemini."""
    return connections.configure_gemini()


def health_check(provider: str = "gemini", session_backend: str = "memory") -> dict:
    """Health check."""
    return connections.health_check(provider=provider, session_backend=session_backend)
