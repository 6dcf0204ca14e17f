"""
Text generation backends for the troubleshooting advisor.

Each backend takes an ordered list of role-tagged messages plus sampling
parameters and returns a GenerationResult: HasText when the provider gave
usable text, NoText carrying the raw provider response otherwise.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Union

import google.generativeai as genai
import openai

from connection import (
    configure_gemini, get_openai_client,
    GeminiConnectionError, OpenAIConnectionError
)
from models import ChatMessage
from logger import get_logger

logger = get_logger(__name__)


class GenerationError(Exception):
    """Raised when the provider call fails."""
    pass


@dataclass(frozen=True)
class HasText:
    """Provider returned text."""
    text: str


@dataclass(frozen=True)
class NoText:
    """Provider returned something without usable text."""
    raw: Any


GenerationResult = Union[HasText, NoText]


def render_fallback(raw: Any) -> str:
    """Generic string rendering of a response that carried no text."""
    if raw is None:
        return ""
    if isinstance(raw, (dict, list)):
        try:
            return json.dumps(raw, default=str)
        except (TypeError, ValueError):
            # circular references
            return repr(raw)
    return str(raw)


def coerce_text(result: GenerationResult) -> str:
    """Turn a GenerationResult into reply text. Never raises."""
    if isinstance(result, HasText):
        return result.text
    return render_fallback(result.raw)


class TextGenerator(ABC):
    """Request/response interface to a chat model."""

    provider = "base"

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    def generate(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int
    ) -> GenerationResult:
        """Generate one reply for the given messages."""
        raise NotImplementedError


class GeminiGenerator(TextGenerator):
    """Gemini chat generation via google-generativeai."""

    provider = "gemini"

    def __init__(self, model: str = None):
        super().__init__(model or os.getenv("GEMINI_MODEL_NAME", "gemini-2.0-flash"))

    @staticmethod
    def to_contents(messages: List[ChatMessage]):
        """
        Split messages into Gemini's system instruction and contents list.

        Gemini calls the assistant role "model" and takes system text
        separately from the conversation. Contents must open with a user
        turn, so leading model turns (an odd history window) are dropped.
        """
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [m.content]
            }
            for m in messages
            if m.role != "system"
        ]
        while contents and contents[0]["role"] == "model":
            contents.pop(0)
        return "\n\n".join(system_parts) or None, contents

    def generate(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int
    ) -> GenerationResult:
        try:
            configure_gemini()
        except GeminiConnectionError as e:
            raise GenerationError(str(e)) from e

        system_instruction, contents = self.to_contents(messages)

        start_time = time.time()
        try:
            model = genai.GenerativeModel(
                model_name=self.model,
                system_instruction=system_instruction
            )
            response = model.generate_content(
                contents,
                generation_config=genai.GenerationConfig(
                    temperature=temperature,
                    max_output_tokens=max_tokens
                )
            )
        except Exception as e:
            logger.error(f"Gemini generation failed: {str(e)}", model=self.model)
            raise GenerationError(f"Gemini generation failed: {str(e)}") from e

        usage = getattr(response, "usage_metadata", None)
        logger.llm_call(
            model=self.model,
            prompt_tokens=getattr(usage, "prompt_token_count", None),
            response_tokens=getattr(usage, "candidates_token_count", None),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )

        if response is None:
            logger.warning("Empty response object from Gemini")
            return NoText(None)

        # .text raises ValueError when the candidate has no parts (e.g. blocked)
        try:
            text = response.text
        except (ValueError, AttributeError) as e:
            logger.warning(f"Gemini response has no text: {str(e)}")
            return NoText(response)

        if not text:
            return NoText(response)
        return HasText(text)


class OpenAIGenerator(TextGenerator):
    """Chat completions via the OpenAI SDK (or any compatible endpoint)."""

    provider = "openai"

    def __init__(self, model: str = None):
        super().__init__(model or os.getenv("OPENAI_MODEL_NAME", "gpt-4o-mini"))

    def generate(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int
    ) -> GenerationResult:
        try:
            client = get_openai_client()
        except OpenAIConnectionError as e:
            raise GenerationError(str(e)) from e

        start_time = time.time()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI generation failed: {str(e)}", model=self.model)
            raise GenerationError(f"OpenAI generation failed: {str(e)}") from e

        usage = getattr(response, "usage", None)
        logger.llm_call(
            model=self.model,
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            response_tokens=getattr(usage, "completion_tokens", None),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            logger.warning("OpenAI response has no message content")
            return NoText(response)
        return HasText(content)


def create_generator(config) -> TextGenerator:
    """
    Build the generator selected by configuration.

    Args:
        config: AppConfig with llm_provider and model names

    Returns:
        TextGenerator instance
    """
    if config.llm_provider == "openai":
        return OpenAIGenerator(model=config.openai_model_name)
    return GeminiGenerator(model=config.gemini_model_name)
