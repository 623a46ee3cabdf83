"""
Vision Provider Abstraction Layer

Provides a unified interface for the vision AI providers (Anthropic
Claude, OpenAI GPT-4o) that read construction plan pages.

Providers only move text and images: they return the raw model text and
classify failures. Retry, JSON repair and parsing live in plan_analyzer.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import anthropic
import openai

from .plan_images import PlanImage

logger = logging.getLogger(__name__)

# Status codes worth another attempt (529 = Anthropic overloaded)
TRANSIENT_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504, 529})

DEFAULT_MAX_TOKENS = 2800
REQUEST_TIMEOUT = 120.0


class ProviderError(Exception):
    """A vision call failed and should not be retried."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Rate limit, overload, server error or timeout."""


class EmptyResponseError(TransientProviderError):
    """The model answered with no text."""


@dataclass
class ProviderResponse:
    """Raw model text plus token usage."""
    text: str
    tokens_used: int


def classify_status(status_code: Optional[int], message: str) -> ProviderError:
    """Wrap an HTTP failure in the right error class."""
    if status_code in TRANSIENT_STATUS_CODES:
        return TransientProviderError(message, status_code)
    return ProviderError(message, status_code)


# ============================================================================
# Abstract Base Class
# ============================================================================

class VisionProvider(ABC):
    """
    Abstract base class for vision AI providers.

    Defines the interface for sending a prompt (optionally with one plan
    image) and getting back the model's text.
    """

    PROVIDER_NAME: str = "unknown"
    DEFAULT_MODEL: str = ""

    def __init__(self, api_key: str, model: Optional[str] = None, max_tokens: int = DEFAULT_MAX_TOKENS):
        """
        Initialize the vision provider.

        Args:
            api_key: API key for the provider
            model: Model to use (defaults to provider's default)
            max_tokens: Default response token limit
        """
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        image: Optional[PlanImage] = None,
        max_tokens: Optional[int] = None
    ) -> ProviderResponse:
        """
        Send one request.

        Args:
            prompt: User prompt text
            system: Optional system prompt
            image: Optional plan image sent before the prompt
            max_tokens: Override for the response token limit

        Returns:
            ProviderResponse with non-empty text

        Raises:
            TransientProviderError: Worth retrying
            ProviderError: Permanent failure
        """
        pass

    def _require_text(self, text: Optional[str]) -> str:
        if not text or not text.strip():
            raise EmptyResponseError(f"Empty response from {self.PROVIDER_NAME}")
        return text


# ============================================================================
# Anthropic Provider
# ============================================================================

class AnthropicProvider(VisionProvider):
    """Vision provider using Anthropic's Claude API."""

    PROVIDER_NAME = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: Optional[str] = None, max_tokens: int = DEFAULT_MAX_TOKENS):
        super().__init__(api_key, model, max_tokens)
        # Retries are handled by PlanAnalyzer
        self.client = anthropic.Anthropic(api_key=api_key, max_retries=0, timeout=REQUEST_TIMEOUT)

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        image: Optional[PlanImage] = None,
        max_tokens: Optional[int] = None
    ) -> ProviderResponse:
        """Send a prompt (and image) to Claude."""
        content: List[Dict[str, Any]] = []
        if image is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": image.base64_data
                }
            })
        content.append({"type": "text", "text": prompt})

        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": 0,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            request["system"] = system

        try:
            response = self.client.messages.create(**request)
        except anthropic.APIStatusError as e:
            raise classify_status(e.status_code, f"Anthropic API error {e.status_code}: {e.message}") from e
        except anthropic.APIConnectionError as e:
            raise TransientProviderError(f"Anthropic connection error: {e}") from e

        text = "".join(
            block.text for block in (response.content or [])
            if getattr(block, "type", "") == "text"
        )
        tokens_used = ((response.usage.input_tokens or 0) + (response.usage.output_tokens or 0)) if response.usage else 0

        if response.stop_reason == "max_tokens":
            logger.warning(f"Claude response hit max_tokens ({request['max_tokens']}), JSON may be truncated")

        return ProviderResponse(text=self._require_text(text), tokens_used=tokens_used)


# ============================================================================
# OpenAI Provider
# ============================================================================

class OpenAIProvider(VisionProvider):
    """Vision provider using OpenAI's GPT-4o API."""

    PROVIDER_NAME = "openai"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: Optional[str] = None, max_tokens: int = DEFAULT_MAX_TOKENS):
        super().__init__(api_key, model, max_tokens)
        self.client = openai.OpenAI(api_key=api_key, max_retries=0, timeout=REQUEST_TIMEOUT)

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        image: Optional[PlanImage] = None,
        max_tokens: Optional[int] = None
    ) -> ProviderResponse:
        """Send a prompt (and image) to GPT-4o."""
        content: List[Dict[str, Any]] = []
        if image is not None:
            content.append({
                "type": "image_url",
                "image_url": {
                    "url": f"data:{image.media_type};base64,{image.base64_data}",
                    "detail": "high"
                }
            })
        content.append({"type": "text", "text": prompt})

        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=0,
                messages=messages
            )
        except openai.APIStatusError as e:
            raise classify_status(e.status_code, f"OpenAI API error {e.status_code}: {e.message}") from e
        except openai.APIConnectionError as e:
            raise TransientProviderError(f"OpenAI connection error: {e}") from e

        text = response.choices[0].message.content if response.choices and response.choices[0].message else ""
        tokens_used = response.usage.total_tokens if response.usage else 0

        return ProviderResponse(text=self._require_text(text), tokens_used=tokens_used)


# ============================================================================
# Factory Function
# ============================================================================

PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider
}

API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY"
}


def get_provider(
    provider_name: str,
    api_key: str,
    model: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS
) -> VisionProvider:
    """
    Factory function to create a vision provider.

    Args:
        provider_name: Provider name ('anthropic' or 'openai')
        api_key: API key for the provider
        model: Optional model override
        max_tokens: Default response token limit

    Returns:
        VisionProvider instance

    Raises:
        ValueError: If provider name is unknown or the key is missing
    """
    provider_class = PROVIDERS.get((provider_name or "").lower())
    if provider_class is None:
        raise ValueError(f"Unknown provider: {provider_name}. Supported: {list(PROVIDERS.keys())}")
    if not api_key:
        raise ValueError(
            f"API key required for {provider_name}. "
            f"Set {API_KEY_ENV_VARS[provider_name.lower()]} or pass api_key."
        )

    return provider_class(api_key=api_key, model=model, max_tokens=max_tokens)
