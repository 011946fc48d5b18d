"""LiteLLM client wrapper for enrichment, embedding and streaming generation.

All model calls route through LLMClient so components receive it as an
injected dependency and tests substitute a fake. LiteLLM's built-in retry
is used (num_retries, exponential backoff). Any provider failure is
re-raised as UpstreamError.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

import litellm

from mindstack.config import MindstackConfig
from mindstack.db.vectors import check_dimensions, normalize
from mindstack.errors import UpstreamError

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "bedrock": "AWS_ACCESS_KEY_ID",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class LLMClient:
    """Async model calls configured from a MindstackConfig.

    Args:
        config: Loaded configuration (models, limits, dimensions).
        num_retries: Retries on transient provider errors.
    """

    def __init__(self, config: MindstackConfig, num_retries: int = 3) -> None:
        self._config = config
        self._num_retries = num_retries

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Single-shot completion with the enrichment model. Returns content text."""
        cfg = self._config.enrichment
        try:
            response = await litellm.acompletion(
                model=cfg.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens or cfg.max_tokens,
                temperature=0.0,
                num_retries=self._num_retries,
            )
        except Exception as exc:
            raise UpstreamError(f"Completion failed ({cfg.model}): {exc}") from exc
        return (response.choices[0].message.content or "").strip()

    async def embed(self, text: str) -> list[float]:
        """Embed *text* and return a unit-length vector of the configured size.

        Input is truncated to ``embedding.max_input_chars`` characters.

        Raises:
            UpstreamError: Provider failure or a vector of the wrong dimensionality.
        """
        cfg = self._config.embedding
        try:
            response = await litellm.aembedding(
                model=cfg.model,
                input=[text[: cfg.max_input_chars]],
                dimensions=cfg.dimensions,
                num_retries=self._num_retries,
                drop_params=True,
            )
            vector = [float(v) for v in response.data[0]["embedding"]]
        except Exception as exc:
            raise UpstreamError(f"Embedding failed ({cfg.model}): {exc}") from exc
        try:
            check_dimensions(vector, cfg.dimensions)
        except ValueError as exc:
            raise UpstreamError(str(exc)) from exc
        return normalize(vector)

    async def stream(
        self, messages: list[dict], system: str | None = None
    ) -> AsyncIterator[str]:
        """Yield text deltas from the generation model in arrival order.

        Closing the generator early (consumer gone) closes the provider stream.
        """
        cfg = self._config.generation
        payload = list(messages)
        if system:
            payload.insert(0, {"role": "system", "content": system})
        try:
            response = await litellm.acompletion(
                model=cfg.model,
                messages=payload,
                max_tokens=cfg.max_tokens,
                stream=True,
                num_retries=self._num_retries,
            )
        except Exception as exc:
            raise UpstreamError(f"Generation failed ({cfg.model}): {exc}") from exc

        try:
            async for part in response:
                text = part.choices[0].delta.content if part.choices else None
                if text:
                    yield text
        except Exception as exc:
            raise UpstreamError(f"Generation stream failed ({cfg.model}): {exc}") from exc
        finally:
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                await aclose()
