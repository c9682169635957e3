"""Chat-completion client shared by the interpreter and the synthesizer."""

import logging
from functools import lru_cache

from openai import OpenAI

from catalog_search.core.config import settings

logger = logging.getLogger(__name__)


def is_token_limit_error(error: Exception) -> bool:
    """True when the provider rejected the request because of its token size."""
    if getattr(error, "code", None) == "context_length_exceeded":
        return True
    return "token" in str(error).lower()


class LLMClient:
    """Wraps the OpenAI chat completions API with a system/user prompt pair"""

    def __init__(self, client: OpenAI | None = None):
        self.client = client or OpenAI(api_key=settings.OPENAI_API_KEY)

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """
        Run one chat completion and return the generated text.

        Provider errors (quota, token limits, availability) propagate to the
        caller, which decides how to degrade.
        """
        params = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        logger.debug(f"🤖 Chat completion: model={model}, json_mode={json_mode}")
        response = self.client.chat.completions.create(**params)
        return response.choices[0].message.content or ""


@lru_cache
def get_llm_client() -> LLMClient:
    """Get cached LLM client instance"""
    return LLMClient()
