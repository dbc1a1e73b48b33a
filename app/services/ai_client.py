"""
Generative AI Client

The text API is OpenAI-compatible (DeepSeek, Gemini's OpenAI endpoint, ...),
so we use the openai library. The model is picked by name: from settings by
default, or per call.

Only the connection diagnostics and plain completions live here; prompts
are owned by the callers.
"""
import logging
from typing import List, Optional

from openai import OpenAI, OpenAIError

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class AIClient:
    """
    Thin wrapper around an OpenAI-compatible chat completion API.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        settings = get_settings()
        self.client = client or OpenAI(
            api_key=settings.ai_api_key,
            base_url=settings.ai_base_url
        )
        self.model = model or settings.ai_model

    def complete(self, system_prompt: str, user_content: str,
                 max_tokens: int = 1000, model: Optional[str] = None) -> str:
        """
        Call the chat completion endpoint.
        Returns raw text response.
        """
        response = self.client.chat.completions.create(
            model=model or self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=0.1  # Low temp for deterministic replies
        )
        return response.choices[0].message.content or ""

    def list_models(self) -> List[str]:
        """Names of the models the API key can use."""
        return sorted(model.id for model in self.client.models.list())

    def test_connection(self, model: Optional[str] = None) -> bool:
        """Test if the AI API answers with the given (or configured) model"""
        try:
            response = self.complete(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10,
                model=model,
            )
            return "OK" in response.upper()
        except OpenAIError as e:
            logger.warning("AI connection failed (model=%s): %s", model or self.model, e)
            return False


# Singleton instance
_ai_client: AIClient = None


def get_ai_client() -> AIClient:
    """Get or create AI client (singleton pattern)"""
    global _ai_client
    if _ai_client is None:
        _ai_client = AIClient()
    return _ai_client
