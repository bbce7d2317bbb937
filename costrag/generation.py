"""Text generation clients."""

import os
from abc import ABC, abstractmethod
from typing import Optional

from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential


class BaseTextGenerator(ABC):
    """Chat-style completion: system instruction plus one user message."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        """Return the generated text. Errors propagate to the caller."""
        pass


class OpenAIChatGenerator(BaseTextGenerator):
    """Chat completions via the OpenAI SDK (or any OpenAI-compatible server)."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        openai_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(model)
        self.client = OpenAI(
            api_key=openai_api_key or os.environ.get("OPENAI_API_KEY"),
            base_url=base_url,
        )

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def generate(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return (response.choices[0].message.content or "").strip()
