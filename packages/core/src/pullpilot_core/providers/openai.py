from __future__ import annotations

try:
    from openai import APITimeoutError as _APITimeoutError
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _APITimeoutError = None  # type: ignore[assignment,misc]

from pullpilot_core.errors import ProviderTimeout
from pullpilot_core.providers.base import BaseAnalysisProvider


class OpenAIProvider(BaseAnalysisProvider):
    MODEL = "gpt-4o-mini"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, timeout: float = 120, max_diff_lines: int | None = None):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'pullpilot[openai]'"
            )
        super().__init__(max_diff_lines=max_diff_lines)
        # max_retries=0: a failed analysis fails the job, resubmitting is the caller's call.
        self.client = _OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except _APITimeoutError as e:
            raise ProviderTimeout(f"OpenAI request timed out: {e}") from e
        return response.choices[0].message.content or ""
