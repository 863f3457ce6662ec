from __future__ import annotations

from pullpilot_core.errors import ProviderTimeout
from pullpilot_core.providers.base import BaseAnalysisProvider


class AnthropicProvider(BaseAnalysisProvider):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, timeout: float = 120, max_diff_lines: int | None = None):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'pullpilot[anthropic]'"
            )
        super().__init__(max_diff_lines=max_diff_lines)
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # __init__ already checked that anthropic is installed.
        from anthropic import APITimeoutError
        from anthropic.types import TextBlock

        try:
            response = self.client.messages.create(
                model=self.MODEL,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except APITimeoutError as e:
            raise ProviderTimeout(f"Anthropic request timed out: {e}") from e
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
