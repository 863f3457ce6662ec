"""Deterministic provider for demos and tests: no network, no API key.

Runs through the same truncate → prompt → parse path as the real providers,
so anything downstream of analyze() behaves identically.
"""

from __future__ import annotations

import json
import logging
import time

from pullpilot_core.providers.base import BaseAnalysisProvider

logger = logging.getLogger(__name__)

DEFAULT_REPORT: dict = {
    "security": [],
    "quality": [
        {
            "issue": "Canned review",
            "description": "This report was produced by the canned provider; no model was called.",
        }
    ],
    "bestPractices": [],
    "performance": [],
    "suggestions": [
        {
            "issue": "Configure a real provider",
            "description": "Set `provider: openai` or `provider: anthropic` in .pullpilot.yml.",
        }
    ],
}


class CannedProvider(BaseAnalysisProvider):
    """Returns a fixed report (or fixed raw text) for every diff.

    `delay` simulates model latency so the pending state is observable.
    Every prompt pair sent is kept in `calls`.
    """

    def __init__(
        self,
        report: dict | None = None,
        raw_response: str | None = None,
        delay: float = 0.0,
        max_diff_lines: int | None = None,
    ):
        super().__init__(max_diff_lines=max_diff_lines)
        self._response = raw_response if raw_response is not None else json.dumps(report or DEFAULT_REPORT)
        self._delay = delay
        self.calls: list[tuple[str, str]] = []

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self._delay:
            logger.debug("CannedProvider sleeping %.1fs", self._delay)
            time.sleep(self._delay)
        return self._response
