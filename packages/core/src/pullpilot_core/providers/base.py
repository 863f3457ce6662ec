"""Base analysis provider implementing the Template Method pattern.

All providers share the same analysis algorithm:
    analyze() → truncate_diff()
              → _build_system_prompt() + _build_user_prompt()
              → _call_api()   ← only this differs per provider
              → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

There is deliberately no retry loop here: a failed call fails the job, and
re-running the analysis is a new submission made by the caller.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod

from pullpilot_core.errors import ProviderError, ProviderTimeout, ProviderUnavailable

logger = logging.getLogger(__name__)

CATEGORIES = ("security", "quality", "bestPractices", "performance", "suggestions")

# Shared defaults; subclasses may override as class attributes if needed.
_MAX_DIFF_LINES = 3000
_MAX_TOKENS = 2000


def truncate_diff(diff_text: str, max_lines: int = _MAX_DIFF_LINES) -> str:
    """Keep the first max_lines lines of a diff.

    Prefix-based so the same diff always produces the same prompt.
    """
    lines = diff_text.split("\n")
    if len(lines) <= max_lines:
        return diff_text
    logger.debug("Truncating diff from %d to %d lines", len(lines), max_lines)
    return "\n".join(lines[:max_lines])


def _finding(item) -> dict:
    if isinstance(item, dict):
        return {"issue": str(item.get("issue", "")), "description": str(item.get("description", ""))}
    return {"issue": str(item), "description": ""}


def normalize_report(data) -> dict | None:
    """Coerce a decoded JSON payload into the five-category report shape.

    Returns None when the payload is not an object or carries none of the
    known categories, so the caller can fall back to the raw text.
    """
    if not isinstance(data, dict):
        return None
    if not any(category in data for category in CATEGORIES):
        return None
    report = {}
    for category in CATEGORIES:
        items = data.get(category) or []
        if not isinstance(items, list):
            items = [items]
        report[category] = [_finding(i) for i in items]
    return report


class BaseAnalysisProvider(ABC):
    MAX_DIFF_LINES: int = _MAX_DIFF_LINES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, max_diff_lines: int | None = None):
        if max_diff_lines is not None:
            self.MAX_DIFF_LINES = max_diff_lines

    @property
    def name(self) -> str:
        return self.__class__.__name__

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def analyze(self, diff_text: str, pr_title: str) -> dict:
        """Analyze a pull request diff and return a findings report.

        Raises ProviderTimeout or ProviderUnavailable when the backend call
        fails. Output that is not the expected JSON never raises; it comes
        back as {"rawAnalysis": <text>}.
        """
        truncated = truncate_diff(diff_text, self.MAX_DIFF_LINES)
        system = self._build_system_prompt()
        user = self._build_user_prompt(pr_title, truncated)
        try:
            raw = self._call_api(system, user)
        except ProviderError:
            raise
        except TimeoutError as e:
            raise ProviderTimeout(f"{self.name} timed out: {e}") from e
        except Exception as e:
            raise ProviderUnavailable(f"{self.name} call failed ({type(e).__name__}): {e}") from e
        return self._parse(raw or "")

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; SDK timeouts should be raised as ProviderTimeout.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _build_system_prompt(self) -> str:
        return """You are an expert code reviewer. Analyze the following pull request diff and provide:
1. Security vulnerabilities
2. Code quality issues
3. Best practice violations
4. Performance concerns
5. Suggestions for improvement

Format your response as JSON with these keys: security, quality, bestPractices, performance, suggestions.
Each should be an array of objects with "issue" and "description" fields.
Do not return any text outside the JSON object."""

    def _build_user_prompt(self, pr_title: str, diff_text: str) -> str:
        return f"PR Title: {pr_title}\n\nCode Diff:\n{diff_text}"

    def _parse(self, raw: str) -> dict:
        """Parse the model's raw text response into a report dict.

        Anything that does not decode to a report is kept verbatim
        under rawAnalysis instead of failing the job.
        """
        # Strip only the outer ```json ... ``` fence that the model wraps
        # the response in, NOT backticks inside string values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            report = normalize_report(json.loads(cleaned))
        except json.JSONDecodeError:
            report = None
        if report is None:
            logger.warning("%s: response is not a structured report: %s", self.name, raw[:200])
            return {"rawAnalysis": raw}
        return report
