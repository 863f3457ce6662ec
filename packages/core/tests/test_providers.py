"""Tests for analysis provider implementations.

Shared behaviour (truncation, prompts, _parse, error mapping) lives in
BaseAnalysisProvider and is tested once via a lightweight stub, not
duplicated per provider. Provider-specific tests cover only what differs:
the SDK client setup and _call_api.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from pullpilot_core.errors import ProviderTimeout, ProviderUnavailable
from pullpilot_core.providers.anthropic import AnthropicProvider
from pullpilot_core.providers.base import CATEGORIES, BaseAnalysisProvider, normalize_report, truncate_diff
from pullpilot_core.providers.canned import DEFAULT_REPORT, CannedProvider
from pullpilot_core.providers.openai import OpenAIProvider

REPORT = {
    "security": [{"issue": "SQL injection", "description": "User input concatenated into a query."}],
    "quality": [],
    "bestPractices": [],
    "performance": [],
    "suggestions": [{"issue": "Add tests", "description": "No tests cover the new branch."}],
}
VALID_JSON = json.dumps(REPORT)


class _StubProvider(BaseAnalysisProvider):
    """Minimal concrete subclass used to test BaseAnalysisProvider shared methods."""

    def __init__(self, response=VALID_JSON, error=None, **kwargs):
        super().__init__(**kwargs)
        self.response = response
        self.error = error
        self.prompts = []

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append(user_prompt)
        if self.error is not None:
            raise self.error
        return self.response


def _diff(n_lines: int) -> str:
    return "\n".join(f"+line {i}" for i in range(1, n_lines + 1))


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


class TestTruncateDiff:
    def test_short_diff_unchanged(self):
        diff = _diff(10)
        assert truncate_diff(diff, 3000) == diff

    def test_keeps_first_lines(self):
        result = truncate_diff(_diff(5000), 3000)
        lines = result.split("\n")
        assert len(lines) == 3000
        assert lines[0] == "+line 1"
        assert lines[-1] == "+line 3000"

    def test_exact_limit_unchanged(self):
        diff = _diff(3000)
        assert truncate_diff(diff, 3000) == diff

    def test_same_diff_same_truncated_prompt_twice(self):
        """A 5000-line diff reaches the provider as the same first 3000 lines every time."""
        provider = _StubProvider()
        diff = _diff(5000)

        provider.analyze(diff, "Big PR")
        provider.analyze(diff, "Big PR")

        first, second = provider.prompts
        assert first == second
        assert "+line 3000" in first
        assert "+line 3001" not in first
        assert first.endswith(truncate_diff(diff, 3000))

    def test_max_diff_lines_override(self):
        provider = _StubProvider(max_diff_lines=2)
        provider.analyze("a\nb\nc\nd", "t")
        assert provider.prompts[0].endswith("Code Diff:\na\nb")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParse:
    def test_parses_valid_json(self):
        assert _StubProvider()._parse(VALID_JSON) == REPORT

    def test_strips_markdown_code_fences(self):
        assert _StubProvider()._parse(f"```json\n{VALID_JSON}\n```") == REPORT

    def test_missing_categories_filled_with_empty_lists(self):
        result = _StubProvider()._parse(json.dumps({"security": [{"issue": "a", "description": "b"}]}))
        assert set(result) == set(CATEGORIES)
        assert result["quality"] == []

    def test_invalid_json_falls_back_to_raw_text(self):
        assert _StubProvider()._parse("Looks fine to me.") == {"rawAnalysis": "Looks fine to me."}

    def test_json_array_falls_back_to_raw_text(self):
        raw = json.dumps([{"issue": "a"}])
        assert _StubProvider()._parse(raw) == {"rawAnalysis": raw}

    def test_object_without_categories_falls_back_to_raw_text(self):
        raw = json.dumps({"summary": "ok"})
        assert _StubProvider()._parse(raw) == {"rawAnalysis": raw}

    def test_preserves_code_blocks_inside_descriptions(self):
        payload = json.dumps({"quality": [{"issue": "x", "description": "Use:\n```python\nfoo()\n```"}]})
        result = _StubProvider()._parse(f"```json\n{payload}\n```")
        assert "```python" in result["quality"][0]["description"]


class TestNormalizeReport:
    def test_string_findings_become_issue_entries(self):
        result = normalize_report({"suggestions": ["Rename foo"]})
        assert result["suggestions"] == [{"issue": "Rename foo", "description": ""}]

    def test_single_object_wrapped_in_list(self):
        result = normalize_report({"performance": {"issue": "N+1", "description": "Loop query"}})
        assert result["performance"] == [{"issue": "N+1", "description": "Loop query"}]

    def test_unknown_keys_dropped(self):
        result = normalize_report({"security": [], "verdict": "ok"})
        assert "verdict" not in result

    def test_non_dict_returns_none(self):
        assert normalize_report("text") is None


# ---------------------------------------------------------------------------
# analyze() error mapping
# ---------------------------------------------------------------------------


class TestAnalyzeErrors:
    def test_returns_report(self):
        assert _StubProvider().analyze("+x", "Title") == REPORT

    def test_prompt_contains_title_and_diff(self):
        provider = _StubProvider()
        provider.analyze("+added line", "Fix login")
        assert "PR Title: Fix login" in provider.prompts[0]
        assert "+added line" in provider.prompts[0]

    def test_generic_error_becomes_provider_unavailable(self):
        with pytest.raises(ProviderUnavailable):
            _StubProvider(error=RuntimeError("quota exceeded")).analyze("+x", "t")

    def test_timeout_error_becomes_provider_timeout(self):
        with pytest.raises(ProviderTimeout):
            _StubProvider(error=TimeoutError("slow")).analyze("+x", "t")

    def test_provider_errors_pass_through(self):
        with pytest.raises(ProviderTimeout):
            _StubProvider(error=ProviderTimeout("sdk timeout")).analyze("+x", "t")

    def test_no_retry_on_failure(self):
        provider = _StubProvider(error=RuntimeError("boom"))
        with pytest.raises(ProviderUnavailable):
            provider.analyze("+x", "t")
        assert len(provider.prompts) == 1


# ---------------------------------------------------------------------------
# Canned provider
# ---------------------------------------------------------------------------


class TestCannedProvider:
    def test_default_report(self):
        assert CannedProvider().analyze("+x", "t") == DEFAULT_REPORT

    def test_configured_report(self):
        assert CannedProvider(report=REPORT).analyze("+x", "t") == REPORT

    def test_raw_response_goes_through_fallback(self):
        assert CannedProvider(raw_response="free text").analyze("+x", "t") == {"rawAnalysis": "free text"}

    def test_records_calls(self):
        provider = CannedProvider()
        provider.analyze("+x", "Title")
        assert len(provider.calls) == 1
        assert "PR Title: Title" in provider.calls[0][1]

    def test_delay_sleeps(self):
        with patch("pullpilot_core.providers.canned.time.sleep") as sleep:
            CannedProvider(delay=1.5).analyze("+x", "t")
        sleep.assert_called_once_with(1.5)


# ---------------------------------------------------------------------------
# Provider-specific: only what differs between OpenAI and Anthropic
# ---------------------------------------------------------------------------


class TestOpenAIProvider:
    def test_raises_import_error_without_sdk(self):
        import pullpilot_core.providers.openai as openai_mod

        real_openai = openai_mod._OpenAI
        openai_mod._OpenAI = None
        try:
            with pytest.raises(ImportError):
                OpenAIProvider(api_key="key")
        finally:
            openai_mod._OpenAI = real_openai

    def test_call_api_returns_message_content(self):
        provider = OpenAIProvider(api_key="key")
        provider.client = MagicMock()
        provider.client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content=VALID_JSON))]

        assert provider.analyze("+x", "t") == REPORT
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == OpenAIProvider.MODEL
        assert kwargs["temperature"] == 0.3

    def test_sdk_timeout_maps_to_provider_timeout(self):
        import httpx
        from openai import APITimeoutError

        provider = OpenAIProvider(api_key="key")
        provider.client = MagicMock()
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        provider.client.chat.completions.create.side_effect = APITimeoutError(request=request)

        with pytest.raises(ProviderTimeout):
            provider.analyze("+x", "t")


class TestAnthropicProvider:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicProvider(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicProvider.MODEL

    def test_call_api_joins_text_blocks(self):
        from anthropic.types import TextBlock

        provider = AnthropicProvider(api_key="key")
        provider.client = MagicMock()
        provider.client.messages.create.return_value.content = [TextBlock(type="text", text=VALID_JSON)]

        assert provider.analyze("+x", "t") == REPORT
