"""Tests for prompt templates."""

import pytest

from gemini_bridge.errors import ConfigurationError
from gemini_bridge.prompts import (
    DEFAULT_SYSTEM_PROMPT,
    analyze_code_prompt,
    load_system_prompt,
    query_prompt,
    validate_prompt,
    with_system_prompt,
)


class TestTemplates:
    def test_query_without_context(self):
        assert query_prompt("why?") == "why?"

    def test_query_with_context(self):
        assert query_prompt("why?", "because") == "Context:\nbecause\n\nQuestion:\nwhy?"

    def test_analyze_with_language(self):
        prompt = analyze_code_prompt("x = 1", "what?", "python")
        assert prompt == "Analyze this python code:\n\n```python\nx = 1\n```\n\nQuestion: what?"

    def test_analyze_without_language(self):
        assert analyze_code_prompt("x", "q").startswith("Analyze this code:\n\n```\nx\n```")

    def test_validate_with_criteria(self):
        prompt = validate_prompt("use redis", "we cache", "latency")
        assert "Validate this proposal:\n\nuse redis" in prompt
        assert "Context:\nwe cache" in prompt
        assert "Criteria:\nlatency" in prompt
        assert prompt.endswith("alternatives, and improvements.")

    def test_validate_without_criteria(self):
        assert "Criteria" not in validate_prompt("p", "c")

    def test_with_system_prompt(self):
        assert with_system_prompt("SYS", "user") == "SYS\n\n---\n\nuser"
        assert with_system_prompt("", "user") == "user"


class TestLoadSystemPrompt:
    def test_default(self):
        assert load_system_prompt(None) == DEFAULT_SYSTEM_PROMPT

    def test_from_file(self, tmp_path):
        path = tmp_path / "prompt.md"
        path.write_text("  be brief  \n")
        assert load_system_prompt(path) == "be brief"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_system_prompt(tmp_path / "nope.md")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.md"
        path.write_text("\n")
        with pytest.raises(ConfigurationError):
            load_system_prompt(path)
