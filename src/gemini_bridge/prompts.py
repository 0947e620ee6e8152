"""Prompt templates for the MCP tools."""

from __future__ import annotations

import logging
from pathlib import Path

from gemini_bridge.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """\
You are being consulted by another AI agent as a research assistant and \
independent reviewer. You are a different model from the caller, so your \
value is a genuinely different perspective.

Guidelines:
- Cite sources: URLs, documentation, repositories, version numbers and dates.
- Flag uncertainty explicitly instead of guessing.
- Organize answers with headings, lists and code blocks.
- Consider alternatives; do not simply agree with the proposal in front of you.
- Question assumptions that look wrong.
- Prefer actionable information over theory.

Be direct and technical. No filler."""

SEPARATOR = "\n\n---\n\n"

ASSESSMENT_REQUEST = (
    "Provide an independent assessment considering potential issues, "
    "alternatives, and improvements."
)


def load_system_prompt(path: str | Path | None = None) -> str:
    """Return the system prompt from ``path``, or the built-in default."""
    if path is None:
        return DEFAULT_SYSTEM_PROMPT
    try:
        text = Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f"cannot read system prompt file {path}: {e}", cause=e) from e
    if not text:
        raise ConfigurationError(f"system prompt file {path} is empty")
    logger.info("Loaded system prompt from %s", path)
    return text


def with_system_prompt(system_prompt: str, user_prompt: str) -> str:
    if not system_prompt:
        return user_prompt
    return f"{system_prompt}{SEPARATOR}{user_prompt}"


def query_prompt(prompt: str, context: str | None = None) -> str:
    if context:
        return f"Context:\n{context}\n\nQuestion:\n{prompt}"
    return prompt


def analyze_code_prompt(code: str, question: str, language: str | None = None) -> str:
    if language:
        return (
            f"Analyze this {language} code:\n\n```{language}\n{code}\n```\n\n"
            f"Question: {question}"
        )
    return f"Analyze this code:\n\n```\n{code}\n```\n\nQuestion: {question}"


def validate_prompt(proposal: str, context: str, criteria: str | None = None) -> str:
    parts = [f"Validate this proposal:\n\n{proposal}", f"Context:\n{context}"]
    if criteria:
        parts.append(f"Criteria:\n{criteria}")
    parts.append(ASSESSMENT_REQUEST)
    return "\n\n".join(parts)
