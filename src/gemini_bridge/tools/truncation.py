"""Size limits for tool output fed back to the model."""

from __future__ import annotations

CHAR_LIMITS: dict[str, int] = {
    "read_file": 50_000,
    "search_text": 20_000,
    "list_directory": 20_000,
}

LINE_LIMITS: dict[str, int] = {
    "search_text": 200,
    "list_directory": 500,
}

DEFAULT_CHAR_LIMIT = 30_000
DEFAULT_LINE_LIMIT = 500


def _count_lines(text: str) -> int:
    return text.count("\n") + (1 if text and not text.endswith("\n") else 0)


def truncate_chars(text: str, limit: int) -> str:
    """Keep the head and tail of ``text`` around a truncation notice."""
    if len(text) <= limit:
        return text
    head_size = limit // 2
    tail_size = limit - head_size
    removed = len(text) - limit
    return text[:head_size] + f"\n... [truncated {removed} chars] ...\n" + text[-tail_size:]


def truncate_lines(text: str, limit: int) -> str:
    lines = text.splitlines(keepends=True)
    if len(lines) <= limit:
        return text
    head_count = limit // 2
    tail_count = limit - head_count
    removed = len(lines) - limit
    return (
        "".join(lines[:head_count])
        + f"\n... [truncated {removed} lines] ...\n"
        + "".join(lines[-tail_count:])
    )


def truncate_output(
    text: str,
    tool_name: str,
    char_limit: int | None = None,
    line_limit: int | None = None,
) -> str:
    """Apply the tool's character limit, then its line limit."""
    max_chars = char_limit if char_limit is not None else CHAR_LIMITS.get(tool_name, DEFAULT_CHAR_LIMIT)
    max_lines = line_limit if line_limit is not None else LINE_LIMITS.get(tool_name, DEFAULT_LINE_LIMIT)

    result = truncate_chars(text, max_chars)
    if _count_lines(result) > max_lines:
        result = truncate_lines(result, max_lines)
    return result
