"""Read-only filesystem tools bound to a workspace sandbox."""

from __future__ import annotations

from gemini_bridge.errors import SandboxViolationError
from gemini_bridge.sandbox import MAX_SEARCH_MATCHES, WorkspaceSandbox
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.tools.truncation import truncate_output
from gemini_bridge.types import ToolDefinition


def _outside(path: str) -> str:
    return f"Error: path '{path}' is outside the workspace"


def _unreadable(path: str, e: OSError) -> str:
    return f"Error: cannot access {path}: {e.strerror or e}"


def make_read_file_tool(sandbox: WorkspaceSandbox) -> ToolDefinition:
    """Create a read_file tool bound to a sandbox."""

    async def execute(path: str, offset: int | None = None, limit: int | None = None) -> str:
        try:
            content = await sandbox.read_file(path, offset=offset, limit=limit)
        except SandboxViolationError:
            return _outside(path)
        except FileNotFoundError:
            return f"Error: file not found: {path}"
        except IsADirectoryError:
            return f"Error: {path} is a directory"
        except OSError as e:
            return _unreadable(path, e)
        lines = content.splitlines(keepends=True)
        start = max(offset or 1, 1)
        numbered = "".join(f"{start + i:6d}\t{line}" for i, line in enumerate(lines))
        return truncate_output(numbered, "read_file") or "(empty file)"

    return ToolDefinition(
        name="read_file",
        description="Read a text file inside the workspace. Returns line-numbered content.",
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path relative to the workspace root"},
                "offset": {"type": "integer", "description": "Line number to start reading from (1-based)"},
                "limit": {"type": "integer", "description": "Number of lines to read"},
            },
            "required": ["path"],
        },
        execute=execute,
    )


def make_list_directory_tool(sandbox: WorkspaceSandbox) -> ToolDefinition:
    """Create a list_directory tool bound to a sandbox."""

    async def execute(path: str = ".", depth: int = 1) -> str:
        try:
            entries = await sandbox.list_directory(path, depth=max(1, min(depth, 5)))
        except SandboxViolationError:
            return _outside(path)
        except FileNotFoundError:
            return f"Error: directory not found: {path}"
        except NotADirectoryError:
            return f"Error: {path} is not a directory"
        except OSError as e:
            return _unreadable(path, e)
        if not entries:
            return "(empty directory)"
        lines = []
        for entry in entries:
            if entry.is_dir:
                lines.append(f"{entry.name}/")
            elif entry.size is not None:
                lines.append(f"{entry.name} ({entry.size} bytes)")
            else:
                lines.append(entry.name)
        return truncate_output("\n".join(lines), "list_directory")

    return ToolDefinition(
        name="list_directory",
        description="List the entries of a directory inside the workspace.",
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory relative to the workspace root (default '.')"},
                "depth": {"type": "integer", "description": "Levels to descend, 1-5 (default 1)"},
            },
        },
        execute=execute,
    )


def make_search_text_tool(sandbox: WorkspaceSandbox) -> ToolDefinition:
    """Create a search_text tool bound to a sandbox."""

    async def execute(pattern: str, path: str = ".", case_insensitive: bool = False) -> str:
        try:
            matches = await sandbox.search_text(pattern, path, case_insensitive=case_insensitive)
        except SandboxViolationError:
            return _outside(path)
        except FileNotFoundError:
            return f"Error: path not found: {path}"
        except OSError as e:
            return _unreadable(path, e)
        if not matches:
            return "(no matches)"
        result = "\n".join(matches)
        if len(matches) >= MAX_SEARCH_MATCHES:
            result += f"\n[results capped at {MAX_SEARCH_MATCHES} matches]"
        return truncate_output(result, "search_text")

    return ToolDefinition(
        name="search_text",
        description=f"Search file contents under a directory by regex. Returns at most {MAX_SEARCH_MATCHES} matches.",
        parameters={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Regex pattern to search for"},
                "path": {"type": "string", "description": "File or directory to search (default '.')"},
                "case_insensitive": {"type": "boolean", "description": "Case-insensitive search", "default": False},
            },
            "required": ["pattern"],
        },
        execute=execute,
    )


def default_registry(sandbox: WorkspaceSandbox) -> ToolRegistry:
    """The fixed catalog: read_file, search_text, list_directory."""
    return ToolRegistry([
        make_read_file_tool(sandbox),
        make_search_text_tool(sandbox),
        make_list_directory_tool(sandbox),
    ])
