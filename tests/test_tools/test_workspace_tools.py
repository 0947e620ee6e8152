"""Tests for the read_file / list_directory / search_text tools."""

import os

import pytest

from gemini_bridge.sandbox import WorkspaceSandbox
from gemini_bridge.tools.core import (
    default_registry,
    make_list_directory_tool,
    make_read_file_tool,
    make_search_text_tool,
)


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    (root / "hello.txt").write_text("line1\nline2\nline3\n")
    (root / "pkg").mkdir()
    (root / "pkg" / "mod.py").write_text("import os\n")
    return root


@pytest.fixture
def sandbox(workspace):
    return WorkspaceSandbox(workspace)


class TestReadFileTool:
    async def test_line_numbers(self, sandbox):
        tool = make_read_file_tool(sandbox)
        result = await tool.execute(path="hello.txt")
        assert "     1\tline1" in result
        assert "     3\tline3" in result

    async def test_offset(self, sandbox):
        tool = make_read_file_tool(sandbox)
        result = await tool.execute(path="hello.txt", offset=2, limit=1)
        assert result == "     2\tline2\n"

    async def test_outside_is_in_band_error(self, sandbox):
        tool = make_read_file_tool(sandbox)
        result = await tool.execute(path="../../etc/passwd")
        assert result.startswith("Error:")
        assert "outside the workspace" in result

    async def test_symlink_escape_is_in_band_error(self, sandbox, workspace, tmp_path):
        (tmp_path / "secret").write_text("s3cret")
        os.symlink(tmp_path / "secret", workspace / "innocent.txt")
        result = await make_read_file_tool(sandbox).execute(path="innocent.txt")
        assert "outside the workspace" in result
        assert "s3cret" not in result

    async def test_missing_file(self, sandbox):
        result = await make_read_file_tool(sandbox).execute(path="nope.txt")
        assert result == "Error: file not found: nope.txt"

    async def test_non_positive_offset_numbers_from_one(self, sandbox):
        result = await make_read_file_tool(sandbox).execute(path="hello.txt", offset=-3, limit=1)
        assert result == "     1\tline1\n"

    async def test_symlink_loop_is_in_band_error(self, sandbox, workspace):
        os.symlink(workspace / "loop", workspace / "loop")
        result = await make_read_file_tool(sandbox).execute(path="loop")
        assert result.startswith("Error:")


class TestListDirectoryTool:
    async def test_lists(self, sandbox):
        result = await make_list_directory_tool(sandbox).execute()
        assert "pkg/" in result.splitlines()
        assert "hello.txt (18 bytes)" in result.splitlines()

    async def test_outside(self, sandbox):
        result = await make_list_directory_tool(sandbox).execute(path="..")
        assert "outside the workspace" in result

    async def test_not_a_directory(self, sandbox):
        result = await make_list_directory_tool(sandbox).execute(path="hello.txt")
        assert result == "Error: hello.txt is not a directory"


class TestSearchTextTool:
    async def test_matches(self, sandbox):
        result = await make_search_text_tool(sandbox).execute(pattern="import")
        assert result == "pkg/mod.py:1: import os"

    async def test_no_matches(self, sandbox):
        assert await make_search_text_tool(sandbox).execute(pattern="zzz") == "(no matches)"

    async def test_symlink_loop_does_not_abort_search(self, sandbox, workspace):
        (workspace / "a.txt").write_text("needle\n")
        os.symlink(workspace / "loop", workspace / "loop")
        result = await make_search_text_tool(sandbox).execute(pattern="needle")
        assert result == "a.txt:1: needle"

    async def test_cap_notice(self, sandbox, workspace):
        (workspace / "big.txt").write_text("x\n" * 50)
        result = await make_search_text_tool(sandbox).execute(pattern="x")
        assert "[results capped at 20 matches]" in result

    async def test_outside(self, sandbox):
        result = await make_search_text_tool(sandbox).execute(pattern="x", path="/")
        assert "outside the workspace" in result


class TestDefaultRegistry:
    def test_fixed_catalog(self, sandbox):
        registry = default_registry(sandbox)
        assert sorted(registry.names()) == ["list_directory", "read_file", "search_text"]

    def test_schemas_are_objects(self, sandbox):
        for tool in default_registry(sandbox).definitions():
            assert tool.parameters["type"] == "object"
