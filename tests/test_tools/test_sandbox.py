"""Tests for the workspace sandbox."""

import os

import pytest

from gemini_bridge.errors import SandboxViolationError
from gemini_bridge.sandbox import MAX_SEARCH_MATCHES, WorkspaceSandbox


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    (root / "a.txt").write_text("alpha\nbeta\ngamma\n")
    (root / "sub").mkdir()
    (root / "sub" / "b.py").write_text("def beta():\n    return 'beta'\n")
    return root


@pytest.fixture
def sandbox(workspace):
    return WorkspaceSandbox(workspace)


class TestResolve:
    def test_relative_inside(self, sandbox, workspace):
        assert sandbox.resolve("sub/b.py") == (workspace / "sub" / "b.py").resolve()

    def test_root_itself(self, sandbox, workspace):
        assert sandbox.resolve(".") == workspace.resolve()

    def test_parent_traversal_rejected(self, sandbox):
        with pytest.raises(SandboxViolationError):
            sandbox.resolve("../outside.txt")

    def test_absolute_outside_rejected(self, sandbox):
        with pytest.raises(SandboxViolationError):
            sandbox.resolve("/etc/passwd")

    def test_sibling_prefix_rejected(self, sandbox, tmp_path):
        sibling = tmp_path / "ws2"
        sibling.mkdir()
        with pytest.raises(SandboxViolationError):
            sandbox.resolve(str(sibling))

    def test_symlink_escape_rejected(self, sandbox, workspace, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_text("top secret")
        os.symlink(secret, workspace / "link.txt")
        with pytest.raises(SandboxViolationError):
            sandbox.resolve("link.txt")

    def test_symlink_inside_allowed(self, sandbox, workspace):
        os.symlink(workspace / "a.txt", workspace / "alias.txt")
        assert sandbox.resolve("alias.txt") == (workspace / "a.txt").resolve()


class TestReadFile:
    async def test_read(self, sandbox):
        assert await sandbox.read_file("a.txt") == "alpha\nbeta\ngamma\n"

    async def test_offset_limit(self, sandbox):
        assert await sandbox.read_file("a.txt", offset=2, limit=1) == "beta\n"

    async def test_missing(self, sandbox):
        with pytest.raises(FileNotFoundError):
            await sandbox.read_file("nope.txt")


class TestListDirectory:
    async def test_shallow(self, sandbox):
        entries = await sandbox.list_directory(".")
        assert {e.name for e in entries} == {"a.txt", "sub"}
        assert {e.name for e in entries if e.is_dir} == {"sub"}

    async def test_depth(self, sandbox):
        entries = await sandbox.list_directory(".", depth=2)
        assert "sub/b.py" in {e.name for e in entries}

    async def test_escaping_link_not_followed(self, sandbox, workspace, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "hidden.txt").write_text("x")
        os.symlink(outside, workspace / "escape")
        entries = await sandbox.list_directory(".", depth=3)
        names = {e.name for e in entries}
        assert "escape" in names
        assert not any(n.startswith("escape/") for n in names)

    async def test_symlink_loop_listed_without_error(self, sandbox, workspace):
        os.symlink(workspace / "loop", workspace / "loop")
        entries = await sandbox.list_directory(".", depth=2)
        names = {e.name for e in entries}
        assert {"a.txt", "sub", "sub/b.py"} <= names
        assert not any(n.startswith("loop/") for n in names)


class TestSearchText:
    async def test_symlink_loop_skipped(self, sandbox, workspace):
        os.symlink(workspace / "loop", workspace / "loop")
        assert await sandbox.search_text("alpha") == ["a.txt:1: alpha"]

    async def test_finds_matches(self, sandbox):
        matches = await sandbox.search_text("beta")
        assert "a.txt:2: beta" in matches
        assert any(m.startswith("sub/b.py:1:") for m in matches)

    async def test_case_insensitive(self, sandbox):
        assert await sandbox.search_text("ALPHA", case_insensitive=True) == ["a.txt:1: alpha"]

    async def test_invalid_regex_matched_literally(self, sandbox, workspace):
        (workspace / "c.txt").write_text("call foo(\n")
        assert await sandbox.search_text("foo(") == ["c.txt:1: call foo("]

    async def test_match_cap(self, sandbox, workspace):
        (workspace / "many.txt").write_text("hit\n" * 100)
        matches = await sandbox.search_text("hit")
        assert len(matches) == MAX_SEARCH_MATCHES == 20

    async def test_depth_cap(self, sandbox, workspace):
        deep = workspace
        for i in range(7):
            deep = deep / f"d{i}"
        deep.mkdir(parents=True)
        (deep / "deep.txt").write_text("needle\n")
        (workspace / "d0" / "shallow.txt").write_text("needle\n")
        matches = await sandbox.search_text("needle")
        assert matches == ["d0/shallow.txt:1: needle"]

    async def test_skips_escaping_links(self, sandbox, workspace, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("needle\n")
        os.symlink(outside, workspace / "link.txt")
        assert await sandbox.search_text("needle") == []

    async def test_outside_start_rejected(self, sandbox):
        with pytest.raises(SandboxViolationError):
            await sandbox.search_text("x", "..")
