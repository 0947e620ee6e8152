"""Filesystem access confined to a workspace root."""

from __future__ import annotations

import errno
import logging
import os
import re
from pathlib import Path

from gemini_bridge.errors import SandboxViolationError
from gemini_bridge.types import DirEntry

logger = logging.getLogger(__name__)

MAX_SEARCH_MATCHES = 20
MAX_SEARCH_DEPTH = 5
# Files larger than this are skipped by search_text
MAX_SEARCH_FILE_BYTES = 1_000_000


def _canonical(path: Path) -> Path | None:
    """``path.resolve()``, or None for a symlink loop."""
    try:
        return path.resolve()
    except (OSError, RuntimeError):
        logger.debug("Skipping unresolvable path %s", path)
        return None


class WorkspaceSandbox:
    """Resolves every path against a canonical workspace root.

    Paths are canonicalized with symlinks followed, so a link inside the
    workspace that points outside it is rejected like ``../`` traversal.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        """Canonicalize ``path``; raise if it lands outside the root."""
        p = Path(path)
        candidate = p if p.is_absolute() else self._root / p
        resolved = _canonical(candidate)
        if resolved is None:
            raise OSError(errno.ELOOP, "Too many levels of symbolic links", str(path))
        if not self.contains(resolved):
            raise SandboxViolationError(f"Path '{path}' is outside the workspace")
        return resolved

    def contains(self, resolved: Path) -> bool:
        return resolved == self._root or resolved.is_relative_to(self._root)

    def relative(self, resolved: Path) -> str:
        rel = resolved.relative_to(self._root)
        return str(rel) if str(rel) != "." else "."

    async def read_file(
        self, path: str, offset: int | None = None, limit: int | None = None
    ) -> str:
        full = self.resolve(path)
        text = full.read_text(encoding="utf-8", errors="replace")
        lines = text.splitlines(keepends=True)
        start = max((offset or 1) - 1, 0)
        if limit is not None:
            lines = lines[start : start + limit]
        else:
            lines = lines[start:]
        return "".join(lines)

    async def list_directory(self, path: str = ".", depth: int = 1) -> list[DirEntry]:
        full = self.resolve(path)
        if not full.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")
        entries: list[DirEntry] = []
        self._walk(full, entries, depth, 0, prefix="")
        return entries

    def _walk(
        self, root: Path, entries: list[DirEntry], max_depth: int, current: int, prefix: str
    ) -> None:
        if current >= max_depth:
            return
        try:
            items = sorted(root.iterdir(), key=lambda p: p.name)
        except PermissionError:
            return
        for item in items:
            resolved = _canonical(item)
            if resolved is None:
                continue
            inside = self.contains(resolved)
            is_dir = inside and resolved.is_dir()
            size = resolved.stat().st_size if inside and resolved.is_file() else None
            entries.append(DirEntry(name=prefix + item.name, is_dir=is_dir, size=size))
            if is_dir and current + 1 < max_depth:
                self._walk(resolved, entries, max_depth, current + 1, prefix=f"{prefix}{item.name}/")

    async def search_text(
        self,
        pattern: str,
        path: str = ".",
        *,
        case_insensitive: bool = False,
        max_matches: int = MAX_SEARCH_MATCHES,
        max_depth: int = MAX_SEARCH_DEPTH,
    ) -> list[str]:
        """Find lines matching ``pattern`` as ``relpath:line: text``.

        ``pattern`` is a regular expression; an invalid one is matched
        literally.
        """
        flags = re.IGNORECASE if case_insensitive else 0
        try:
            regex = re.compile(pattern, flags)
        except re.error:
            regex = re.compile(re.escape(pattern), flags)

        start = self.resolve(path)
        matches: list[str] = []
        files = [start] if start.is_file() else self._iter_files(start, max_depth)
        for file_path in files:
            if len(matches) >= max_matches:
                break
            self._search_file(file_path, regex, matches, max_matches)
        return matches

    def _iter_files(self, root: Path, max_depth: int):
        stack: list[tuple[Path, int]] = [(root, 0)]
        while stack:
            directory, depth = stack.pop()
            try:
                items = sorted(directory.iterdir(), key=lambda p: p.name, reverse=True)
            except (PermissionError, FileNotFoundError):
                continue
            for item in items:
                if item.name.startswith("."):
                    continue
                resolved = _canonical(item)
                if resolved is None or not self.contains(resolved):
                    continue
                if resolved.is_dir():
                    if depth + 1 < max_depth:
                        stack.append((resolved, depth + 1))
                elif resolved.is_file():
                    yield resolved

    def _search_file(
        self, file_path: Path, regex: re.Pattern[str], matches: list[str], max_matches: int
    ) -> None:
        try:
            if file_path.stat().st_size > MAX_SEARCH_FILE_BYTES:
                return
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return
        rel = self.relative(file_path)
        for lineno, line in enumerate(text.splitlines(), start=1):
            if regex.search(line):
                matches.append(f"{rel}:{lineno}: {line.strip()}")
                if len(matches) >= max_matches:
                    return
