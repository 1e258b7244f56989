"""
Path sandbox.

Every tool handler that touches the filesystem or spawns a process resolves its paths through a
:class:`SandboxContext` first.  The context is immutable: changing directory produces a new context
with the same root.
"""

import os
from dataclasses import (
    dataclass,
    replace,
)
from pathlib import Path


class AccessDenied(PermissionError):
    """Raised when a path resolves outside the sandbox root."""


@dataclass(frozen=True)
class SandboxContext:
    """The sandbox root plus the directory relative paths are resolved against."""

    root: Path
    cwd: Path

    @classmethod
    def at(cls, root: str | Path) -> "SandboxContext":
        """Create a context rooted (and positioned) at *root*."""
        resolved = Path(root).expanduser().resolve()
        return cls(root=resolved, cwd=resolved)

    def contains(self, path: Path) -> bool:
        """True if the canonical *path* is the root or lies below it."""
        root = str(self.root)
        candidate = str(path)
        if candidate == root:
            return True
        prefix = root if root.endswith(os.sep) else root + os.sep
        return candidate.startswith(prefix)

    def validate(self, path: str | os.PathLike | None = None) -> Path:
        """
        Resolve *path* against the current directory and check it stays inside the root.

        ``None`` or an empty string means ``"."``.  Absolute paths are accepted only when they
        already lie under the root.

        Raises
        ------
        AccessDenied
            If the canonical path escapes the root.
        """
        raw = "." if path is None or str(path) == "" else str(path)
        resolved = (self.cwd / raw).resolve()
        if not self.contains(resolved):
            raise AccessDenied(
                f"Access denied: path {raw} would go outside the project directory"
            )
        return resolved

    def validate_entry(self, path: str | os.PathLike | None = None) -> Path:
        """
        Like :meth:`validate`, but the last component is not dereferenced.

        The parent directory is resolved and checked, so a symlink named by *path* comes back
        as the link itself rather than its target.  Use this for operations that act on the
        directory entry (unlink, rename), never to read or write through it.
        """
        raw = "." if path is None or str(path) == "" else str(path)
        lexical = self.cwd / raw
        if lexical.name in ("", ".", ".."):
            return self.validate(raw)
        parent = lexical.parent.resolve()
        if not self.contains(parent):
            raise AccessDenied(
                f"Access denied: path {raw} would go outside the project directory"
            )
        return parent / lexical.name

    def change_dir(self, path: str | os.PathLike | None) -> "SandboxContext":
        """Return a new context whose cwd is *path*; the root is unchanged."""
        target = self.validate(path)
        if not target.exists():
            raise FileNotFoundError(f"Directory does not exist: {target}")
        if not target.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {target}")
        return replace(self, cwd=target)

    def relative(self, path: Path) -> str:
        """Display form of *path* relative to the root."""
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            return str(path)
        return str(rel) if str(rel) != "." else "."
