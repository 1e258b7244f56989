"""File and directory tools.  Every path argument goes through the sandbox before use."""

import fnmatch
import logging
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from termagent.common import format_bytes
from termagent.config import settings
from termagent.core.sandbox import SandboxContext
from termagent.core.schema import ExecutionResult
from termagent.tools import (
    DESTINATION_ALIASES,
    FILE_ALIASES,
    FOLDER_ALIASES,
    SOURCE_ALIASES,
    ToolInputError,
    flag,
    pick,
    register_tool,
)

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".md", ".log", ".json", ".js", ".py", ".html", ".css", ".yaml", ".yml"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg"}
ARCHIVE_EXTENSIONS = {".zip", ".tar", ".gz", ".rar", ".tgz", ".bz2", ".xz"}


def _timestamp(value: float) -> str:
    return datetime.fromtimestamp(value).isoformat(timespec="seconds")


def _classify(path: Path) -> str:
    ext = path.suffix.lower()
    if ext in TEXT_EXTENSIONS:
        return "text"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in ARCHIVE_EXTENSIONS:
        return "archive"
    return "other"


def _entry(path: Path) -> Dict[str, Any]:
    try:
        stats = path.stat()
    except OSError:
        return {
            "name": path.name,
            "type": "directory" if path.is_dir() else "file",
            "error": "Could not read stats",
        }
    return {
        "name": path.name,
        "type": "directory" if path.is_dir() else "file",
        "size": stats.st_size,
        "modified": _timestamp(stats.st_mtime),
        "permissions": oct(stats.st_mode & 0o777)[2:],
    }


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------
@register_tool(
    "create_file",
    "Create or overwrite a file with content",
    {"filepath": "string", "content": "string (optional)", "encoding": "string (optional)"},
)
def create_file(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    content = str(params.get("content") or "")
    encoding = params.get("encoding") or "utf-8"

    target = context.validate(filepath)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding=encoding)

    return ExecutionResult.ok(
        f"File created successfully{'' if content else ' (empty file)'}",
        filepath=str(target),
        size=len(content.encode(encoding)),
    )


@register_tool(
    "read_file",
    "Read contents of a file",
    {"filepath": "string", "encoding": "string (optional)"},
)
def read_file(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    encoding = params.get("encoding") or "utf-8"

    target = context.validate(filepath)
    content = target.read_text(encoding=encoding)
    stats = target.stat()

    return ExecutionResult.ok(
        filepath=str(target),
        content=content,
        size=stats.st_size,
        modified=_timestamp(stats.st_mtime),
    )


@register_tool(
    "append_file",
    "Append content to an existing file",
    {"filepath": "string", "content": "string", "encoding": "string (optional)"},
)
def append_file(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    content = params.get("content")
    encoding = params.get("encoding") or "utf-8"
    if not content:
        raise ToolInputError("No content provided to append")

    target = context.validate(filepath)
    with target.open("a", encoding=encoding) as handle:
        handle.write(str(content))

    return ExecutionResult.ok(
        "Content appended successfully",
        filepath=str(target),
        new_size=target.stat().st_size,
    )


@register_tool("delete_item", "Delete a file", {"filepath": "string"})
def delete_item(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    # a symlink is removed itself, its target is left alone
    target = context.validate_entry(filepath)

    if target.is_dir() and not target.is_symlink():
        raise ToolInputError(
            f"Path is a directory: {target}. Use delete_folder for directories."
        )
    target.unlink()

    return ExecutionResult.ok("File deleted successfully", filepath=str(target), type="file")


@register_tool(
    "replace_in_file",
    "Find and replace text in a file",
    {"filepath": "string", "find": "string", "replace": "string", "is_regex": "boolean (optional)"},
)
def replace_in_file(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    find = params.get("find")
    replace = params.get("replace")
    if find is None or find == "" or replace is None:
        raise ToolInputError("Both find and replace parameters are required")
    is_regex = flag(params, "is_regex", "isRegex", "regex")
    ignore_case = flag(params, "ignore_case", "ignoreCase")

    target = context.validate(filepath)
    content = target.read_text(encoding="utf-8")

    pattern = re.compile(str(find) if is_regex else re.escape(str(find)),
                         re.IGNORECASE if ignore_case else 0)
    if is_regex:
        updated, count = pattern.subn(str(replace), content)
    else:
        updated, count = pattern.subn(lambda _match: str(replace), content)

    if count:
        target.write_text(updated, encoding="utf-8")

    return ExecutionResult.ok(
        "Replacement completed successfully" if count else "No matches found",
        filepath=str(target),
        replacements=count,
    )


@register_tool("get_info", "Get detailed information about a file or directory", {"filepath": "string"})
def get_info(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    filepath = pick(params, *FILE_ALIASES, label="filepath")
    target = context.validate(filepath)
    stats = target.stat()

    if target.is_dir():
        kind = "directory"
    elif target.is_file():
        kind = "file"
    else:
        kind = "other"

    info: Dict[str, Any] = {
        "path": str(target),
        "exists": True,
        "type": kind,
        "size": stats.st_size,
        "size_human": format_bytes(stats.st_size),
        "created": _timestamp(stats.st_ctime),
        "modified": _timestamp(stats.st_mtime),
        "accessed": _timestamp(stats.st_atime),
        "permissions": oct(stats.st_mode & 0o777)[2:],
        "readable": os.access(target, os.R_OK),
        "writable": os.access(target, os.W_OK),
    }
    if kind == "directory":
        try:
            info["item_count"] = len(os.listdir(target))
        except OSError:
            info["item_count"] = None
    if kind == "file":
        info["extension"] = target.suffix.lower()
        info["basename"] = target.name
        info["classification"] = _classify(target)

    return ExecutionResult.ok(**info)


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------
@register_tool(
    "create_directory",
    "Create a new directory",
    {"dirpath": "string", "recursive": "boolean (optional, default true)"},
)
def create_directory(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    dirpath = pick(params, "dirpath", "folderpath", "path", label="directory path")
    recursive = flag(params, "recursive", default=True)

    target = context.validate(dirpath)
    target.mkdir(parents=recursive, exist_ok=recursive)

    return ExecutionResult.ok(
        f"Directory created successfully{' (with parent directories)' if recursive else ''}",
        dirpath=str(target),
        recursive=recursive,
    )


@register_tool("list_directory", "List contents of a directory", {"dirpath": "string (optional)"})
def list_directory(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    dirpath = pick(params, "dirpath", "folderpath", "path", "directory", required=False)
    target = context.validate(dirpath)
    if not target.is_dir():
        raise ToolInputError(f"Path is not a directory: {target}")

    items = [_entry(child) for child in sorted(target.iterdir(), key=lambda p: p.name)]
    return ExecutionResult.ok(directory=str(target), items=items)


@register_tool(
    "change_directory",
    "Change the current working directory (stays inside the project)",
    {"dirpath": "string"},
)
def change_directory(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    dirpath = pick(params, "dirpath", "folderpath", "path", label="directory path")
    moved = context.change_dir(dirpath)

    return ExecutionResult.ok(
        f"Changed to {moved.cwd}",
        old_directory=str(context.cwd),
        new_directory=str(moved.cwd),
    )


@register_tool(
    "delete_folder",
    "Delete a folder (recursive=true to delete its contents too)",
    {"folderpath": "string", "recursive": "boolean (optional)"},
)
def delete_folder(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    folderpath = pick(params, *FOLDER_ALIASES, label="folder path")
    recursive = flag(params, "recursive")

    target = context.validate(folderpath)
    if not target.is_dir():
        raise ToolInputError(f"Path is not a directory: {target}. Use delete_item for files.")
    if target == context.root:
        raise ToolInputError("Refusing to delete the root working directory")

    if recursive:
        shutil.rmtree(target)
    else:
        if any(target.iterdir()):
            raise ToolInputError(
                f"Directory is not empty: {target}. Set recursive=true to delete its contents."
            )
        target.rmdir()

    return ExecutionResult.ok(
        f"Folder deleted {'recursively ' if recursive else ''}successfully",
        folderpath=str(target),
        recursive=recursive,
    )


# ---------------------------------------------------------------------------
# Move / copy
# ---------------------------------------------------------------------------
@register_tool(
    "move_item",
    "Move or rename a file or directory. If destination is a directory, item is moved INTO it.",
    {
        "source": "string - Path to file/directory to move",
        "destination": "string - Target path or directory",
        "overwrite": "boolean (optional) - Allow overwriting existing files",
    },
)
def move_item(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    source = pick(params, *SOURCE_ALIASES, label="source path")
    destination = pick(params, *DESTINATION_ALIASES, label="destination path")
    overwrite = flag(params, "overwrite")

    # symlinks are moved or replaced as links, never through to their targets
    source_path = context.validate_entry(source)
    dest_path = context.validate_entry(destination)

    if not os.path.lexists(source_path):
        raise ToolInputError(f"Source path does not exist: {source}")
    if source_path == context.root:
        raise ToolInputError("Refusing to move the root working directory")
    is_dir = source_path.is_dir() and not source_path.is_symlink()

    if dest_path.is_dir():
        dest_path = context.validate(destination) / source_path.name
    elif not dest_path.parent.is_dir():
        raise ToolInputError(f"Parent directory does not exist: {dest_path.parent}")

    if os.path.lexists(dest_path):
        if not overwrite:
            raise ToolInputError(
                f"Destination already exists: {dest_path}. Set overwrite=true to replace."
            )
        _remove(dest_path)

    # shutil.move falls back to copy + delete across devices
    shutil.move(str(source_path), str(dest_path))

    kind = "directory" if is_dir else "file"
    return ExecutionResult.ok(
        f"{kind.capitalize()} moved successfully from {source_path} to {dest_path}",
        source=str(source_path),
        destination=str(dest_path),
        type=kind,
    )


@register_tool(
    "copy_item",
    "Copy a file or directory",
    {"source": "string", "destination": "string", "overwrite": "boolean (optional)"},
)
def copy_item(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    source = pick(params, *SOURCE_ALIASES, label="source path")
    destination = pick(params, *DESTINATION_ALIASES, label="destination path")
    overwrite = flag(params, "overwrite")

    source_path = context.validate(source)
    dest_path = context.validate(destination)

    if not source_path.exists():
        raise ToolInputError(f"Source path does not exist: {source}")
    if dest_path.exists() and not overwrite:
        raise ToolInputError("Destination already exists. Set overwrite=true to replace.")

    if source_path.is_dir():
        shutil.copytree(source_path, dest_path, dirs_exist_ok=overwrite)
        kind = "directory"
    else:
        shutil.copy2(source_path, dest_path)
        kind = "file"

    return ExecutionResult.ok(
        "Item copied successfully",
        source=str(source_path),
        destination=str(dest_path),
        type=kind,
    )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
@register_tool(
    "search_files",
    "Search for files matching a glob pattern",
    {
        "pattern": "string",
        "directory": "string (optional)",
        "max_depth": "number (optional)",
        "type": "file | directory | all (optional)",
    },
)
def search_files(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    pattern = str(pick(params, "pattern", "glob", "name", label="search pattern"))
    directory = pick(params, "directory", "dirpath", "path", required=False)
    wanted = str(params.get("type") or "all").lower()
    raw_depth = pick(params, "max_depth", "maxDepth", required=False)
    try:
        max_depth = settings.SEARCH_MAX_DEPTH if raw_depth is None else int(raw_depth)
    except (TypeError, ValueError) as exc:
        raise ToolInputError(f"max_depth must be a number: {exc}") from exc
    if max_depth < 1:
        raise ToolInputError(f"max_depth must be at least 1, got {max_depth}")

    base = context.validate(directory)
    if not base.is_dir():
        raise ToolInputError(f"Search directory is not a directory: {base}")

    matches: List[Dict[str, Any]] = []
    for current, dirs, files in os.walk(base):
        here = Path(current)
        depth = len(here.relative_to(base).parts)
        dirs.sort()

        candidates = []
        if wanted in ("all", "directory"):
            candidates.extend(here / d for d in dirs)
        if wanted in ("all", "file"):
            candidates.extend(here / f for f in sorted(files))
        # children of this level sit at depth + 1
        if depth + 1 >= max_depth:
            dirs[:] = []

        for candidate in candidates:
            rel = candidate.relative_to(base).as_posix()
            if fnmatch.fnmatch(candidate.name, pattern) or fnmatch.fnmatch(rel, pattern):
                entry = _entry(candidate)
                entry["path"] = rel
                entry["full_path"] = str(candidate)
                matches.append(entry)

    logger.debug("search_files %r under %s: %d matches", pattern, base, len(matches))
    return ExecutionResult.ok(
        f"Found {len(matches)} match{'es' if len(matches) != 1 else ''}",
        pattern=pattern,
        directory=str(base),
        count=len(matches),
        matches=matches,
    )
