"""Filesystem tool tests.  Every call goes through the registry, as the executor does."""

import sys
from pathlib import Path

import pytest

from termagent.core.sandbox import SandboxContext
from termagent.core.schema import ErrorKind
from termagent.tools import ToolRegistry

needs_symlinks = pytest.mark.skipif(
    sys.platform.startswith("win"), reason="symlinks need extra privileges on Windows"
)


@pytest.fixture()
def run(registry: ToolRegistry, context: SandboxContext):
    def _run(tool: str, **params):
        return registry.invoke(tool, params, context)

    return _run


def test_create_file_reports_size(run, context: SandboxContext) -> None:
    """Creating a file returns its byte size."""

    result = run("create_file", filepath="a.txt", content="hi")

    assert result.success
    assert result.details["size"] == 2
    assert result.tool == "create_file"
    assert (context.root / "a.txt").read_text() == "hi"


def test_create_file_accepts_aliases_and_empty_content(run, context: SandboxContext) -> None:
    result = run("create_file", path="nested/dir/empty.txt")

    assert result.success
    assert "empty file" in result.message
    assert (context.root / "nested" / "dir" / "empty.txt").read_text() == ""


def test_create_file_without_path_names_the_aliases(run) -> None:
    result = run("create_file", content="x")

    assert not result.success
    assert result.error_kind is ErrorKind.HANDLER_FAILURE
    assert '"filepath"' in result.error


def test_create_file_outside_root_is_denied(run, context: SandboxContext) -> None:
    result = run("create_file", filepath="../escape.txt", content="x")

    assert not result.success
    assert result.error_kind is ErrorKind.ACCESS_DENIED
    assert not (context.root.parent / "escape.txt").exists()


def test_read_and_append(run, context: SandboxContext) -> None:
    (context.root / "log.txt").write_text("one\n")

    assert run("append_file", filename="log.txt", content="two\n").success
    result = run("read_file", filepath="log.txt")

    assert result.details["content"] == "one\ntwo\n"


def test_read_missing_file_fails_cleanly(run) -> None:
    result = run("read_file", filepath="nope.txt")

    assert not result.success
    assert "nope.txt" in result.error


def test_append_requires_content(run) -> None:
    result = run("append_file", filepath="x.txt")

    assert not result.success
    assert "content" in result.error


def test_delete_item_refuses_directories(run, context: SandboxContext) -> None:
    (context.root / "d").mkdir()
    (context.root / "f.txt").write_text("x")

    assert not run("delete_item", filepath="d").success
    assert run("delete_item", filepath="f.txt").success
    assert not (context.root / "f.txt").exists()


@needs_symlinks
def test_delete_item_removes_symlink_not_target(run, context: SandboxContext) -> None:
    real = context.root / "real.txt"
    real.write_text("keep me")
    (context.root / "link.txt").symlink_to(real)

    result = run("delete_item", filepath="link.txt")

    assert result.success
    assert not (context.root / "link.txt").is_symlink()
    assert real.read_text() == "keep me"


@needs_symlinks
def test_delete_item_removes_link_pointing_outside(
    run, context: SandboxContext, tmp_path_factory: pytest.TempPathFactory
) -> None:
    outside = tmp_path_factory.mktemp("outside") / "secret.txt"
    outside.write_text("s")
    (context.root / "escape").symlink_to(outside)
    (context.root / "dirlink").symlink_to(outside.parent, target_is_directory=True)

    assert run("delete_item", filepath="escape").success
    assert run("delete_item", filepath="dirlink").success
    assert outside.read_text() == "s"
    assert not (context.root / "escape").is_symlink()
    assert not (context.root / "dirlink").is_symlink()


def test_replace_literal_treats_pattern_as_text(run, context: SandboxContext) -> None:
    target = context.root / "price.txt"
    target.write_text("cost: $1.00 and $1.00")

    result = run("replace_in_file", filepath="price.txt", find="$1.00", replace=r"\1 euro")

    assert result.success
    assert result.details["replacements"] == 2
    assert target.read_text() == r"cost: \1 euro and \1 euro"


def test_replace_regex_and_ignore_case(run, context: SandboxContext) -> None:
    target = context.root / "app.py"
    target.write_text("Version = 1\nversion = 2\n")

    result = run(
        "replace_in_file", filepath="app.py", find=r"version = (\d)", replace=r"version = \1.0",
        is_regex="true", ignore_case=True,
    )

    assert result.details["replacements"] == 2
    assert target.read_text() == "version = 1.0\nversion = 2.0\n"


def test_replace_without_match_leaves_file(run, context: SandboxContext) -> None:
    (context.root / "a.txt").write_text("abc")

    result = run("replace_in_file", filepath="a.txt", find="zzz", replace="y")

    assert result.success
    assert result.details["replacements"] == 0


def test_get_info_classifies_files(run, context: SandboxContext) -> None:
    (context.root / "notes.md").write_text("# hi")

    info = run("get_info", filepath="notes.md").details

    assert info["type"] == "file"
    assert info["classification"] == "text"
    assert info["extension"] == ".md"
    assert info["size"] == 4


def test_directory_lifecycle(run, context: SandboxContext) -> None:
    assert run("create_directory", dirpath="a/b/c").success
    (context.root / "a" / "file.txt").write_text("x")

    listing = run("list_directory", dirpath="a").details["items"]
    assert [(i["name"], i["type"]) for i in listing] == [("b", "directory"), ("file.txt", "file")]

    refused = run("delete_folder", folderpath="a")
    assert not refused.success
    assert "not empty" in refused.error

    assert run("delete_folder", folderpath="a", recursive=True).success
    assert not (context.root / "a").exists()


def test_delete_folder_refuses_root(run, context: SandboxContext) -> None:
    result = run("delete_folder", folderpath=".", recursive=True)

    assert not result.success
    assert context.root.exists()


def test_change_directory_reports_new_directory(run, context: SandboxContext) -> None:
    (context.root / "src").mkdir()

    result = run("change_directory", dirpath="src")

    assert result.success
    assert result.details["new_directory"] == str(context.root / "src")
    assert result.details["old_directory"] == str(context.root)


def test_move_into_existing_directory(run, context: SandboxContext) -> None:
    (context.root / "docs").mkdir()
    (context.root / "notes.txt").write_text("n")

    result = run("move_item", source="notes.txt", destination="docs")

    assert result.success
    assert (context.root / "docs" / "notes.txt").exists()
    assert not (context.root / "notes.txt").exists()


def test_move_refuses_overwrite_unless_asked(run, context: SandboxContext) -> None:
    (context.root / "a.txt").write_text("new")
    (context.root / "b.txt").write_text("old")

    assert not run("move_item", source="a.txt", destination="b.txt").success
    assert run("move_item", source="a.txt", destination="b.txt", overwrite=True).success
    assert (context.root / "b.txt").read_text() == "new"


@needs_symlinks
def test_move_overwrite_replaces_symlink_not_target(run, context: SandboxContext) -> None:
    real = context.root / "real.txt"
    real.write_text("original")
    (context.root / "link.txt").symlink_to(real)
    (context.root / "a.txt").write_text("new")

    result = run("move_item", source="a.txt", destination="link.txt", overwrite=True)

    assert result.success
    assert not (context.root / "link.txt").is_symlink()
    assert (context.root / "link.txt").read_text() == "new"
    assert real.read_text() == "original"


def test_move_requires_existing_parent(run, context: SandboxContext) -> None:
    (context.root / "a.txt").write_text("x")

    result = run("move_item", source="a.txt", destination="missing/b.txt")

    assert not result.success
    assert "Parent directory does not exist" in result.error


def test_copy_file_and_directory(run, context: SandboxContext) -> None:
    (context.root / "src").mkdir()
    (context.root / "src" / "m.py").write_text("pass")

    assert run("copy_item", source="src/m.py", destination="m_copy.py").success
    assert run("copy_item", source="src", destination="src_copy").success
    assert (context.root / "src_copy" / "m.py").read_text() == "pass"
    assert not run("copy_item", source="src", destination="src_copy").success


def test_search_files_by_pattern_type_and_depth(run, context: SandboxContext) -> None:
    deep = context.root / "a" / "b" / "c"
    deep.mkdir(parents=True)
    (context.root / "top.py").write_text("")
    (context.root / "a" / "mid.py").write_text("")
    (deep / "deep.py").write_text("")

    everything = run("search_files", pattern="*.py").details
    assert sorted(Path(m["path"]).name for m in everything["matches"]) == [
        "deep.py", "mid.py", "top.py",
    ]

    shallow = run("search_files", pattern="*.py", max_depth=2).details
    assert sorted(m["path"] for m in shallow["matches"]) == ["a/mid.py", "top.py"]

    dirs = run("search_files", pattern="b", type="directory").details
    assert [m["path"] for m in dirs["matches"]] == ["a/b"]


def test_search_files_depth_one_is_top_level_only(run, context: SandboxContext) -> None:
    (context.root / "a").mkdir()
    (context.root / "top.py").write_text("")
    (context.root / "a" / "mid.py").write_text("")

    result = run("search_files", pattern="*.py", max_depth=1)

    assert [m["path"] for m in result.details["matches"]] == ["top.py"]


@pytest.mark.parametrize("depth", [0, -1])
def test_search_files_rejects_depth_below_one(run, depth: int) -> None:
    result = run("search_files", pattern="*.py", max_depth=depth)

    assert not result.success
    assert "at least 1" in result.error
