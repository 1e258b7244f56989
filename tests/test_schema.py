"""Result model and formatting helper tests."""

import pytest
from pydantic import ValidationError

from termagent.common import (
    format_bytes,
    truncate,
)
from termagent.core.schema import (
    ActionIntent,
    BatchReport,
    BatchStatus,
    ErrorKind,
    ExecutionResult,
)


def test_success_and_error_must_agree() -> None:
    with pytest.raises(ValidationError):
        ExecutionResult(success=True, error="nope")
    with pytest.raises(ValidationError):
        ExecutionResult(success=False)


def test_extras_are_details() -> None:
    result = ExecutionResult.ok("done", size=3, filepath="/x")

    assert result.details == {"size": 3, "filepath": "/x"}
    assert result.model_dump(exclude_none=True) == {
        "success": True, "message": "done", "size": 3, "filepath": "/x",
    }


def test_failure_defaults_to_handler_failure() -> None:
    assert ExecutionResult.failure("x").error_kind is ErrorKind.HANDLER_FAILURE


def test_single_failure_summary() -> None:
    report = BatchReport(
        intents=[ActionIntent(tool="read_file")],
        results=[ExecutionResult.failure("File not found")],
        status=BatchStatus.ALL_FAILED,
    )

    assert report.summary == "Action failed: File not found"
    assert report.succeeded == 0


@pytest.mark.parametrize(
    "size, text",
    [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024**3, "5 GB")],
)
def test_format_bytes(size: int, text: str) -> None:
    assert format_bytes(size) == text


def test_truncate() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghij", 6) == "abc..."
