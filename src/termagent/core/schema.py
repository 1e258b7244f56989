"""
Schema definitions for model <-> agent <-> tool messages.

These data models serve as the contract between the action extractor, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Literal,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


class ActionIntent(BaseModel):
    """A single tool call recovered from model text."""

    tool: str = Field(..., description="Registered tool name")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Keyword arguments for the tool"
    )


class ErrorKind(str, Enum):
    """Why an :class:`ExecutionResult` failed."""

    ACCESS_DENIED = "access_denied"
    UNKNOWN_TOOL = "unknown_tool"
    HANDLER_FAILURE = "handler_failure"
    CANCELLED = "cancelled"


class ExecutionResult(BaseModel):
    """
    Uniform outcome of every tool invocation.

    Tool-specific fields (``size``, ``stdout``, ``items`` ...) are carried as extras, so
    ``result.model_dump()`` gives the flat ``{success, message, error, ...}`` mapping the model is
    shown in summaries.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    tool: str | None = None

    @model_validator(mode="after")
    def _success_matches_error(self) -> "ExecutionResult":
        if self.success and self.error is not None:
            raise ValueError("a successful result cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("a failed result must carry an error message")
        return self

    @classmethod
    def ok(cls, message: str | None = None, **fields: Any) -> "ExecutionResult":
        """Build a successful result with optional tool-specific *fields*."""
        return cls(success=True, message=message, **fields)

    @classmethod
    def failure(
        cls, error: str, kind: ErrorKind = ErrorKind.HANDLER_FAILURE, **fields: Any
    ) -> "ExecutionResult":
        """Build a failed result."""
        return cls(success=False, error=error, error_kind=kind, **fields)

    @property
    def details(self) -> Dict[str, Any]:
        """Tool-specific fields only."""
        return dict(self.model_extra or {})


class BatchStatus(str, Enum):
    """Aggregate outcome of a multi-action run."""

    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"


class BatchReport(BaseModel):
    """Ordered per-action results plus their aggregate status."""

    intents: List[ActionIntent]
    results: List[ExecutionResult]
    status: BatchStatus

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def summary(self) -> str:
        total = len(self.results)
        if self.status is BatchStatus.ALL_SUCCEEDED:
            if total == 1:
                return self.results[0].message or "Action completed successfully"
            return f"Successfully executed all {total} actions"
        if self.status is BatchStatus.PARTIAL:
            return f"{self.succeeded} of {total} actions succeeded"
        if total == 1:
            return f"Action failed: {self.results[0].error}"
        return "None of the requested actions could be completed"


class Recommendation(BaseModel):
    """A model-proposed follow-up, parsed from a ``<recommendation>`` block."""

    title: str
    description: str = ""
    actions: List[str]


class ChatMessage(BaseModel):
    """One message in the inference request."""

    role: Literal["system", "user", "assistant"]
    content: str


class Turn(BaseModel):
    """One completed exchange: a user message and the assistant reply."""

    model_config = ConfigDict(frozen=True)

    user: str
    assistant: str

    def as_messages(self) -> List[ChatMessage]:
        return [
            ChatMessage(role="user", content=self.user),
            ChatMessage(role="assistant", content=self.assistant),
        ]
