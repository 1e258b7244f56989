"""
Pydantic models for termagent API requests and responses.
This module defines the request and response schemas used by the termagent API.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from termagent.core.schema import Recommendation


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the agent")
    auto_confirm: bool = Field(
        False, description="Approve risky operations instead of cancelling them"
    )


class ActionResult(BaseModel):
    """One executed tool call."""

    tool: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    status: Optional[str] = Field(None, description="Batch status, if any tool ran")
    results: List[ActionResult] = Field(default_factory=list)
    cancelled: bool = False
    recommendation: Optional[Recommendation] = None


class ModelEntry(BaseModel):
    """An installed model."""

    name: str
    size_gb: float
    current: bool = False


class HistoryEntry(BaseModel):
    """One retained conversation turn."""

    user: str
    assistant: str
