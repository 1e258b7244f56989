"""
HTTP API for termagent.

A single shared :class:`Agent` serves every request.  It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **GET /models**  - models installed on the inference backend.
- **GET /history** - retained conversation turns.
- **POST /agent**  - one turn: {"message": "...", "auto_confirm": false}

Nobody is at a keyboard here, so risky operations are cancelled unless the request sets
``auto_confirm`` and recommendations are returned rather than executed.
"""

import logging
import threading
from typing import List

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from termagent.agent.agent_loop import Agent
from termagent.agent.inference import (
    BackendUnavailable,
    load_backend,
)
from termagent.agent.operator import AutoOperator
from termagent.agent.recommendation import strip_recommendation
from termagent.api.models import (
    ActionResult,
    HistoryEntry,
    MessageRequest,
    MessageResponse,
    ModelEntry,
)
from termagent.common import (
    AnsiColors,
    colored_print,
)
from termagent.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="termagent API", version="0.1.0", description="Sandboxed terminal agent API")

# One agent, one sandbox; turns are serialised
_agent: Agent | None = None
_agent_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def get_agent() -> Agent:
    """Return the shared agent, creating it on first use."""
    global _agent  # pylint: disable=global-statement
    if _agent is None:
        _agent = Agent(load_backend(), operator=AutoOperator())
        logger.info("API agent rooted at %s", _agent.context.root)
    return _agent


def _unavailable(exc: BackendUnavailable) -> HTTPException:
    detail = str(exc) if not exc.hint else f"{exc} ({exc.hint})"
    return HTTPException(status_code=503, detail=detail)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
def health(agent: Agent = Depends(get_agent)) -> dict[str, str]:
    """Return a simple liveness payload."""
    return {
        "status": "ok",
        "model": agent.model or "",
        "working_directory": str(agent.context.root),
    }


@app.get("/models", response_model=List[ModelEntry], summary="List installed models")
def list_models(agent: Agent = Depends(get_agent)) -> List[ModelEntry]:
    try:
        models = agent.backend.list_models()
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
    return [
        ModelEntry(name=m.name, size_gb=round(m.size_gb, 2), current=m.name == agent.model)
        for m in models
    ]


@app.get("/history", response_model=List[HistoryEntry], summary="Conversation history")
def history(agent: Agent = Depends(get_agent)) -> List[HistoryEntry]:
    return [HistoryEntry(user=t.user, assistant=t.assistant) for t in agent.history]


@app.post("/agent", response_model=MessageResponse, summary="Process a message")
def agent_endpoint(req: MessageRequest, agent: Agent = Depends(get_agent)) -> MessageResponse:
    """Run one agent turn and report what happened."""
    with _agent_lock:
        agent.operator = AutoOperator(approve=req.auto_confirm)
        try:
            outcome = agent.chat(req.message)
        except BackendUnavailable as exc:
            logger.warning("Backend failure while processing request: %s", exc)
            raise _unavailable(exc) from exc

    results: List[ActionResult] = []
    if outcome.report is not None:
        for intent, result in zip(outcome.report.intents, outcome.report.results):
            results.append(
                ActionResult(
                    tool=intent.tool,
                    parameters=intent.parameters,
                    success=result.success,
                    message=result.message,
                    error=result.error,
                    details=result.details,
                )
            )

    return MessageResponse(
        reply=strip_recommendation(outcome.reply),
        status=outcome.report.status.value if outcome.report is not None else None,
        results=results,
        cancelled=outcome.cancelled,
        recommendation=outcome.recommendation,
    )


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    agent: Agent | None = None,
    host: str = "127.0.0.1",
    port: int | None = None,
    log_level: str | None = None,
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    agent:
        Pre-configured agent to serve; a default one is built on first request otherwise.
    host, port:
        Bind address for the HTTP server.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn out of the CLI start-up path
    import uvicorn  # pylint: disable=import-outside-toplevel

    global _agent  # pylint: disable=global-statement
    if agent is not None:
        _agent = agent

    port = port or settings.API_PORT
    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info("Starting termagent API at %s:%d (log_level=%s)", host, port, log_level)
    colored_print(f"🔮 termagent API is running at http://{host}:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://{host}:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
