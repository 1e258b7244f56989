"""
Main orchestration loop for termagent.

One call to :meth:`Agent.chat` processes one user turn to completion::

    Idle -> RiskCheck -> Inferring -> Extracting -> {Executing | Retrying | PassThrough}
         -> Summarizing -> RecommendHandling -> HistoryUpdate -> Idle

A declined risk confirmation ends the turn early.  Only :class:`BackendUnavailable` (and genuine
bugs) escape ``chat``; tool failures are data in the returned :class:`TurnOutcome`.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import (
    List,
    Tuple,
)

from pydantic import (
    BaseModel,
    Field,
)

from termagent.agent.extractor import (
    as_batch,
    extract_intents,
    has_intent_markers,
    strip_reasoning,
)
from termagent.agent.history import ConversationHistory
from termagent.agent.inference import (
    BackendUnavailable,
    BaseBackend,
)
from termagent.agent.operator import (
    AutoOperator,
    Operator,
)
from termagent.agent.prompts import (
    build_system_prompt,
    looks_like_action_request,
    recommended_action_instruction,
    retry_instruction,
    summary_instruction,
)
from termagent.agent.recommendation import extract_recommendation
from termagent.agent.risk import (
    ConfirmationGate,
    RiskPolicy,
)
from termagent.agent.tool_executor import ActionExecutor
from termagent.common import truncate
from termagent.config import settings
from termagent.core.sandbox import SandboxContext
from termagent.core.schema import (
    ActionIntent,
    BatchReport,
    BatchStatus,
    ChatMessage,
    Recommendation,
)
from termagent.tools import (
    ToolRegistry,
    build_registry,
)

logger = logging.getLogger(__name__)

RECOMMENDATION_OPTIONS = ["execute", "details", "decline"]


class AgentState(str, Enum):
    """States of one turn."""

    IDLE = "idle"
    RISK_CHECK = "risk_check"
    INFERRING = "inferring"
    EXTRACTING = "extracting"
    RETRYING = "retrying"
    EXECUTING = "executing"
    PASS_THROUGH = "pass_through"
    SUMMARIZING = "summarizing"
    RECOMMEND_HANDLING = "recommend_handling"
    HISTORY_UPDATE = "history_update"
    CANCELLED = "cancelled"


class RecommendationRun(BaseModel):
    """Outcome of one recommended action fed back through the loop."""

    action: str
    success: bool
    reply: str


class TurnOutcome(BaseModel):
    """Everything one user turn produced."""

    message: str
    reply: str
    report: BatchReport | None = None
    cancelled: bool = False
    retried: bool = False
    recommendation: Recommendation | None = None
    recommendation_runs: List[RecommendationRun] = Field(default_factory=list)
    states: List[AgentState] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """False if cancelled or if any executed action failed."""
        if self.cancelled:
            return False
        return self.report is None or self.report.status is BatchStatus.ALL_SUCCEEDED


class Agent:
    """Turns user messages into sandboxed tool calls via an inference backend."""

    def __init__(
        self,
        backend: BaseBackend,
        operator: Operator | None = None,
        registry: ToolRegistry | None = None,
        working_directory: str | Path | None = None,
        risk_policy: RiskPolicy | None = None,
        max_history_turns: int | None = None,
    ):
        self.backend = backend
        self.operator = operator or AutoOperator()
        self.registry = registry or build_registry()
        self.executor = ActionExecutor(self.registry)
        self.risk_policy = risk_policy or RiskPolicy()
        self.gate = ConfirmationGate(self.risk_policy)
        self.history = ConversationHistory(max_history_turns or settings.MAX_HISTORY_TURNS)
        self.context = SandboxContext.at(working_directory or settings.WORKING_DIR or os.getcwd())
        self.state = AgentState.IDLE

    # ------------------------------------------------------------------ #
    # Session management
    # ------------------------------------------------------------------ #
    @property
    def model(self) -> str | None:
        return self.backend.model

    def switch_model(self, model: str) -> None:
        """Use *model* from now on.  History from the previous model is discarded."""
        if model != self.backend.model:
            logger.info("Switching model %s -> %s", self.backend.model, model)
            self.backend.model = model
            self.history.clear()

    def set_working_directory(self, path: str | Path) -> SandboxContext:
        """Re-root the sandbox at *path*."""
        target = Path(path).expanduser().resolve()
        if not target.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {target}")
        self.context = SandboxContext.at(target)
        logger.info("Sandbox root set to %s", self.context.root)
        return self.context

    def system_prompt(self) -> str:
        return build_system_prompt(self.registry, self.context)

    # ------------------------------------------------------------------ #
    # The turn
    # ------------------------------------------------------------------ #
    def chat(
        self,
        message: str,
        *,
        handle_recommendations: bool = True,
        skip_risk_check: bool = False,
    ) -> TurnOutcome:
        """
        Process one user message.

        Parameters
        ----------
        message:
            The user's text.
        handle_recommendations:
            Offer any ``<recommendation>`` in the final text to the operator.  Recommended
            actions run with this disabled, so recommendations never nest.
        skip_risk_check:
            The operator has already consented; skip both risk prompts.

        Raises
        ------
        BackendUnavailable
            If the inference backend cannot be reached.
        """
        states: List[AgentState] = []
        consented = skip_risk_check
        try:
            self._enter(AgentState.RISK_CHECK, states)
            if not skip_risk_check and self.risk_policy.is_risky_message(message):
                if not self.gate.confirm_message(self.operator, message):
                    return self._cancelled(message, states)
                consented = True

            self._enter(AgentState.INFERRING, states)
            self.operator.start_progress("Thinking...")
            conversation = self._conversation(message)
            reply = self.backend.chat(conversation)

            self._enter(AgentState.EXTRACTING, states)
            extraction = extract_intents(reply)
            retried = False
            if (
                extraction is None
                and looks_like_action_request(message)
                and not has_intent_markers(reply)
            ):
                self._enter(AgentState.RETRYING, states)
                retried = True
                self.operator.start_progress("Retrying with a stricter instruction...")
                reply = self.backend.chat(
                    conversation
                    + [
                        ChatMessage(role="assistant", content=reply),
                        ChatMessage(role="user", content=retry_instruction(message)),
                    ]
                )
                extraction = extract_intents(reply)

            report: BatchReport | None = None
            if extraction is None:
                self._enter(AgentState.PASS_THROUGH, states)
                final_text = strip_reasoning(reply)
                recommendation_source: str | None = final_text
            else:
                intents = as_batch(extraction)
                self._enter(AgentState.EXECUTING, states)
                if not consented and not self.gate.confirm_actions(self.operator, intents):
                    return self._cancelled(message, states)
                report = self._execute(intents)

                self._enter(AgentState.SUMMARIZING, states)
                final_text, recommendation_source = self._summarize(report, reply)

            recommendation = None
            runs: List[RecommendationRun] = []
            if handle_recommendations and recommendation_source:
                self._enter(AgentState.RECOMMEND_HANDLING, states)
                recommendation, runs = self._handle_recommendation(recommendation_source)

            self._enter(AgentState.HISTORY_UPDATE, states)
            self.history.append(message, final_text)

            return TurnOutcome(
                message=message,
                reply=final_text,
                report=report,
                retried=retried,
                recommendation=recommendation,
                recommendation_runs=runs,
                states=states,
            )
        finally:
            self.operator.stop_progress()
            self._enter(AgentState.IDLE, states)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _enter(self, state: AgentState, states: List[AgentState]) -> None:
        logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state
        states.append(state)

    def _conversation(self, message: str) -> List[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system_prompt()),
            *self.history.messages(),
            ChatMessage(role="user", content=message),
        ]

    def _cancelled(self, message: str, states: List[AgentState]) -> TurnOutcome:
        self._enter(AgentState.CANCELLED, states)
        self.operator.notify("Risky operation cancelled by user.", level="warning")
        return TurnOutcome(
            message=message,
            reply=ConfirmationGate.CANCELLED_MESSAGE,
            cancelled=True,
            states=states,
        )

    def _execute(self, intents: List[ActionIntent]) -> BatchReport:
        total = len(intents)
        if total > 1:
            self.operator.notify(f"Executing {total} actions...")
        self.operator.stop_progress()

        report, self.context = self.executor.execute(intents, self.context)
        for intent, result in zip(report.intents, report.results):
            self.operator.show_result(intent, result)

        if total > 1:
            level = {
                BatchStatus.ALL_SUCCEEDED: "success",
                BatchStatus.PARTIAL: "warning",
                BatchStatus.ALL_FAILED: "error",
            }[report.status]
            self.operator.notify(report.summary, level=level)
        return report

    def _summarize(self, report: BatchReport, reply: str) -> Tuple[str, str | None]:
        """
        Return ``(user-facing text, text to look for a recommendation in)``.

        Fully successful batches get the terse local summary and no recommendation.  Anything
        else asks the backend to phrase a report; if that call fails the local summary is used
        and the original reply's recommendation (if any) is surfaced instead.
        """
        if report.status is BatchStatus.ALL_SUCCEEDED:
            return report.summary, None

        self.operator.start_progress("Generating summary...")
        try:
            prompt = summary_instruction(report)
            summary = strip_reasoning(self.backend.chat(self._conversation(prompt)))
        except BackendUnavailable as exc:
            logger.warning("Could not generate summary: %s", exc)
            return report.summary, strip_reasoning(reply)
        finally:
            self.operator.stop_progress()
        return summary or report.summary, summary

    def _handle_recommendation(
        self, text: str
    ) -> Tuple[Recommendation | None, List[RecommendationRun]]:
        recommendation = extract_recommendation(text)
        if recommendation is None:
            return None, []

        self.operator.stop_progress()
        self.operator.show_recommendation(recommendation)
        question = "Would you like me to execute these recommendations?"
        choice = self.operator.choose(question, RECOMMENDATION_OPTIONS)
        if choice == "details":
            self.operator.show_recommendation(recommendation, details=True)
            choice = self.operator.choose(question, ["execute", "decline"])
        if choice != "execute":
            logger.info("Recommendation '%s' declined", recommendation.title)
            return recommendation, []

        runs: List[RecommendationRun] = []
        total = len(recommendation.actions)
        for index, action in enumerate(recommendation.actions, start=1):
            self.operator.notify(f"[{index}/{total}] {action}")
            try:
                nested = self.chat(
                    recommended_action_instruction(action),
                    handle_recommendations=False,
                    skip_risk_check=True,
                )
                run = RecommendationRun(
                    action=action,
                    success=nested.succeeded,
                    reply=truncate(nested.reply, settings.RESULT_PREVIEW_CHARS),
                )
            except BackendUnavailable as exc:
                logger.warning("Recommended action '%s' failed: %s", action, exc)
                run = RecommendationRun(action=action, success=False, reply=str(exc))
            self.operator.notify(run.reply, level="success" if run.success else "error")
            runs.append(run)
        return recommendation, runs

