"""
Risk classification and the confirmation gate.

Two independent checks decide whether the operator must confirm before anything runs:

* :meth:`RiskPolicy.is_risky_message` scans the raw user message for destructive phrases.
* :meth:`RiskPolicy.is_risky_action` inspects one intent's parameters just before execution.

Both are plain substring heuristics.  They over-trigger (any move of a path containing ``"."``)
and under-trigger (a destructive command phrased unusually), so the word lists are constructor
arguments rather than constants baked into the loop.
"""

import logging
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Sequence,
)

from termagent.agent.operator import Operator
from termagent.core.schema import ActionIntent
from termagent.tools import (
    SOURCE_ALIASES,
    pick,
)

logger = logging.getLogger(__name__)

DEFAULT_RISKY_PHRASES = (
    "delete all",
    "remove all",
    "rm -rf",
    "clear all",
    "wipe",
    "purge all",
    "delete everything",
    "remove everything",
    "clear everything",
    "format",
    "sudo",
    "chmod 777",
)
DEFAULT_RISKY_COMMAND_PATTERNS = (
    "rm ",
    "rm -rf",
    "delete",
    "format",
    "mkfs",
    "dd ",
    "sudo",
    "chmod 777",
)
DEFAULT_SENSITIVE_SOURCE_MARKERS = ("system", "config", ".")
DEFAULT_ALWAYS_RISKY_TOOLS = ("delete_item", "delete_folder")


class RiskPolicy:
    """Substring-based classifier for messages and individual tool calls."""

    def __init__(
        self,
        phrases: Iterable[str] = DEFAULT_RISKY_PHRASES,
        command_patterns: Iterable[str] = DEFAULT_RISKY_COMMAND_PATTERNS,
        sensitive_source_markers: Iterable[str] = DEFAULT_SENSITIVE_SOURCE_MARKERS,
        always_risky_tools: Iterable[str] = DEFAULT_ALWAYS_RISKY_TOOLS,
    ):
        self.phrases = tuple(p.lower() for p in phrases)
        self.command_patterns = tuple(p.lower() for p in command_patterns)
        self.sensitive_source_markers = tuple(m.lower() for m in sensitive_source_markers)
        self._checkers: Dict[str, Callable[[ActionIntent], bool]] = {
            "execute_command": self._risky_command,
            "move_item": self._risky_move,
        }
        for tool in always_risky_tools:
            self._checkers[tool] = lambda _intent: True

    def is_risky_message(self, message: str) -> bool:
        lowered = (message or "").lower()
        return any(phrase in lowered for phrase in self.phrases)

    def is_risky_action(self, intent: ActionIntent) -> bool:
        checker = self._checkers.get(intent.tool)
        return checker(intent) if checker else False

    def risky_actions(self, intents: Sequence[ActionIntent]) -> List[ActionIntent]:
        return [intent for intent in intents if self.is_risky_action(intent)]

    def _risky_command(self, intent: ActionIntent) -> bool:
        command = str(intent.parameters.get("command") or intent.parameters.get("cmd") or "")
        lowered = command.lower()
        return any(pattern in lowered for pattern in self.command_patterns)

    def _risky_move(self, intent: ActionIntent) -> bool:
        params = intent.parameters
        source = pick(params, *SOURCE_ALIASES, required=False) or ""
        lowered = str(source).lower()
        return any(marker in lowered for marker in self.sensitive_source_markers)


class ConfirmationGate:
    """Suspends execution until the operator accepts or declines a risky operation."""

    CANCELLED_MESSAGE = "Operation cancelled for safety."

    def __init__(self, policy: RiskPolicy):
        self.policy = policy

    def confirm_message(self, operator: Operator, message: str) -> bool:
        """Ask about a risky user request.  Returns True if the operator accepted."""
        operator.stop_progress()
        operator.notify(
            f'You are about to execute: "{message}"\n'
            "This action could be irreversible and may permanently delete files/folders "
            "or make system changes.",
            level="warning",
        )
        accepted = operator.confirm("Proceed with risky operation?")
        logger.info("Risky message %s by operator", "accepted" if accepted else "declined")
        return accepted

    def confirm_actions(self, operator: Operator, intents: Sequence[ActionIntent]) -> bool:
        """
        Ask once about every risky intent in *intents*.

        Returns True without prompting when none of them is risky.
        """
        risky = self.policy.risky_actions(intents)
        if not risky:
            return True

        operator.stop_progress()
        lines = "\n".join(f"  - {intent.tool} {intent.parameters}" for intent in risky)
        operator.notify(
            f"The following operation{'s are' if len(risky) > 1 else ' is'} potentially "
            f"destructive:\n{lines}",
            level="warning",
        )
        accepted = operator.confirm("Proceed with risky operation?")
        logger.info(
            "%d risky action(s) %s by operator", len(risky), "accepted" if accepted else "declined"
        )
        return accepted
