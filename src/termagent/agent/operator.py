"""
The operator: whoever answers the agent's questions.

The agent never reads stdin or prints directly.  Every blocking interaction (confirmations,
choices) and every progress or result notification goes through an :class:`Operator`, so the loop
runs the same behind the terminal, the HTTP API, or a test.
"""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    List,
    Sequence,
)

from termagent.core.schema import (
    ActionIntent,
    ExecutionResult,
    Recommendation,
)


class Operator(ABC):
    """Interactive collaborator of the agent loop."""

    @abstractmethod
    def confirm(self, question: str) -> bool:
        """Yes/no question.  Must resolve to False if the prompt is interrupted."""

    @abstractmethod
    def choose(self, question: str, options: Sequence[str]) -> str:
        """Pick one of *options*.  Must resolve to the last (safest) option if interrupted."""

    def notify(self, text: str, level: str = "info") -> None:
        """Show an informational line.  *level* is one of info, success, warning, error."""

    def start_progress(self, text: str) -> None:
        """Show (or update) the in-progress indicator."""

    def stop_progress(self) -> None:
        """Hide the in-progress indicator."""

    def show_result(self, intent: ActionIntent, result: ExecutionResult) -> None:
        """Report the outcome of one tool call."""

    def show_recommendation(self, recommendation: Recommendation, details: bool = False) -> None:
        """Present a recommendation; *details* asks for the long form."""


class AutoOperator(Operator):
    """
    Non-interactive operator.

    Answers every confirmation with *approve*.  Choices (recommendations) get the first option
    when *run_recommendations* is set, the last (safest) one otherwise.  Notifications are
    recorded in :attr:`log`.
    """

    def __init__(self, approve: bool = False, run_recommendations: bool = False):
        self.approve = approve
        self.run_recommendations = run_recommendations
        self.log: List[str] = []

    def confirm(self, question: str) -> bool:
        self.log.append(f"confirm: {question} -> {self.approve}")
        return self.approve

    def choose(self, question: str, options: Sequence[str]) -> str:
        answer = options[0] if self.run_recommendations else options[-1]
        self.log.append(f"choose: {question} -> {answer}")
        return answer

    def notify(self, text: str, level: str = "info") -> None:
        self.log.append(f"{level}: {text}")
