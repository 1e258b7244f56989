"""Shared fixtures: a scripted inference backend, a scripted operator and a sandboxed agent."""

from pathlib import Path
from typing import (
    Iterable,
    List,
    Sequence,
)

import pytest

from termagent.agent.agent_loop import Agent
from termagent.agent.inference import (
    BackendUnavailable,
    BaseBackend,
    ModelInfo,
)
from termagent.agent.operator import Operator
from termagent.core.sandbox import SandboxContext
from termagent.core.schema import (
    ActionIntent,
    ChatMessage,
    ExecutionResult,
    Recommendation,
)
from termagent.tools import build_registry


class ScriptedBackend(BaseBackend):
    """Returns queued replies in order and records every request."""

    def __init__(self, replies: Iterable[str] = (), model: str = "test-model"):
        self.replies: List[str | Exception] = list(replies)
        self.model = model
        self.calls: List[List[ChatMessage]] = []
        self.models = [ModelInfo(name="test-model", size=2 * 1024**3)]

    def queue(self, *replies: str | Exception) -> None:
        self.replies.extend(replies)

    def chat(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        if not self.replies:
            raise AssertionError("ScriptedBackend ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def list_models(self) -> List[ModelInfo]:
        return self.models


class OfflineBackend(ScriptedBackend):
    """Every request fails as if the server were down."""

    def chat(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        raise BackendUnavailable("Cannot connect", hint="Make sure Ollama is running:  ollama serve")

    def list_models(self) -> List[ModelInfo]:
        raise BackendUnavailable("Cannot connect")


class ScriptedOperator(Operator):
    """Answers from queues and records everything it is shown."""

    def __init__(self, confirms: Iterable[bool] = (), choices: Iterable[str] = ()):
        self.confirms = list(confirms)
        self.choices = list(choices)
        self.questions: List[str] = []
        self.notes: List[tuple[str, str]] = []
        self.results: List[tuple[ActionIntent, ExecutionResult]] = []
        self.recommendations: List[tuple[Recommendation, bool]] = []

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.confirms.pop(0) if self.confirms else False

    def choose(self, question: str, options: Sequence[str]) -> str:
        self.questions.append(question)
        return self.choices.pop(0) if self.choices else options[-1]

    def notify(self, text: str, level: str = "info") -> None:
        self.notes.append((level, text))

    def show_result(self, intent: ActionIntent, result: ExecutionResult) -> None:
        self.results.append((intent, result))

    def show_recommendation(self, recommendation: Recommendation, details: bool = False) -> None:
        self.recommendations.append((recommendation, details))


@pytest.fixture()
def context(tmp_path: Path) -> SandboxContext:
    return SandboxContext.at(tmp_path)


@pytest.fixture(scope="session")
def registry():
    return build_registry()


@pytest.fixture()
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture()
def operator() -> ScriptedOperator:
    return ScriptedOperator()


@pytest.fixture()
def agent(tmp_path: Path, backend: ScriptedBackend, operator: ScriptedOperator) -> Agent:
    return Agent(backend, operator=operator, working_directory=tmp_path)
