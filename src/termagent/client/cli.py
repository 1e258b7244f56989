"""Interactive terminal front-end for termagent."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import (
    Callable,
    Dict,
    List,
    Sequence,
    Tuple,
)

from termagent.agent.agent_loop import (
    Agent,
    TurnOutcome,
)
from termagent.agent.inference import (
    BackendUnavailable,
    ModelInfo,
)
from termagent.agent.operator import Operator
from termagent.agent.recommendation import strip_recommendation
from termagent.common import (
    AnsiColors,
    colored_print,
    truncate,
)
from termagent.config import ConfigStore
from termagent.core.schema import (
    ActionIntent,
    ExecutionResult,
    Recommendation,
)

logger = logging.getLogger(__name__)

_LEVEL_COLORS = {
    "info": AnsiColors.BLUE,
    "success": AnsiColors.GREEN,
    "warning": AnsiColors.YELLOW,
    "error": AnsiColors.RED,
}

HELP_TEXT = """\
Commands
  exit, quit   Quit the agent
  clear        Clear the screen
  help         Show this help
  pwd          Show the working directory
  cd           Choose another working directory
  model        Show the current model
  models       List installed models
  switch       Switch model (clears the conversation)
  history      Show the conversation history

Anything else is sent to the model, e.g.
  create a Python script that prints hello world
  run git status
  move notes.txt into docs/"""


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------
def get_user_message(prompt: str = "") -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    if hasattr(signal, "siginterrupt"):
        signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input(prompt).strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


class TerminalOperator(Operator):
    """Operator that talks to a human on the terminal."""

    def __init__(self, reader: Callable[[str], Tuple[str, bool]] = get_user_message):
        self._read = reader
        self._progress: str | None = None

    def confirm(self, question: str) -> bool:
        while True:
            answer, ok = self._read(f"❓ {question} (yes/no): ")
            if not ok:
                colored_print("\n⚠️  Cancelled", AnsiColors.YELLOW)
                return False
            answer = answer.lower()
            if answer in {"y", "yes"}:
                return True
            if answer in {"", "n", "no"}:
                return False
            colored_print(f"❌ Invalid choice: {answer!r}. Please answer yes or no.", AnsiColors.RED)

    def choose(self, question: str, options: Sequence[str]) -> str:
        listing = ", ".join(f"{i}. {opt}" for i, opt in enumerate(options, start=1))
        while True:
            answer, ok = self._read(f"❓ {question}\n   Options: {listing}\n   Choice: ")
            if not ok:
                colored_print("\n⚠️  Cancelled", AnsiColors.YELLOW)
                return options[-1]
            answer = answer.lower()
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return options[int(answer) - 1]
            matches = [opt for opt in options if answer and opt.lower().startswith(answer)]
            if len(matches) == 1:
                return matches[0]
            colored_print(f"❌ Invalid choice: {answer!r}. Please try again.", AnsiColors.RED)

    def notify(self, text: str, level: str = "info") -> None:
        colored_print(text, _LEVEL_COLORS.get(level, AnsiColors.BLUE))

    def start_progress(self, text: str) -> None:
        if text != self._progress:
            colored_print(f"⏳ {text}", AnsiColors.GRAY)
        self._progress = text

    def stop_progress(self) -> None:
        self._progress = None

    def show_result(self, intent: ActionIntent, result: ExecutionResult) -> None:
        colored_print(f"╭─ Tool: {intent.tool}", AnsiColors.MAGENTA)
        for key, value in intent.parameters.items():
            colored_print(f"│  {key}: {truncate(str(value), 120)}", AnsiColors.GRAY)
        if result.success:
            colored_print(f"╰─ ✓ {result.message or 'Success'}", AnsiColors.GREEN)
        else:
            colored_print(f"╰─ ✗ {result.error}", AnsiColors.RED)

        details = result.details
        if result.success and "content" in details:
            print(details["content"])
        for item in details.get("items", []):
            icon = "📁" if item.get("type") == "directory" else "📄"
            print(f"   {icon} {item['name']}")
        for match in details.get("matches", []):
            print(f"   {match['path']}")
        for name, value in details.get("variables", {}).items():
            print(f"   {name}={value}")
        stdout = str(details.get("stdout") or "").strip()
        if stdout:
            print(stdout)
        stderr = str(details.get("stderr") or "").strip()
        if stderr and not result.success:
            colored_print(stderr, AnsiColors.RED)

    def show_recommendation(self, recommendation: Recommendation, details: bool = False) -> None:
        colored_print(f"\n💡 {recommendation.title}", AnsiColors.YELLOW)
        if recommendation.description:
            print(recommendation.description)
        for index, action in enumerate(recommendation.actions, start=1):
            print(f"  {index}. {action}")
        if details:
            colored_print(
                "Each action is sent back to the model as a new request; "
                "destructive steps will not be confirmed again.",
                AnsiColors.GRAY,
            )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------
def _print_models(models: List[ModelInfo], current: str | None) -> None:
    for index, info in enumerate(models, start=1):
        marker = " (current)" if info.name == current else ""
        print(f"   {index}. {info.name} ({info.size_gb:.1f}GB){marker}")


def select_model(agent: Agent, operator: TerminalOperator) -> str | None:
    """Let the user pick an installed model.  Returns None if there is none or they quit."""
    models = agent.backend.list_models()
    if not models:
        colored_print(
            "No models installed. Install one first, e.g.:  ollama pull llama3", AnsiColors.RED
        )
        return None
    _print_models(models, agent.model)
    names = [m.name for m in models]
    choice = operator.choose("Select a model", names + ["quit"])
    return None if choice == "quit" else choice


def ensure_model(agent: Agent, operator: TerminalOperator, store: ConfigStore) -> bool:
    """Check the backend is up and the configured model is installed, prompting if not."""
    try:
        installed = {m.name for m in agent.backend.list_models()}
        if agent.model and agent.model in installed:
            return True
        selected = select_model(agent, operator)
    except BackendUnavailable as exc:
        colored_print(f"❌ {exc}", AnsiColors.RED)
        if exc.hint:
            colored_print(f"💡 {exc.hint}", AnsiColors.YELLOW)
        return False
    if not selected:
        return False
    agent.switch_model(selected)
    store.update(model=selected)
    colored_print(f"🎯 Using model: {selected}", AnsiColors.GREEN)
    return True


def choose_working_directory(agent: Agent, operator: TerminalOperator, store: ConfigStore) -> None:
    """Keep the current sandbox root or enter another one."""
    colored_print(f"📁 Working directory: {agent.context.root}", AnsiColors.CYAN)
    choice = operator.choose("Working directory", ["enter a path", "keep current"])
    if choice == "enter a path":
        raw, ok = get_user_message("Directory path: ")
        if ok and raw:
            try:
                agent.set_working_directory(raw)
            except OSError as exc:
                colored_print(f"❌ {exc}", AnsiColors.RED)
                return
    store.update(working_directory=str(agent.context.root))
    colored_print(f"✅ Using: {agent.context.root}", AnsiColors.GREEN)


# ---------------------------------------------------------------------------
# Turn rendering
# ---------------------------------------------------------------------------
def render_outcome(outcome: TurnOutcome) -> None:
    text = strip_recommendation(outcome.reply)
    if outcome.cancelled:
        colored_print(f"⚠️  {text}", AnsiColors.YELLOW)
        return
    if text:
        colored_print("\n🤖 Assistant:", AnsiColors.MAGENTA)
        print(text)


def send(agent: Agent, message: str) -> bool:
    """Run one turn and print it.  Returns False if the backend was unreachable."""
    try:
        outcome = agent.chat(message)
    except BackendUnavailable as exc:
        logger.error("Turn aborted: %s", exc)
        colored_print(f"❌ Error communicating with the model: {exc}", AnsiColors.RED)
        if exc.hint:
            colored_print(f"💡 {exc.hint}", AnsiColors.YELLOW)
        return False
    render_outcome(outcome)
    return True


# ---------------------------------------------------------------------------
# REPL
# ---------------------------------------------------------------------------
def _show_history(agent: Agent, limit: int = 10) -> None:
    turns = agent.history.recent(limit)
    if not turns:
        colored_print("No conversation history yet.", AnsiColors.GRAY)
        return
    for index, turn in enumerate(turns, start=1):
        colored_print(f"You [{index}]: {turn.user}", AnsiColors.CYAN)
        colored_print(f"Bot [{index}]: {truncate(turn.assistant, 300)}", AnsiColors.MAGENTA)


def _list_models(agent: Agent) -> None:
    try:
        models = agent.backend.list_models()
    except BackendUnavailable as exc:
        colored_print(f"❌ Could not list models: {exc}", AnsiColors.RED)
        return
    if not models:
        print("   No models installed")
    _print_models(models, agent.model)


def _switch(agent: Agent, operator: TerminalOperator, store: ConfigStore) -> None:
    try:
        selected = select_model(agent, operator)
    except BackendUnavailable as exc:
        colored_print(f"❌ Could not switch model: {exc}", AnsiColors.RED)
        return
    if selected and selected != agent.model:
        agent.switch_model(selected)
        store.update(model=selected)
        colored_print(f"✅ Now using model: {selected}", AnsiColors.GREEN)


def run_cli(agent: Agent, store: ConfigStore | None = None) -> None:
    """Run the interactive loop until the user exits."""
    store = store or ConfigStore()
    operator = agent.operator if isinstance(agent.operator, TerminalOperator) else TerminalOperator()
    agent.operator = operator

    colored_print("🔮  termagent - terminal AI assistant", AnsiColors.CYAN)
    if not ensure_model(agent, operator, store):
        return
    choose_working_directory(agent, operator, store)
    colored_print(
        f"🚀 Ready. Model: {agent.model}  Directory: {agent.context.root}\n"
        "   Type 'help' for commands, 'exit' to quit.",
        AnsiColors.GREEN,
    )

    commands: Dict[str, Callable[[], None]] = {
        "clear": lambda: os.system("cls" if os.name == "nt" else "clear"),
        "help": lambda: print(HELP_TEXT),
        "pwd": lambda: colored_print(str(agent.context.cwd), AnsiColors.CYAN),
        "cd": lambda: choose_working_directory(agent, operator, store),
        "model": lambda: colored_print(
            f"Current model: {agent.model}\nBackend URL: {getattr(agent.backend, 'base_url', '-')}",
            AnsiColors.CYAN,
        ),
        "models": lambda: _list_models(agent),
        "switch": lambda: _switch(agent, operator, store),
        "history": lambda: _show_history(agent),
    }

    while True:
        prompt = f"\n💻 [{Path(agent.context.cwd).name or agent.context.cwd}] ❯ "
        user_msg, ok = get_user_message(prompt)
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        command = commands.get(user_msg.lower())
        if command is not None:
            command()
            continue

        send(agent, user_msg)

    colored_print("👋 Bye", AnsiColors.CYAN)
