"""
termagent entry point.

This file handles startup concerns (arg-parsing, config precedence, logging) and launches the
appropriate interface: the interactive CLI, a single command, or the HTTP API.
"""

import argparse
import logging
import sys
from pathlib import Path

from termagent.agent.agent_loop import Agent
from termagent.agent.inference import load_backend
from termagent.config import (
    ConfigStore,
    settings,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    # Reduce httpx log level to WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_agent(args: argparse.Namespace, store: ConfigStore) -> Agent:
    """Command-line flags win over the persisted config, which wins over settings."""
    saved = store.load()
    backend = load_backend(
        base_url=args.url or saved.ollama_url or settings.OLLAMA_URL,
        model=args.model or saved.model or settings.MODEL,
    )
    if args.url:
        store.update(ollama_url=args.url)
    working_dir = args.dir or saved.working_directory or settings.WORKING_DIR
    if working_dir and not Path(working_dir).expanduser().is_dir():
        logger.warning("Working directory %s does not exist; using cwd", working_dir)
        working_dir = None
    return Agent(backend, working_directory=working_dir)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for termagent.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either CLI or API mode.  Positional words are run as one command and the
    process exits.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the termagent terminal assistant")
    parser.add_argument(
        "--mode",
        choices=["cli", "api"],
        type=str.lower,
        default="cli",
        help="Launch the interactive CLI or the REST API (default: cli)",
    )
    parser.add_argument("--model", help="Model to use (overrides saved config)")
    parser.add_argument("--dir", help="Working directory the agent is confined to")
    parser.add_argument("--url", help="Inference backend URL (overrides saved config)")
    parser.add_argument(
        "--config",
        default=settings.CONFIG_FILE,
        help="Persisted config file (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument("command", nargs="*", help="Run a single command and exit")
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    store = ConfigStore(args.config)
    agent = build_agent(args, store)
    logger.info("Starting termagent [%s mode] in %s", args.mode, agent.context.root)
    logger.debug("Settings: %s", settings.model_dump())

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from termagent.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(agent=agent, port=settings.API_PORT)
        return

    # Lazy import keeps the API stack out of CLI start-up
    from termagent.client.cli import (  # pylint: disable=import-outside-toplevel
        TerminalOperator,
        ensure_model,
        run_cli,
        send,
    )

    agent.operator = TerminalOperator()
    if args.command:
        if not ensure_model(agent, agent.operator, store):
            sys.exit(1)
        if not send(agent, " ".join(args.command)):
            sys.exit(1)
        return

    run_cli(agent, store)


if __name__ == "__main__":
    main()
