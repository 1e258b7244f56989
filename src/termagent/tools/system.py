"""Shell execution and environment lookup tools."""

import logging
import os
import signal
import subprocess
import threading
import time
from typing import (
    IO,
    Any,
    Dict,
    List,
    Mapping,
)

from termagent.common import (
    format_bytes,
    truncate,
)
from termagent.config import settings
from termagent.core.sandbox import SandboxContext
from termagent.core.schema import ExecutionResult
from termagent.tools import (
    ToolInputError,
    pick,
    register_tool,
)

logger = logging.getLogger(__name__)

SECRET_MARKERS = ("password", "secret", "key", "token", "auth")
MASK = "********"

# Keep child output free of colour escapes so it can be parsed and summarised
_NO_COLOR_ENV = {"FORCE_COLOR": "0", "NO_COLOR": "1", "CLICOLOR": "0", "TERM": "dumb"}

_CHUNK_SIZE = 64 * 1024
_POLL_INTERVAL = 0.05  # seconds
_DRAIN_GRACE = 1.0  # seconds to collect output after the process group is killed


# ---------------------------------------------------------------------------
# Process helpers
# ---------------------------------------------------------------------------
class _CappedReader(threading.Thread):
    """Drains one pipe, keeping at most *limit* bytes and flagging *overflow* past that."""

    def __init__(self, pipe: IO[bytes], limit: int, overflow: threading.Event):
        super().__init__(daemon=True)
        self.pipe = pipe
        self.limit = limit
        self.overflow = overflow
        self.buffer = bytearray()

    def run(self) -> None:
        with self.pipe:
            for chunk in iter(lambda: self.pipe.read1(_CHUNK_SIZE), b""):
                room = self.limit - len(self.buffer)
                if len(chunk) > room:
                    # drain past the cap without storing
                    self.buffer += chunk[: max(room, 0)]
                    self.overflow.set()
                else:
                    self.buffer += chunk

    def text(self) -> str:
        return bytes(self.buffer).decode("utf-8", errors="replace")


def _kill_group(proc: subprocess.Popen) -> None:
    """SIGKILL the shell and everything it started."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass  # group already gone


def _supervise(
    proc: subprocess.Popen, readers: List[_CappedReader], overflow: threading.Event, timeout: float
) -> str | None:
    """
    Wait for *proc* and its output pipes.

    Returns ``"timeout"`` or ``"overflow"`` if the process group had to be killed, else None.
    """
    deadline = time.monotonic() + timeout
    stopped = None
    while proc.poll() is None:
        if overflow.wait(_POLL_INTERVAL):
            stopped = "overflow"
            break
        if time.monotonic() >= deadline:
            stopped = "timeout"
            break

    if stopped is None:
        # background children may still hold the pipes open
        for reader in readers:
            reader.join(max(deadline - time.monotonic(), 0))
        if any(reader.is_alive() for reader in readers):
            stopped = "timeout"

    if stopped is not None:
        _kill_group(proc)
    proc.wait()
    for reader in readers:
        reader.join(_DRAIN_GRACE)
    return stopped


@register_tool(
    "execute_command",
    "Run a shell command in the current directory (for complex operations, bulk actions)",
    {"command": "string", "timeout": "number of seconds (optional, default 300)"},
)
def execute_command(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    command = str(pick(params, "command", "cmd", label="command"))
    try:
        timeout = float(params.get("timeout") or settings.COMMAND_TIMEOUT)
    except (TypeError, ValueError) as exc:
        raise ToolInputError(f"timeout must be a number of seconds: {exc}") from exc

    cwd = context.validate(context.cwd)
    limit = settings.MAX_OUTPUT_BYTES
    env = {**os.environ, **_NO_COLOR_ENV}

    logger.info("Running command in %s: %s", cwd, command)
    proc = subprocess.Popen(
        command,
        shell=True,
        cwd=cwd,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        start_new_session=True,
    )
    overflow = threading.Event()
    out_reader = _CappedReader(proc.stdout, limit, overflow)
    err_reader = _CappedReader(proc.stderr, limit, overflow)
    out_reader.start()
    err_reader.start()

    stopped = _supervise(proc, [out_reader, err_reader], overflow, timeout)
    stdout, stderr = out_reader.text(), err_reader.text()

    if stopped == "timeout":
        logger.warning("Command timed out after %gs: %s", timeout, command)
        return ExecutionResult.failure(
            f"Command timed out after {timeout:g}s",
            command=command,
            timed_out=True,
            stdout=stdout,
            stderr=stderr,
        )

    fields: Dict[str, Any] = {
        "command": command,
        "exit_code": proc.returncode,
        "stdout": stdout,
        "stderr": stderr,
        "timed_out": False,
    }
    if overflow.is_set():
        logger.warning("Command output exceeded %d bytes: %s", limit, command)
        fields["truncated"] = True
        return ExecutionResult.failure(
            f"Command output exceeded {format_bytes(limit)}; the command was stopped", **fields
        )

    if proc.returncode != 0:
        detail = truncate(stderr.strip(), 500)
        message = f"Command exited with code {proc.returncode}"
        return ExecutionResult.failure(f"{message}: {detail}" if detail else message, **fields)

    return ExecutionResult.ok("Command executed successfully", **fields)


def is_secret(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SECRET_MARKERS)


@register_tool(
    "get_environment",
    "Read environment variables (secret values are masked)",
    {"filter": "string (optional) - only names containing this text"},
)
def get_environment(params: Mapping[str, Any], context: SandboxContext) -> ExecutionResult:
    # context unused: the environment is process-wide
    name_filter = pick(params, "filter", "name", "variable", required=False)
    needle = str(name_filter).lower() if name_filter else ""

    variables = {
        name: MASK if is_secret(name) else value
        for name, value in sorted(os.environ.items())
        if needle in name.lower()
    }
    return ExecutionResult.ok(
        f"Found {len(variables)} environment variable{'s' if len(variables) != 1 else ''}",
        variables=variables,
        count=len(variables),
    )
