"""Prompt text sent to the inference backend."""

import json
import platform
import re
from typing import (
    Any,
    List,
)

from termagent.common import truncate
from termagent.core.sandbox import SandboxContext
from termagent.core.schema import BatchReport
from termagent.tools import ToolRegistry

SYSTEM_PROMPT = """\
You are a terminal assistant with access to file system operations and shell commands.
When the user asks for an action, perform it IMMEDIATELY with a tool call - do not explain how
to do it.

RESPONSE FORMATS
A single action:
{{"tool": "tool_name", "parameters": {{"param1": "value1"}}}}

Several actions, executed in the order listed:
{{"actions": [
  {{"tool": "create_directory", "parameters": {{"dirpath": "project"}}}},
  {{"tool": "change_directory", "parameters": {{"dirpath": "project"}}}},
  {{"tool": "create_file", "parameters": {{"filepath": "README.md", "content": "# Project"}}}}
]}}

PATH RULES
1. Use relative paths ("notes.txt", "src/app.py"); never invent absolute paths.
2. For the current directory use "." or omit the directory parameter.
3. Always pass "content" to create_file (use "" for an empty file).
4. For bulk operations such as "delete all .log files" use execute_command.
5. Destructive operations will be confirmed with the user by the system.

RECOMMENDATIONS
Only AFTER performing the requested actions you may suggest follow-ups:
<recommendation>
<title>Short title</title>
<description>Why this is recommended</description>
<actions>
- first follow-up action
- second follow-up action
</actions>
</recommendation>

Available tools:
{tools}

Current working directory: {cwd}
Operating system: {os_name}

Do not show your reasoning; reply only with the tool call or your answer."""

RETRY_INSTRUCTION = """\
Your previous reply did not contain a tool call, but the request requires an action.
Reply with ONLY the JSON tool call for this request, no other text:
{message}"""

SUMMARY_INSTRUCTION = """\
{label}:
{results}

Please provide a brief, natural language summary of what was accomplished. Be concise and mention
any failures. If there are logical next steps or fixes for the failures, format them using the
recommendation tags. Do not show your thinking process, only the response."""

RECOMMENDED_ACTION_INSTRUCTION = "Please perform this action: {action}"

_ACTION_WORDS = (
    "create", "make", "write", "read", "show", "open", "list", "delete", "remove", "rm",
    "move", "rename", "copy", "search", "find", "replace", "run", "execute", "install",
    "append", "add", "mkdir", "cd", "touch", "cat", "ls", "build", "test", "generate",
    "update", "edit", "change", "set", "get", "check",
)
_ACTION_RE = re.compile(r"\b(" + "|".join(_ACTION_WORDS) + r")\b", re.IGNORECASE)


def build_system_prompt(registry: ToolRegistry, context: SandboxContext) -> str:
    tools = "\n".join(descriptor.signature() for descriptor in registry.descriptors())
    return SYSTEM_PROMPT.format(tools=tools, cwd=context.cwd, os_name=platform.system())


def looks_like_action_request(message: str) -> bool:
    """Keyword heuristic: does *message* ask the agent to do something?"""
    return bool(_ACTION_RE.search(message or ""))


def retry_instruction(message: str) -> str:
    return RETRY_INSTRUCTION.format(message=message)


def _result_dicts(report: BatchReport) -> List[dict[str, Any]]:
    rows = []
    for intent, result in zip(report.intents, report.results):
        row = result.model_dump(exclude_none=True, mode="json")
        row.setdefault("tool", intent.tool)
        # file bodies and listings bloat the prompt without helping the summary
        for bulky in ("content", "items", "matches", "variables"):
            row.pop(bulky, None)
        for stream in ("stdout", "stderr"):
            if isinstance(row.get(stream), str):
                row[stream] = truncate(row[stream], 2000)
        rows.append(row)
    return rows


def summary_instruction(report: BatchReport) -> str:
    if len(report.results) == 1:
        label = "Tool execution result"
        results: Any = _result_dicts(report)[0]
    else:
        label = "Multiple tool execution results"
        results = _result_dicts(report)
    return SUMMARY_INSTRUCTION.format(label=label, results=json.dumps(results, indent=2))


def recommended_action_instruction(action: str) -> str:
    return RECOMMENDED_ACTION_INSTRUCTION.format(action=action)
