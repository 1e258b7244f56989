"""
Recover tool calls from free-form model text.

The model is asked to answer with either
    {"tool": "<name>", "parameters": { ... }}
or
    {"actions": [{"tool": ..., "parameters": ...}, ...]}
but it routinely wraps that JSON in prose, code fences or reasoning.  :func:`extract_intents`
finds the JSON anyway and returns:

* ``None``                 - no intent in the text
* :class:`ActionIntent`     - a single call
* ``List[ActionIntent]``    - an ordered batch

It never raises.
"""

import json
import logging
import re
from typing import (
    Any,
    Iterator,
    List,
    Tuple,
    Union,
)

from termagent.core.schema import ActionIntent

logger = logging.getLogger(__name__)

Extraction = Union[None, ActionIntent, List[ActionIntent]]

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
# Narrow form: a flat object (no nested braces) mentioning "tool"
_FLAT_TOOL_RE = re.compile(r"\{[^{}]*\"tool\"[^{}]*\}")


def strip_reasoning(text: str) -> str:
    """Remove ``<think>...</think>`` blocks some models emit before answering."""
    return _THINK_RE.sub("", text).strip()


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
def _skip_string(s: str, i: int) -> int:
    """Given s[i] == '"', return the index just past the closing quote (or len(s))."""
    i += 1
    while i < len(s):
        ch = s[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i + 1
        i += 1
    return len(s)


def _find_matching_brace(s: str, i: int) -> int | None:
    """Given s[i] == '{', return the index just past its matching '}', or None if unbalanced."""
    depth = 0
    while i < len(s):
        ch = s[i]
        if ch == '"':
            i = _skip_string(s, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return None


def _iter_objects(text: str) -> Iterator[Tuple[Any, int]]:
    """
    Yield ``(parsed, start)`` for each brace-balanced span that parses as JSON.

    A span that parses is consumed whole; a span that does not is retried one character in, so a
    valid object nested inside junk is still found.
    """
    i = text.find("{")
    while i != -1:
        end = _find_matching_brace(text, i)
        parsed = None
        if end is not None:
            try:
                parsed = json.loads(text[i:end])
            except json.JSONDecodeError:
                parsed = None
        if parsed is not None:
            yield parsed, i
            i = text.find("{", end)
        else:
            i = text.find("{", i + 1)


def _to_intent(obj: Any) -> ActionIntent | None:
    if not isinstance(obj, dict):
        return None
    tool = obj.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        return None
    params = obj.get("parameters", obj.get("args"))
    if not isinstance(params, dict):
        params = {}
    return ActionIntent(tool=tool.strip(), parameters=params)


def _to_batch(obj: Any) -> List[ActionIntent] | None:
    if not isinstance(obj, dict) or not isinstance(obj.get("actions"), list):
        return None
    batch: List[ActionIntent] = []
    for entry in obj["actions"]:
        intent = _to_intent(entry)
        if intent is None:
            # keep the slot so the executor reports it instead of silently dropping it
            tool = entry.get("tool") if isinstance(entry, dict) else None
            intent = ActionIntent(tool=str(tool or ""), parameters={})
        batch.append(intent)
    return batch or None


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
def extract_intents(text: str) -> Extraction:
    """Best-effort extraction of a single intent or an intent batch from *text*."""
    if not text:
        return None
    body = strip_reasoning(text)

    # 1. a batch wins if there is one
    for parsed, _ in _iter_objects(body):
        batch = _to_batch(parsed)
        if batch is not None:
            logger.debug("Extracted %d actions", len(batch))
            return batch

    # 2. flat single-level object
    for match in _FLAT_TOOL_RE.finditer(body):
        try:
            intent = _to_intent(json.loads(match.group(0)))
        except json.JSONDecodeError:
            continue
        if intent is not None:
            logger.debug("Extracted flat intent '%s'", intent.tool)
            return intent

    # 3. any balanced object with a usable "tool"
    for parsed, _ in _iter_objects(body):
        intent = _to_intent(parsed)
        if intent is not None:
            logger.debug("Extracted intent '%s'", intent.tool)
            return intent

    return None


def has_intent_markers(text: str) -> bool:
    """True if *text* looks like it tried to express a tool call, parseable or not."""
    body = strip_reasoning(text or "")
    return '"tool"' in body or '"actions"' in body


def as_batch(extraction: Extraction) -> List[ActionIntent]:
    """Normalise an extraction result to a (possibly empty) list."""
    if extraction is None:
        return []
    if isinstance(extraction, ActionIntent):
        return [extraction]
    return list(extraction)
