"""
Parsing of ``<recommendation>`` blocks.

The model may append a follow-up proposal to its reply::

    <recommendation>
    <title>Add tests</title>
    <description>The new module has no tests yet</description>
    <actions>
    - create tests/test_module.py with a smoke test
    - run pytest
    </actions>
    </recommendation>
"""

import re
from typing import List

from termagent.core.schema import Recommendation

_BLOCK_RE = re.compile(r"<recommendation>(.*?)</recommendation>", re.DOTALL | re.IGNORECASE)


def _tag(body: str, name: str) -> str | None:
    match = re.search(rf"<{name}>(.*?)</{name}>", body, re.DOTALL | re.IGNORECASE)
    return match.group(1).strip() if match else None


def _action_lines(block: str) -> List[str]:
    actions = []
    for line in block.splitlines():
        stripped = line.strip()
        if not stripped.startswith("-"):
            continue
        item = stripped.lstrip("-").strip()
        if item:
            actions.append(item)
    return actions


def extract_recommendation(text: str) -> Recommendation | None:
    """Return the first recommendation in *text*, or None if there is none with actions."""
    match = _BLOCK_RE.search(text or "")
    if not match:
        return None
    body = match.group(1)

    actions_block = _tag(body, "actions")
    actions = _action_lines(actions_block) if actions_block else []
    if not actions:
        return None

    return Recommendation(
        title=_tag(body, "title") or "Recommendation",
        description=_tag(body, "description") or "",
        actions=actions,
    )


def strip_recommendation(text: str) -> str:
    """*text* without its recommendation blocks, for display."""
    return _BLOCK_RE.sub("", text or "").strip()
