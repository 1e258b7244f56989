"""Recommendation block parsing."""

from termagent.agent.recommendation import (
    extract_recommendation,
    strip_recommendation,
)

REPLY = """Created the module.

<recommendation>
<title>Add tests</title>
<description>The new module has no tests yet</description>
<actions>
- create tests/test_module.py with a smoke test
-   run pytest
-
</actions>
</recommendation>"""


def test_full_block() -> None:
    rec = extract_recommendation(REPLY)

    assert rec.title == "Add tests"
    assert rec.description == "The new module has no tests yet"
    assert rec.actions == ["create tests/test_module.py with a smoke test", "run pytest"]


def test_missing_title_gets_default() -> None:
    rec = extract_recommendation("<recommendation><actions>\n- ls\n</actions></recommendation>")

    assert rec.title == "Recommendation"
    assert rec.description == ""
    assert rec.actions == ["ls"]


def test_block_without_actions_is_ignored() -> None:
    assert extract_recommendation("<recommendation><title>x</title></recommendation>") is None
    assert extract_recommendation("<recommendation><actions>\n-\n</actions></recommendation>") is None
    assert extract_recommendation("no block here") is None


def test_strip_recommendation() -> None:
    assert strip_recommendation(REPLY) == "Created the module."
