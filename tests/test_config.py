"""Persisted configuration document tests."""

import json
from pathlib import Path

from termagent.config import (
    AgentConfig,
    ConfigStore,
)


def test_missing_file_gives_empty_config(tmp_path: Path) -> None:
    assert ConfigStore(tmp_path / "none.json").load() == AgentConfig()


def test_update_round_trips_with_camel_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "agent-config.json"
    store = ConfigStore(path)

    store.update(model="llama3", working_directory=str(tmp_path))
    raw = json.loads(path.read_text())

    assert raw["model"] == "llama3"
    assert raw["workingDirectory"] == str(tmp_path)
    assert "lastUpdated" in raw

    loaded = store.load()
    assert loaded.model == "llama3"
    assert loaded.last_updated is not None


def test_update_merges(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "c.json")
    store.update(model="a")
    store.update(ollama_url="http://box:11434")

    loaded = store.load()
    assert loaded.model == "a"
    assert loaded.ollama_url == "http://box:11434"


def test_corrupt_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "c.json"
    path.write_text("{not json")

    assert ConfigStore(path).load() == AgentConfig()
