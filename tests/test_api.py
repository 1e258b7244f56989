"""HTTP API tests with the shared agent swapped for a scripted one."""

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from termagent.agent.agent_loop import Agent
from termagent.api.app import (
    app,
    get_agent,
)

from conftest import (
    OfflineBackend,
    ScriptedBackend,
)


@pytest.fixture()
def api_agent(tmp_path: Path) -> Agent:
    return Agent(ScriptedBackend(), working_directory=tmp_path)


@pytest.fixture()
def client(api_agent: Agent):
    app.dependency_overrides[get_agent] = lambda: api_agent
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient, api_agent: Agent) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["model"] == "test-model"


def test_models(client: TestClient) -> None:
    resp = client.get("/models")

    assert resp.status_code == 200
    assert resp.json() == [{"name": "test-model", "size_gb": 2.0, "current": True}]


def test_agent_runs_actions(client: TestClient, api_agent: Agent, tmp_path: Path) -> None:
    api_agent.backend.queue(
        json.dumps({"tool": "create_file", "parameters": {"filepath": "a.txt", "content": "hi"}})
    )

    resp = client.post("/agent", json={"message": "create a.txt with hi"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "all_succeeded"
    assert body["cancelled"] is False
    assert body["results"][0]["tool"] == "create_file"
    assert body["results"][0]["details"]["size"] == 2
    assert (tmp_path / "a.txt").read_text() == "hi"

    history = client.get("/history").json()
    assert history == [{"user": "create a.txt with hi", "assistant": body["reply"]}]


def test_risky_request_is_cancelled_without_auto_confirm(
    client: TestClient, api_agent: Agent, tmp_path: Path
) -> None:
    (tmp_path / "keep.txt").write_text("x")

    resp = client.post("/agent", json={"message": "delete everything"})

    assert resp.status_code == 200
    assert resp.json()["cancelled"] is True
    assert resp.json()["reply"] == "Operation cancelled for safety."
    assert (tmp_path / "keep.txt").exists()


def test_risky_request_runs_with_auto_confirm(
    client: TestClient, api_agent: Agent, tmp_path: Path
) -> None:
    (tmp_path / "old.txt").write_text("x")
    api_agent.backend.queue(json.dumps({"tool": "delete_item", "parameters": {"filepath": "old.txt"}}))

    resp = client.post("/agent", json={"message": "remove old.txt", "auto_confirm": True})

    assert resp.json()["status"] == "all_succeeded"
    assert not (tmp_path / "old.txt").exists()


def test_recommendation_is_returned_not_executed(client: TestClient, api_agent: Agent) -> None:
    api_agent.backend.queue(
        "All good.\n<recommendation><title>Next</title><actions>\n- run tests\n"
        "</actions></recommendation>"
    )

    body = client.post("/agent", json={"message": "how is it going?"}).json()

    assert body["reply"] == "All good."
    assert body["recommendation"]["actions"] == ["run tests"]
    assert len(api_agent.backend.calls) == 1


def test_backend_down_maps_to_503(tmp_path: Path) -> None:
    agent = Agent(OfflineBackend(), working_directory=tmp_path)
    app.dependency_overrides[get_agent] = lambda: agent
    try:
        client = TestClient(app)
        assert client.post("/agent", json={"message": "hello"}).status_code == 503
        assert client.get("/models").status_code == 503
    finally:
        app.dependency_overrides.clear()


def test_empty_message_is_rejected(client: TestClient) -> None:
    assert client.post("/agent", json={"message": ""}).status_code == 422
