"""Fixtures for HTTP surface tests."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from mindstack.api.app import create_app
from mindstack.auth import Authenticator
from mindstack.ingest.tasks import TaskRunner


class RecordingTaskRunner(TaskRunner):
    """Collects submitted coroutines instead of scheduling them."""

    def __init__(self) -> None:
        super().__init__()
        self.submitted: list[tuple[str, object]] = []

    def submit(self, coro, *, name):
        self.submitted.append((name, coro))
        return None

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.submitted]

    def run_all(self) -> None:
        """Run every recorded coroutine to completion, in submission order."""
        while self.submitted:
            _, coro = self.submitted.pop(0)
            asyncio.run(coro)

    def discard(self) -> None:
        for _, coro in self.submitted:
            coro.close()
        self.submitted.clear()


@pytest.fixture
def runner():
    recording = RecordingTaskRunner()
    yield recording
    recording.discard()


@pytest.fixture
def app(config, tmp_db, fake_llm, objects, transcripts, runner):
    return create_app(
        config,
        conn=tmp_db,
        llm=fake_llm,
        objects=objects,
        transcripts=transcripts,
        tasks=runner,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def token_for(tmp_db):
    """Register a user and return ``(user_id, headers)``."""

    def _register(name: str = "ada"):
        user_id, token = Authenticator(tmp_db).register_user(name)
        return user_id, {"Authorization": f"Bearer {token}"}

    return _register


@pytest.fixture
def caller(token_for):
    return token_for("ada")


@pytest.fixture
def headers(caller):
    return caller[1]


@pytest.fixture
def project_id(client, headers):
    response = client.post("/api/projects", json={"name": "kb"}, headers=headers)
    return response.json()["project_id"]


@pytest.fixture
def session_id(client, headers, project_id):
    response = client.post("/api/sessions/start", json={"project_id": project_id}, headers=headers)
    return response.json()["session_id"]
