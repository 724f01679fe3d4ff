import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from askmycampus.errors import InferenceError
from askmycampus.main import app, get_orchestrator
from askmycampus.orchestrator import ChatOrchestrator
from askmycampus.store import HistoryRepository, InMemoryStore


class FakeGenerator:
    name = "fake"

    def __init__(self, replies: Optional[List[str]] = None, fail: bool = False):
        self.replies = list(replies or [])
        self.fail = fail
        self.calls = []

    def generate(self, system_instruction: str, prompt: str) -> str:
        self.calls.append((system_instruction, prompt))
        if self.fail:
            raise InferenceError("backend down")
        if self.replies:
            return self.replies.pop(0)
        return f"reply {len(self.calls)}"


class RecordingStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.reads = []
        self.writes = []

    def get(self, key):
        self.reads.append(key)
        return super().get(key)

    def put(self, key, value):
        self.writes.append(key)
        super().put(key, value)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def stored_turns(store):
    def read(session_id):
        raw = InMemoryStore.get(store, session_id)
        return None if raw is None else json.loads(raw)

    return read


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def orchestrator(store, generator):
    return ChatOrchestrator(HistoryRepository(store), generator)


@pytest.fixture
def api(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
