import os

# Settings are read at import time
os.environ.setdefault("GITHUB_TOKEN", "test-token")
os.environ["RECORD_STORE_BACKEND"] = "memory"
os.environ["AUTH_ENABLED"] = "false"
os.environ["ACTIVITY_TIMEZONE"] = "UTC"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from langchain_core.messages import AIMessage  # noqa: E402

from app.api.dependencies import get_store  # noqa: E402
from app.models.diagnosis import DiagnosisRecord  # noqa: E402
from app.services.diagnosis_store import InMemoryDiagnosisStore  # noqa: E402


class FakeChatModel:
    """Stands in for a chat model: replays canned replies and records calls."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        return AIMessage(content=self.replies.pop(0))


def make_record(
    timestamp="2024-05-10T09:00:00+00:00",
    confidence_level="High",
    possible_diseases=None,
    user_id="local-user",
    **kwargs,
):
    return DiagnosisRecord(
        user_id=user_id,
        timestamp=timestamp,
        confidence_level=confidence_level,
        possible_diseases=possible_diseases or [],
        diagnosis=kwargs.pop("diagnosis", "Respiratory infection suspected."),
        **kwargs,
    )


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@pytest.fixture
def store():
    return InMemoryDiagnosisStore()


@pytest.fixture
def client(store):
    from main import app

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
