from __future__ import annotations

import os
from pathlib import Path
from typing import Any

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from gigradar.models import ClientInfo, FixedBudget, RawPosting, UserProfile
from gigradar.pacing import Pacer
from gigradar.store import Store

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "OK" if status_code < 400 else "Error"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeHTTP:
    """Stands in for ``requests.Session``; replies are consumed in order."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def pacer(sleeps: RecordingSleep) -> Pacer:
    return Pacer(job_delay_ms=(10, 20), page_delay_ms=(5, 5), item_delay_ms=1, sleep=sleeps)


@pytest.fixture
def store():
    with Store(":memory:") as s:
        yield s


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(skills=["React", "Next.js", "TypeScript"], min_budget=5000)


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch):
    monkeypatch.setattr("gigradar.pacing.time.sleep", lambda _s: None)


def make_posting(source_id: str = "01abc", **overrides: Any) -> RawPosting:
    fields: dict[str, Any] = {
        "url": f"https://www.upwork.com/jobs/Test_~{source_id}",
        "title": "React developer",
        "description": "<p>Build a <b>React</b> dashboard with Next.js</p>",
        "budget": FixedBudget(amount=10_000),
        "job_type": "fixed",
        "skill_tags": ["React", "Node"],
        "client": ClientInfo(country="United States", total_spend=120_000, hire_rate=95, payment_verified=True),
    }
    fields.update(overrides)
    return RawPosting(source_id=source_id, **fields)
