"""
Pytest Configuration for Exam Proctor Tests
"""
import os
import sys
from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from jose import jwt
from mongomock_motor import AsyncMongoMockClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-32-chars-min")
os.environ["EXPIRY_SWEEP_INTERVAL"] = "0"

import config  # noqa: E402
from database import ensure_indexes, get_db  # noqa: E402
from services.inference_client import InferenceClient  # noqa: E402

START = datetime(2026, 3, 2, 9, 0, 0)

USERS = [
    {"id": "student-1", "name": "Asha Rao", "email": "asha@example.com", "role": "student"},
    {"id": "student-2", "name": "Ben Ode", "email": "ben@example.com", "role": "student"},
    {"id": "admin-1", "name": "Proctor", "email": "proctor@example.com", "role": "admin"},
]

TESTS = [
    {
        "id": "test-algebra",
        "title": "Algebra Basics",
        "duration": 15,
        "totalMarks": 5,
        "passingMarks": 3,
        "isActive": True,
        "allowedAttempts": 2,
    },
    {
        "id": "test-single",
        "title": "Single Attempt Quiz",
        "duration": 10,
        "totalMarks": 1,
        "passingMarks": 1,
        "isActive": True,
        "allowedAttempts": 1,
    },
    {
        "id": "test-retired",
        "title": "Retired Quiz",
        "duration": 10,
        "totalMarks": 1,
        "passingMarks": 1,
        "isActive": False,
        "allowedAttempts": 1,
    },
    {
        "id": "test-window",
        "title": "Scheduled Final",
        "duration": 30,
        "totalMarks": 1,
        "passingMarks": 1,
        "isActive": True,
        "allowedAttempts": 1,
        "startTime": START + timedelta(days=1),
        "endTime": START + timedelta(days=1, hours=2),
    },
]

ALGEBRA_KEY = {"q1": "B", "q2": "A", "q3": "C", "q4": "D", "q5": "A"}


def _options():
    return [{"optionIndex": label, "optionText": f"Option {label}"} for label in "ABCD"]


def _questions():
    questions = [
        {
            "id": question_id,
            "testId": "test-algebra",
            "questionText": f"Algebra question {number}",
            "options": _options(),
            "correctAnswer": correct,
            "marks": 1,
            "questionNumber": number,
        }
        for number, (question_id, correct) in enumerate(ALGEBRA_KEY.items(), start=1)
    ]
    questions.append({
        "id": "s1",
        "testId": "test-single",
        "questionText": "Single question",
        "options": _options(),
        "correctAnswer": "C",
        "marks": 1,
        "questionNumber": 1,
    })
    return questions


async def _seed(database):
    await ensure_indexes(database)
    await database.users.insert_many([dict(user) for user in USERS])
    await database.tests.insert_many([dict(test) for test in TESTS])
    await database.questions.insert_many(_questions())


class FakeClock:
    """Controllable stand-in for datetime.utcnow."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def inference_transport(*responses):
    """MockTransport replying with the given responses in order.

    Each response is a dict (sent as JSON), an int status code, or an
    exception instance to raise.
    """
    queue = list(responses)
    seen = []

    def handler(request):
        seen.append(request)
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, int):
            return httpx.Response(reply, json={"detail": "error"})
        return httpx.Response(200, json=reply)

    transport = httpx.MockTransport(handler)
    transport.requests = seen
    return transport


def make_token(user_id, role):
    return jwt.encode({"id": user_id, "role": role}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db():
    database = AsyncMongoMockClient()["exam_proctor_test"]
    await _seed(database)
    return database


@pytest.fixture
def inference_replies():
    """Replies the app's inference client will return; tests append to it."""
    return []


@pytest.fixture
def app(db, inference_replies):
    from main import app
    from routes.proctoring import get_inference_client

    def inference_override():
        return InferenceClient(
            base_url="http://inference.test",
            transport=inference_transport(*(inference_replies or [{"cheating_score": 0, "mobile_detected": False}])),
        )

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_inference_client] = inference_override
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def student_headers():
    return {"Authorization": f"Bearer {make_token('student-1', 'student')}"}


@pytest.fixture
def other_student_headers():
    return {"Authorization": f"Bearer {make_token('student-2', 'student')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin-1', 'admin')}"}
