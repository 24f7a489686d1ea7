"""
Shared fixtures. Environment is pinned before brainary.config is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["EXAM_QUESTION_COUNT"] = "5"
os.environ["EXAM_DURATION_SECONDS"] = "300"
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

import pytest

from brainary.database import Base, SessionLocal, engine, init_db
from brainary.state.exam import Exam, Question
from brainary.tutor.llm import LLMResult


def make_question(n: int) -> Question:
    return Question(
        question=f"Question {n}?",
        options=(f"A{n}", f"B{n}", f"C{n}", f"D{n}"),
        correct_answer=f"A{n}",
    )


def make_exam(count: int = 5, duration: int = 300, difficulty: int = 5, subject: str = "Science") -> Exam:
    return Exam.create(subject, [make_question(i) for i in range(count)], difficulty, duration=duration)


class FakeLLM:
    """Stands in for the OpenAI provider. Returns canned text or raises."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate(self, messages, **kwargs):
        self.calls.append((messages, kwargs))
        if self.error:
            raise self.error
        return LLMResult(text=self.text, latency_ms=1, model="fake", usage={})


@pytest.fixture
def exam():
    return make_exam()


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
