from __future__ import annotations

import os
import sys
import tempfile
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no external LLM traffic (every generation takes the fallback path)
# - in-process session cache instead of Redis
# - throwaway SQLite database seeded with the demo assignment
_TEST_DB = Path(tempfile.gettempdir()) / f"adaptiq-test-{uuid.uuid4().hex}.db"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LLM_PROVIDER", "none")
os.environ.setdefault("LLM_MAX_RETRIES", "1")
os.environ.setdefault("SESSION_CACHE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB}")
os.environ.setdefault("SEED_DEMO_DATA", "true")

from adaptiq.main import app  # noqa: E402
from adaptiq.models.base import Base  # noqa: E402
from adaptiq.models.entities import QuizAssignment, Student, SubtopicContent  # noqa: E402
from adaptiq.schemas.quiz import (  # noqa: E402
    Answer,
    AssignmentInfo,
    SessionState,
    StudentProfile,
    TextbookContent,
)


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_db(db_session):
    db_session.add(Student(id="stu-1", name="Asha", class_code="9B"))
    db_session.add(
        QuizAssignment(
            id="quiz-1",
            class_code="9B",
            subject_code="MATH",
            chapter_id="algebra",
            subtopic_id="linear-equations",
            title="Linear equations",
        )
    )
    db_session.add(
        SubtopicContent(
            subject_code="MATH",
            chapter_id="algebra",
            subtopic_id="linear-equations",
            title="Linear equations",
            content="A linear equation in one variable is solved by isolating the variable.",
        )
    )
    await db_session.commit()
    return db_session


@pytest.fixture
def session_state() -> SessionState:
    return SessionState(
        student=StudentProfile(student_id="stu-1", name="Asha", class_code="9B"),
        assignment=AssignmentInfo(
            assignment_id="quiz-1",
            subject_code="MATH",
            chapter_id="algebra",
            subtopic_id="linear-equations",
            title="Linear equations",
        ),
        textbook_content=TextbookContent(
            title="Linear equations",
            content="A linear equation in one variable is solved by isolating the variable.",
        ),
    )


@pytest.fixture
def make_answer():
    def _make(is_correct: bool = True, weights: dict | None = None, **extra) -> Answer:
        return Answer(
            question=extra.pop("question", "Solve 2x + 3 = 7"),
            answer=extra.pop("answer", "x = 2"),
            is_correct=is_correct,
            cognitive_analysis=weights if weights is not None else {"problem_solving": 0.8, "memory_retrieval": 0.3},
            **extra,
        )

    return _make
