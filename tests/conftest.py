"""Pytest configuration and fixtures."""
import os
import tempfile
import uuid
from datetime import datetime, UTC
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Point the application at a throwaway SQLite file before anything imports settings
_TEST_DIR = Path(tempfile.mkdtemp(prefix="superoptimised-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'app.db'}"
os.environ["ENVIRONMENT"] = "test"
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from superoptimised.database import Base, get_db
import superoptimised.models  # noqa: F401
from superoptimised.models.base import QuestionnaireStatus, QuestionType
from superoptimised.models.question import Question
from superoptimised.models.questionnaire import Questionnaire, QuestionnaireQuestion
from superoptimised.models.user import User
from superoptimised.utils.passwords import hash_password

ADMIN_EMAIL = "admin@example.com"
DEFAULT_PASSWORD = "TestPassword123"


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test, built from the model metadata."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with ``get_db`` routed to the test database."""
    from superoptimised.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    """Factory for registered users with a known password."""

    async def _create_user(email: str | None = None, password: str = DEFAULT_PASSWORD) -> User:
        if email is None:
            email = f"user{uuid.uuid4().hex[:8]}@example.com"
        user = User(email=email, password_hash=hash_password(password), display_name=email.split("@")[0])
        db_session.add(user)
        await db_session.commit()
        return user

    return _create_user


@pytest.fixture
def auth_headers(db_session):
    """Bearer header for a user."""
    from superoptimised.services.auth_service import AuthService

    def _headers(user: User) -> dict[str, str]:
        token, _ = AuthService(db_session).create_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def admin_headers(user_factory, auth_headers):
    admin = await user_factory(email=ADMIN_EMAIL)
    return auth_headers(admin)


@pytest.fixture
def question_factory(db_session):
    """Factory for live questions of any type."""

    async def _create_question(
        question_type: QuestionType = QuestionType.BINARY,
        question_data: dict | None = None,
        **overrides,
    ) -> Question:
        defaults = {
            QuestionType.BINARY: {"optionA": "Yes", "optionB": "No"},
            QuestionType.MULTI_CHOICE: {"options": ["red", "green", "blue"], "maxSelections": 2},
            QuestionType.RATING_SCALE: {"min": 1, "max": 5},
            QuestionType.TEXT_RESPONSE: {"maxLength": 20},
            QuestionType.RANKING: {"items": ["a", "b", "c"]},
            QuestionType.AB_TEST: {"optionA": "Short copy", "optionB": "Long copy"},
        }
        fields = {
            "title": f"{question_type.value} question",
            "question_type": question_type.value,
            "question_data": question_data if question_data is not None else defaults[question_type],
            "is_active": True,
            "display_order": 0,
        }
        fields.update(overrides)
        question = Question(**fields)
        db_session.add(question)
        await db_session.commit()
        return question

    return _create_question


@pytest.fixture
def questionnaire_factory(db_session):
    """Factory for questionnaires linked to existing questions."""

    async def _create_questionnaire(
        questions: list[Question],
        status: QuestionnaireStatus = QuestionnaireStatus.ACTIVE,
        allow_multiple_responses: bool = False,
    ) -> Questionnaire:
        questionnaire = Questionnaire(
            title="Build priorities",
            status=status.value,
            allow_multiple_responses=allow_multiple_responses,
            start_date=datetime.now(UTC) if status == QuestionnaireStatus.ACTIVE else None,
        )
        db_session.add(questionnaire)
        await db_session.flush()
        for index, question in enumerate(questions):
            db_session.add(QuestionnaireQuestion(
                questionnaire_id=questionnaire.questionnaire_id,
                question_id=question.question_id,
                display_order=index,
            ))
        await db_session.commit()
        return questionnaire

    return _create_questionnaire


@pytest.fixture
def voter_cookie():
    """Read the raw voter token from a response's Set-Cookie header."""
    from superoptimised.config import get_settings

    name = get_settings().voter_token_cookie_name

    def _read(response) -> str | None:
        for header in response.headers.get_list("set-cookie"):
            key, _, rest = header.partition("=")
            if key.strip() == name:
                return rest.split(";", 1)[0]
        return None

    return _read
