"""
Pytest configuration and fixtures for tests.
Provides reusable test fixtures for database, users, and data setup.
"""
import os

# Settings are read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SIDE_EFFECT_RETRY_DELAY"] = "0"

import pytest
from typing import AsyncGenerator, Callable, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from trave_social.core.database import get_db
from trave_social.core.events import side_effect_bus
from trave_social.core.websocket import connection_manager
from trave_social.dependencies import get_current_user
from trave_social.main import fastapi_app
from trave_social.models import Base, Conversation, User
from trave_social.core.security import hash_password
from trave_social.utils.helpers import canonical_key


# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _create_user(db_session: AsyncSession, **kwargs) -> User:
    user = User(**kwargs)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    """User known by internal id u1 and auth-provider id extA."""
    return await _create_user(
        db_session,
        id="u1",
        firebase_uid="extA",
        email="alice@example.com",
        display_name="Alice",
        password_hash=hash_password("alice-password"),
    )


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    """User known by internal id u2, auth-provider id extB and legacy uid legacyB."""
    return await _create_user(
        db_session,
        id="u2",
        firebase_uid="extB",
        uid="legacyB",
        email="bob@example.com",
        display_name="Bob",
        avatar="https://cdn.example.com/bob.jpg",
    )


@pytest.fixture
async def carol(db_session: AsyncSession) -> User:
    """User with only an internal id."""
    return await _create_user(db_session, id="u3", email="carol@example.com")


@pytest.fixture
def make_conversation(db_session: AsyncSession) -> Callable:
    """
    Factory for conversation documents, including legacy shapes
    (no key, unsorted or external-id participants).
    """
    async def factory(first: str, second: str, messages=None, key: str | None = None, **kwargs) -> Conversation:
        conversation = Conversation(
            conversation_key=key,
            participant_one_id=first,
            participant_two_id=second,
            messages=messages or [],
            archived_by=kwargs.pop("archived_by", []),
            deleted_by=kwargs.pop("deleted_by", []),
            **kwargs,
        )
        db_session.add(conversation)
        await db_session.commit()
        await db_session.refresh(conversation)
        return conversation

    return factory


def embedded_message(message_id: str, sender: str, recipient: str | None, text: str, timestamp: str, **extra) -> Dict:
    """Embedded message dict as stored on a conversation document."""
    message = {
        "id": message_id,
        "sender_id": sender,
        "text": text,
        "timestamp": timestamp,
        "read": False,
        "delivered": False,
        "edited_at": None,
        "deleted_at": None,
        "reply_to": None,
        "reactions": {},
    }
    if recipient is not None:
        message["recipient_id"] = recipient
    message.update(extra)
    return message


@pytest.fixture
def message_factory() -> Callable:
    return embedded_message


@pytest.fixture
def pair_key() -> Callable:
    return canonical_key


@pytest.fixture
def current_user_as() -> Callable:
    """Switch the authenticated user of the test client."""
    def switch(user: User) -> None:
        async def mock_get_current_user():
            return {
                "id": user.id,
                "variants": user.identifier_variants,
                "email": user.email,
                "display_name": user.name,
                "avatar": user.avatar,
            }
        fastapi_app.dependency_overrides[get_current_user] = mock_get_current_user

    return switch


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, alice: User, current_user_as) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client authenticated as alice."""
    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    current_user_as(alice)

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def unauth_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client WITHOUT authentication (for testing unauthorized access)."""
    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def published(mocker):
    """Capture side-effect events instead of running their handlers."""
    return mocker.patch.object(side_effect_bus, "publish", new=mocker.AsyncMock())


@pytest.fixture(autouse=True)
def mock_socket_server(mocker):
    """Mock Socket.IO emits for all tests."""
    return mocker.patch.object(connection_manager.sio, "emit", new=mocker.AsyncMock())


def published_events(published_mock, name: str):
    """Payloads of every captured event with the given name."""
    return [call.args[1] for call in published_mock.await_args_list if call.args[0] == name]


@pytest.fixture
def events_named():
    return published_events
