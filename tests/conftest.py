import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["RUN_SCHEDULER"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import Base, enable_sqlite_foreign_keys, get_async_session
from app.core.security import create_access_token
from app.main import app
from app.models.budget import Budget  # noqa: F401
from app.models.category import Category
from app.models.expense import Expense  # noqa: F401
from app.models.recurring_expense import RecurringExpense  # noqa: F401
from app.models.user import User


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(db):
    user = User(email="alice@example.com", full_name="Alice")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def other_user(db):
    user = User(email="bob@example.com", full_name="Bob")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def category(db, user):
    category = Category(user_id=user.id, name="Bills")
    db.add(category)
    await db.commit()
    return category


@pytest.fixture
async def other_category(db, other_user):
    category = Category(user_id=other_user.id, name="Bob's bills")
    db.add(category)
    await db.commit()
    return category


@pytest.fixture
async def client(session_factory, user):
    async def _get_test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _get_test_session
    token = create_access_token(str(user.id))
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
