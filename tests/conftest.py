import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-123")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")

import pytest
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

import app.models  # noqa: F401
from app.auth.security import get_password_hash
from app.config import settings
from app.core.rate_limit import reset_rate_limiter_state
from app.database import Base, get_db, set_rls_context
from app.main import app
from app.models.coaching import Client
from app.models.enums import Role
from app.models.user import User
from app.services.trainer_service import TrainerService

PASSWORD = "password123"


@pytest.fixture(scope="function")
async def db_engine():
    url = settings.SQLALCHEMY_DATABASE_URI
    if url.startswith("sqlite"):
        engine = create_async_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_async_engine(url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    async with async_session() as session:
        await set_rls_context(session, role="ADMIN")
        yield session


@pytest.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    await reset_rate_limiter_state()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    await reset_rate_limiter_state()


async def create_user(db_session: AsyncSession, email: str, role: Role, name: str | None = None) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        name=name or email.split("@")[0].title(),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


async def login_headers(client: AsyncClient, email: str) -> dict[str, str]:
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": email, "password": PASSWORD},
    )
    assert response.status_code == 200, response.text
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


async def create_linked_client(
    db_session: AsyncSession,
    trainer: User,
    email: str,
    *,
    with_account: bool = True,
) -> tuple[Client, User | None]:
    user = await create_user(db_session, email, Role.CLIENT) if with_account else None
    client_row = Client(email=email, name=email.split("@")[0].title(), user_id=user.id if user else None)
    db_session.add(client_row)
    await db_session.flush()
    await TrainerService.link_trainer(db_session, client_row, trainer.id)
    await db_session.commit()
    return client_row, user


@pytest.fixture
async def admin_user(db_session) -> User:
    return await create_user(db_session, "admin@gym.com", Role.ADMIN, "Admin User")


@pytest.fixture
async def trainer_user(db_session) -> User:
    return await create_user(db_session, "trainer@gym.com", Role.TRAINER, "Tina Trainer")


@pytest.fixture
async def admin_token_headers(client, admin_user) -> dict[str, str]:
    return await login_headers(client, admin_user.email)


@pytest.fixture
async def trainer_token_headers(client, trainer_user) -> dict[str, str]:
    return await login_headers(client, trainer_user.email)
