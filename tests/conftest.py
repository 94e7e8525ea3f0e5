"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# --- Default env, before the app reads its settings
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from app.main import app  # noqa: E402
from app.db import get_db  # noqa: E402
from app.models import ApiKey, Base, Escrow, User, UserRole  # noqa: E402
from app.schemas.escrow import EscrowCreate  # noqa: E402
from app.services import effects  # noqa: E402
from app.services import escrow as escrow_service  # noqa: E402
from app.utils.apikey import hash_key  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_session() -> Iterator[Session]:
    """Fresh in-memory database per test."""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _factory(
        name: str = "user",
        *,
        role: UserRole = UserRole.user,
        is_frozen: bool = False,
        is_active: bool = True,
    ) -> User:
        suffix = uuid4().hex[:8]
        user = User(
            username=f"{name}-{suffix}",
            email=f"{name}-{suffix}@example.com",
            role=role,
            is_frozen=is_frozen,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _factory


@pytest.fixture
def headers_for(db_session: Session) -> Callable[..., dict[str, str]]:
    """Issue an API key for ``user`` and return the matching auth header."""

    def _factory(user: User, *, is_active: bool = True) -> dict[str, str]:
        token = f"test-{uuid4().hex}"
        api_key = ApiKey(
            name=f"key-{uuid4().hex}",
            prefix="test",
            key_hash=hash_key(token),
            user_id=user.id,
            is_active=is_active,
        )
        db_session.add(api_key)
        db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _factory


@pytest.fixture
def buyer(make_user) -> User:
    return make_user("buyer")


@pytest.fixture
def seller(make_user) -> User:
    return make_user("seller")


@pytest.fixture
def outsider(make_user) -> User:
    return make_user("outsider")


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", role=UserRole.admin)


@pytest.fixture
def mediator(make_user) -> User:
    return make_user("mediator", role=UserRole.mediator)


@pytest.fixture
def buyer_headers(buyer, headers_for) -> dict[str, str]:
    return headers_for(buyer)


@pytest.fixture
def seller_headers(seller, headers_for) -> dict[str, str]:
    return headers_for(seller)


@pytest.fixture
def outsider_headers(outsider, headers_for) -> dict[str, str]:
    return headers_for(outsider)


@pytest.fixture
def admin_headers(admin, headers_for) -> dict[str, str]:
    return headers_for(admin)


@pytest.fixture
def mediator_headers(mediator, headers_for) -> dict[str, str]:
    return headers_for(mediator)


@pytest.fixture
def make_escrow(db_session: Session, buyer: User, seller: User) -> Callable[..., Escrow]:
    """Create an escrow through the lifecycle engine, optionally funded."""

    def _factory(*, amount: int = 500_000, funded: bool = False, in_progress: bool = False, **fields) -> Escrow:
        payload = EscrowCreate(title=fields.pop("title", "Used camera"), amount=amount, seller_id=seller.id, **fields)
        escrow = effects.run(db_session, escrow_service.create_escrow(db_session, payload, buyer=buyer))
        if funded or in_progress:
            effects.run(db_session, escrow_service.confirm_payment(db_session, escrow.id, user=buyer))
        if in_progress:
            effects.run(db_session, escrow_service.start_work(db_session, escrow.id, user=seller))
        return escrow

    return _factory
