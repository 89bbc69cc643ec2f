"""
Shared test fixtures for the SnapMarket test suite.
"""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt
from sqlalchemy import event, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import AppEnv, Settings
from app.core.models import Category, Condition, ListingCreate, LocalImage
from app.core.session import SessionContext
from app.db.models import Base, Listing

TEST_JWT_SECRET = "test-secret-for-identity-provider-tokens-0123456789"

SELLER_ID = "seller-0001"
BUYER_ID = "buyer-0002"

# Smallest valid JPEG header bytes are enough; nothing decodes the image
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64 + b"\xff\xd9"


def make_token(
    sub: str,
    email: str = "",
    secret: str = TEST_JWT_SECRET,
    expires_in: timedelta = timedelta(hours=1),
    **claims,
) -> str:
    """Sign a token the way the identity provider would."""
    payload = {
        "sub": sub,
        "email": email,
        "exp": datetime.now(UTC) + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from .env and OS env vars."""
    return Settings(
        _env_file=None,
        app_env=AppEnv.DEVELOPMENT,
        auth_jwt_secret=TEST_JWT_SECRET,
        storage_url="https://storage.test",
        storage_service_key="service-key",
        gemini_api_key="gemini-test-key",
        gemini_base_url="https://gemini.test/v1beta",
    )


@pytest.fixture
def seller_ctx(settings) -> SessionContext:
    return SessionContext.from_token(make_token(SELLER_ID, "seller@example.com"), settings)


@pytest.fixture
def buyer_ctx(settings) -> SessionContext:
    return SessionContext.from_token(make_token(BUYER_ID, "buyer@example.com"), settings)


@pytest.fixture
def anonymous_ctx(settings) -> SessionContext:
    return SessionContext.anonymous(settings)


@pytest.fixture
def sample_image() -> LocalImage:
    return LocalImage(data=JPEG_BYTES, filename="Camera.JPG", content_type="image/jpeg")


@pytest.fixture
def sample_listing_create() -> ListingCreate:
    """A confirmed draft for a used camera."""
    return ListingCreate(
        title="Canon AE-1 Program 35mm Film Camera",
        description="Classic SLR with 50mm f/1.8 lens, light meter working.",
        price=189.99,
        category=Category.ELECTRONICS,
        condition=Condition.USED,
        image_url="https://storage.test/storage/v1/object/public/product-images/1700000000000-abc123.jpg",
    )


# ─── Database ────────────────────────────────────────────────


@pytest.fixture
async def engine():
    """In-memory async SQLite engine with the full schema."""
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    # SQLite needs PRAGMA foreign_keys for FK enforcement
    @event.listens_for(eng.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncSession:
    """A session on the in-memory database, rolled back after the test."""
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


async def add_listing(
    session: AsyncSession,
    owner_id: str = SELLER_ID,
    title: str = "Nintendo Switch OLED",
    description: str = "White Joy-Cons, barely used.",
    price: float = 250.0,
    category: str = Category.VIDEO_GAMES.value,
    status: str | None = "available",
    created_at: datetime | None = None,
) -> Listing:
    """Insert a listing row directly."""
    listing = Listing(
        owner_id=owner_id,
        title=title,
        description=description,
        price=price,
        category=category,
        condition=Condition.USED.value,
        image_url="https://storage.test/storage/v1/object/public/product-images/x.jpg",
        status=status,
        created_at=created_at or datetime.now(UTC),
    )
    session.add(listing)
    await session.flush()

    if status is None:
        # The ORM skips None on columns with defaults; write the legacy NULL directly
        await session.execute(
            update(Listing).where(Listing.id == listing.id).values(status=None)
        )
        await session.refresh(listing)
    return listing


@pytest.fixture
def listing_factory(db_session):
    """``await listing_factory(**fields)`` inserts a listing into the test session."""

    async def _create(**fields) -> Listing:
        return await add_listing(db_session, **fields)

    return _create


@pytest.fixture
def token_factory():
    """``token_factory(sub, email)`` signs an identity-provider token."""
    return make_token
