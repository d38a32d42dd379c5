"""테스트 인프라 — 인메모리 SQLite DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure — In-memory SQLite (aiosqlite) engine, session, and
httpx client fixtures. The schema is created fresh for every test.
Outgoing mail is replaced with an AsyncMock for every test.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import *  # noqa: F401,F403 — register all models with metadata
from app.utils.jwt import create_access_token

# ---------------------------------------------------------------------------
# 테스트 DB 설정
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ORG_A = "OC3-PUR"
ORG_B = "OC3-ENG"
COST_CENTER = "CC-1001"


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진 — 테스트마다 새 스키마."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — DB 세션을 오버라이드합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def mail() -> AsyncMock:
    """메일 발송 모킹 — 기본은 성공 (Mail succeeds unless a test says otherwise)."""
    with patch("app.services.notification_service.send_email", new=AsyncMock()) as mocked:
        yield mocked


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
async def _make_user(
    db: AsyncSession,
    user_id: str,
    role: str,
    orgcode3: str | None = ORG_A,
    email: str | None = None,
):
    from app.models.user import User
    user = User(
        user_id=user_id,
        username=user_id.replace(".", " ").title(),
        email=email if email is not None else f"{user_id}@ube.co.th",
        role=role,
        department="Purchasing",
        site_id="1700",
        orgcode3=orgcode3,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def requester(db: AsyncSession):
    """일반 사용자 (USER) — 신청자."""
    return await _make_user(db, "somchai.k", "USER")


@pytest_asyncio.fixture
async def manager_user(db: AsyncSession):
    """같은 조직의 관리자 (MANAGER, same org unit)."""
    return await _make_user(db, "nattaya.p", "MANAGER")


@pytest_asyncio.fixture
async def other_manager(db: AsyncSession):
    """다른 조직의 관리자 (MANAGER, other org unit)."""
    return await _make_user(db, "kittipong.r", "MANAGER", orgcode3=ORG_B)


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession):
    """관리자 (ADMIN)."""
    return await _make_user(db, "admin.user", "ADMIN", orgcode3=ORG_B)


@pytest_asyncio.fixture
async def super_admin(db: AsyncSession):
    return await _make_user(db, "root.admin", "SUPER_ADMIN", orgcode3=None)


@pytest_asyncio.fixture
async def directory(db: AsyncSession, requester, manager_user):
    """디렉터리 뷰 행 — 신청자, 관리자 2명(중복 이메일 포함), 일반 동료."""
    from app.models.user import DirectoryEntry
    rows = [
        DirectoryEntry(
            emp_code="E1001", ad_login_name="somchai.k", email="somchai.k@ube.co.th",
            full_name_eng="Somchai Kaewkla", full_name_thai="สมชาย แก้วกล้า",
            position_title="Purchasing Officer", cost_center_code=COST_CENTER,
            cost_center_name="Purchasing", orgcode3=ORG_A, site_id="1700",
        ),
        DirectoryEntry(
            emp_code="E2001", ad_login_name="nattaya.p", email="nattaya.p@ube.co.th",
            full_name_eng="Nattaya Prasert", position_title="Purchasing Section Manager",
            cost_center_code=COST_CENTER, cost_center_name="Purchasing", orgcode3=ORG_A,
            site_id="1700",
        ),
        DirectoryEntry(
            emp_code="E2002", ad_login_name="nattaya.p2", email="nattaya.p@ube.co.th",
            full_name_eng="Nattaya Prasert", position_title="Acting Manager",
            cost_center_code=COST_CENTER, orgcode3=ORG_A, site_id="1700",
        ),
        DirectoryEntry(
            emp_code="E2003", ad_login_name="wichai.t", email="wichai.t@ube.co.th",
            full_name_eng="Wichai Thongdee", position_title="หัวหน้าแผนก",
            cost_center_code=COST_CENTER, orgcode3=ORG_A, site_id="1700",
        ),
        DirectoryEntry(
            emp_code="E3001", ad_login_name="pimchanok.s", email="pimchanok.s@ube.co.th",
            full_name_eng="Pimchanok Suk", position_title="Clerk",
            cost_center_code=COST_CENTER, orgcode3=ORG_A, site_id="1700",
        ),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest_asyncio.fixture
async def products(db: AsyncSession):
    """분류 1개와 상품 3개 (One category and three products)."""
    from app.models.product import Product, ProductCategory
    category = ProductCategory(name="Paper", sort_order=1)
    db.add(category)
    await db.flush()
    items = [
        Product(category_id=category.id, name="A4 Paper 80gsm", unit_cost=Decimal("125.50"), order_unit="ream"),
        Product(category_id=category.id, name="Blue Pen", unit_cost=Decimal("7.25"), order_unit="piece"),
        Product(category_id=category.id, name="Stapler", unit_cost=Decimal("0"), order_unit="piece"),
    ]
    db.add_all(items)
    await db.flush()
    for p in items:
        await db.refresh(p)
    return items


def make_token(user) -> str:
    """테스트용 JWT 액세스 토큰을 생성합니다."""
    return create_access_token({
        "sub": user.user_id,
        "role": user.role,
        "department": user.department,
        "site_id": user.site_id,
    })


@pytest.fixture
def requester_token(requester) -> str:
    return make_token(requester)


@pytest.fixture
def manager_token(manager_user) -> str:
    return make_token(manager_user)


@pytest.fixture
def other_manager_token(other_manager) -> str:
    return make_token(other_manager)


@pytest.fixture
def admin_token(admin_user) -> str:
    return make_token(admin_user)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
