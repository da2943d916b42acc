"""
IRDesk Platform - 测试夹具
内存SQLite数据库、ASGI客户端与认证用户
"""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="irdesk-uploads-")

import itertools
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.core.database import Base, get_db, import_models
from backend.app.main import app
from backend.app.models.crm import Account, Customer, Product, Transaction
from backend.app.models.investor import Country, Investor, InvestorSnapshot

_counter = itertools.count(1)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    async def _register(email=None, password="secret123", name="테스터"):
        email = email or f"user{next(_counter)}@example.com"
        response = await client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _register


@pytest.fixture
async def auth_session(register_user):
    """注册并返回 {user, accessToken, refreshToken, tokenType}"""
    return await register_user(email="owner@example.com", name="김담당")


@pytest.fixture
def auth_headers(auth_session):
    return {"Authorization": f"Bearer {auth_session['accessToken']}"}


# ---------- 工厂方法 ----------

@pytest.fixture
def make_country(db_session):
    async def _make(code="US", name_ko="미국", name_en="United States"):
        country = Country(code=code, name_ko=name_ko, name_en=name_en)
        db_session.add(country)
        await db_session.commit()
        return country
    return _make


@pytest.fixture
def make_investor(db_session):
    async def _make(name="Alpha Capital", country_code="US", parent_id=None, is_group_representative=True, city="New York"):
        if country_code and await db_session.get(Country, country_code) is None:
            db_session.add(Country(code=country_code, name_en=country_code))
        investor = Investor(
            name=name,
            country_code=country_code,
            parent_id=parent_id,
            is_group_representative=is_group_representative,
            city=city,
        )
        db_session.add(investor)
        await db_session.commit()
        return investor
    return _make


@pytest.fixture
def make_snapshot(db_session):
    async def _make(investor_id, year=2024, quarter=3, **values):
        snapshot = InvestorSnapshot(investor_id=investor_id, year=year, quarter=quarter, **values)
        db_session.add(snapshot)
        await db_session.commit()
        return snapshot
    return _make


@pytest.fixture
def make_account(db_session):
    async def _make(balance=1_000_000, account_no=None, customer_name="홍길동"):
        customer = Customer(customer_name=customer_name, join_date=date(2024, 1, 2))
        db_session.add(customer)
        await db_session.flush()
        account = Account(
            customer_id=customer.customer_id,
            account_no=account_no or f"ACC-{next(_counter):05d}",
            balance=balance,
        )
        db_session.add(account)
        await db_session.commit()
        return account
    return _make


@pytest.fixture
def make_product(db_session):
    async def _make(product_name="KB Equity Fund", product_type=None):
        product = Product(product_name=product_name, product_type=product_type)
        db_session.add(product)
        await db_session.commit()
        return product
    return _make


@pytest.fixture
def make_trade(db_session):
    async def _make(account_id, product_id, trade_type, amount, price, trade_date):
        trade = Transaction(
            account_id=account_id,
            product_id=product_id,
            trade_type=trade_type,
            trade_amount=amount,
            trade_price=price,
            trade_date=trade_date,
        )
        db_session.add(trade)
        await db_session.commit()
        return trade
    return _make