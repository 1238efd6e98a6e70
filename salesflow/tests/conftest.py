"""
Test fixtures - file-backed SQLite database, seeded tenants + identity-aware HTTP client
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from salesflow.api.deps import get_engine
from salesflow.database import Base, build_engine, build_session_factory
from salesflow.main import app
from salesflow.models import Company, CompanyKind, CompanyMember, Tenant
from salesflow.services import DocumentType, Identity, Role, SalesEngine, Scope
from salesflow.services.cache import InMemoryCache
from salesflow.tests.factories import IDENTITY_HEADER, order_payload, quote_payload


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Fresh on-disk SQLite database per test, so concurrent sessions really contend"""
    engine = build_engine(f"sqlite:///{tmp_path / 'salesflow-test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(session_factory):
    """Two tenants, each with a seller, a customer and a member user"""
    async with session_factory() as session, session.begin():
        tenant_a = Tenant(name="Tenant A")
        tenant_b = Tenant(name="Tenant B")
        session.add_all([tenant_a, tenant_b])
        await session.flush()

        seller_a = Company(tenant_id=tenant_a.id, kind=CompanyKind.SELLER.value, name="Seller A",
                           address="1 Dock Lane", city="Antwerp", country="BE")
        customer_a = Company(tenant_id=tenant_a.id, kind=CompanyKind.CUSTOMER.value, name="Customer A",
                             address="Main Street 1", city="Utrecht", zip_code="3511", country="NL")
        other_customer_a = Company(tenant_id=tenant_a.id, kind=CompanyKind.CUSTOMER.value, name="Other A")
        seller_b = Company(tenant_id=tenant_b.id, kind=CompanyKind.SELLER.value, name="Seller B")
        customer_b = Company(tenant_id=tenant_b.id, kind=CompanyKind.CUSTOMER.value, name="Customer B",
                             address="Rue Haute 5", city="Brussels", country="BE")
        session.add_all([seller_a, customer_a, other_customer_a, seller_b, customer_b])
        await session.flush()

        session.add_all([
            CompanyMember(company_id=customer_a.id, user_id="user-a"),
            CompanyMember(company_id=customer_b.id, user_id="user-b"),
        ])

    return {
        "tenant_a": tenant_a,
        "tenant_b": tenant_b,
        "seller_a": seller_a,
        "customer_a": customer_a,
        "other_customer_a": other_customer_a,
        "seller_b": seller_b,
        "customer_b": customer_b,
    }


@pytest.fixture()
def identities(seed_data):
    return {
        "user_a": Identity(user_id="user-a", role=Role.USER, tenant_id=seed_data["tenant_a"].id),
        "admin_a": Identity(user_id="admin-a", role=Role.TENANT_ADMIN, tenant_id=seed_data["tenant_a"].id),
        "user_b": Identity(user_id="user-b", role=Role.USER, tenant_id=seed_data["tenant_b"].id),
        "no_tenant": Identity(user_id="drifter", role=Role.USER),
    }


@pytest.fixture()
def scope_a(seed_data):
    return Scope(tenant_id=seed_data["tenant_a"].id, company_id=seed_data["customer_a"].id, user_id="user-a")


@pytest.fixture()
def scope_b(seed_data):
    return Scope(tenant_id=seed_data["tenant_b"].id, company_id=seed_data["customer_b"].id, user_id="user-b")


@pytest.fixture()
def cache():
    return InMemoryCache()


@pytest.fixture()
def sales(session_factory, cache):
    return SalesEngine(session_factory, cache)


@pytest.fixture()
def create_quote(sales, scope_a):
    """Create a quote in tenant A and return its read model"""

    async def _create(scope=None, **overrides):
        result = await sales.lifecycle.create(DocumentType.QUOTE, scope or scope_a, quote_payload(**overrides))
        assert result.ok, result.msg
        return result.data

    return _create


@pytest.fixture()
def create_order(sales, scope_a):
    """Create an order worth 100.00 (10 x 10.00, no tax) in tenant A"""

    async def _create(scope=None, **overrides):
        result = await sales.lifecycle.create(DocumentType.ORDER, scope or scope_a, order_payload(**overrides))
        assert result.ok, result.msg
        return result.data

    return _create


def with_identity(asgi_app, identities):
    """Stand-in for the auth middleware: put the named identity on request.state"""

    async def wrapped(scope, receive, send):
        if scope["type"] == "http":
            headers = dict(scope.get("headers") or [])
            name = headers.get(IDENTITY_HEADER.lower().encode())
            if name:
                scope.setdefault("state", {})["identity"] = identities[name.decode()]
        await asgi_app(scope, receive, send)

    return wrapped


@pytest_asyncio.fixture()
async def client(sales, identities):
    """httpx AsyncClient bound to the FastAPI app, authenticated as user_a by default"""
    app.dependency_overrides[get_engine] = lambda: sales

    transport = ASGITransport(app=with_identity(app, identities))
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers[IDENTITY_HEADER] = "user_a"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(sales):
    """httpx AsyncClient without any identity"""
    app.dependency_overrides[get_engine] = lambda: sales

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
