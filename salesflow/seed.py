"""
Demo data: one tenant with a selling company, a customer and a member user
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from salesflow.models import Company, CompanyKind, CompanyMember, Tenant

logger = logging.getLogger(__name__)

DEMO_TENANT_ID = "00000000-0000-0000-0000-000000000001"
DEMO_SELLER_ID = "00000000-0000-0000-0000-000000000010"
DEMO_CUSTOMER_ID = "00000000-0000-0000-0000-000000000020"
DEMO_USER_ID = "00000000-0000-0000-0000-000000000100"


async def seed_demo_data(session_factory: async_sessionmaker) -> bool:
    """Insert the demo tenant unless it exists; True when rows were created"""
    async with session_factory() as session, session.begin():
        result = await session.execute(select(Tenant).where(Tenant.id == DEMO_TENANT_ID))
        if result.scalar_one_or_none() is not None:
            return False

        session.add(Tenant(id=DEMO_TENANT_ID, name="Demo Trading"))
        await session.flush()
        session.add_all([
            Company(
                id=DEMO_SELLER_ID,
                tenant_id=DEMO_TENANT_ID,
                kind=CompanyKind.SELLER.value,
                name="Demo Trading Ltd",
                address="1 Market Street",
                city="Amsterdam",
                zip_code="1011",
                country="NL",
                email="sales@demo-trading.example",
                vat_number="NL000000000B01",
            ),
            Company(
                id=DEMO_CUSTOMER_ID,
                tenant_id=DEMO_TENANT_ID,
                kind=CompanyKind.CUSTOMER.value,
                name="Acme Retail BV",
                address="42 Harbour Road",
                city="Rotterdam",
                zip_code="3011",
                country="NL",
                email="purchasing@acme.example",
            ),
        ])
        await session.flush()
        session.add(CompanyMember(company_id=DEMO_CUSTOMER_ID, user_id=DEMO_USER_ID, role="owner"))

    logger.info("Seeded demo tenant and companies")
    return True
