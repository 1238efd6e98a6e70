"""
Database setup script - tables, demo tenant and a sample quote -> order -> invoice chain
"""
import asyncio
from datetime import date, timedelta

from salesflow.database import engine, Base, AsyncSessionLocal
from salesflow.models import *  # noqa: F401,F403
from salesflow.seed import DEMO_CUSTOMER_ID, DEMO_TENANT_ID, DEMO_USER_ID, seed_demo_data
from salesflow.services import DocumentType, Identity, Role, SalesEngine, Scope


async def setup_database():
    """Create tables and seed initial data"""
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    if not await seed_demo_data(AsyncSessionLocal):
        print("Demo data already present")
        return

    sales = SalesEngine(AsyncSessionLocal)
    scope = Scope(tenant_id=DEMO_TENANT_ID, company_id=DEMO_CUSTOMER_ID, user_id=DEMO_USER_ID)
    admin = Identity(user_id=DEMO_USER_ID, role=Role.TENANT_ADMIN, tenant_id=DEMO_TENANT_ID)

    quote = await sales.lifecycle.create(DocumentType.QUOTE, scope, {
        "valid_until": (date.today() + timedelta(days=30)).isoformat(),
        "tax_rate": "21",
        "items": [
            {"product_name": "Shelving unit", "quantity": "4", "unit_price": "149.00"},
            {"product_name": "Installation", "quantity": "6", "unit": "h", "unit_price": "45.00", "discount": "10"},
        ],
    })
    if not quote.ok:
        print(f"Sample quote failed: {quote.msg}")
        return
    print(f"Created quote {quote.data.quote_number} (total {quote.data.total})")

    order = await sales.conversions.quote_to_order(admin, quote.data.id)
    print(f"Converted to order {order.data.order_number}")

    invoice = await sales.conversions.order_to_invoice(admin, order.data.id, {"partial": {"percentage": 50}})
    print(f"Raised a 50% invoice {invoice.data['invoice_id']}")

    print("\nDatabase setup complete!")
    print(f"\nDemo tenant: {DEMO_TENANT_ID}")
    print(f"Demo customer company: {DEMO_CUSTOMER_ID}")


if __name__ == "__main__":
    asyncio.run(setup_database())
