"""
Company deletion guard
"""
from sqlalchemy import select

from salesflow.models import Company
from salesflow.utils.errors import ErrorKind


async def test_admin_deletes_unused_company(sales, session_factory, identities, seed_data):
    company_id = seed_data["other_customer_a"].id

    result = await sales.companies.delete_company(identities["admin_a"], company_id)

    assert result.ok, result.msg
    assert result.data == {"id": company_id}
    async with session_factory() as session:
        assert (await session.execute(select(Company).where(Company.id == company_id))).first() is None


async def test_referenced_company_is_kept(sales, identities, seed_data, create_quote):
    await create_quote()

    customer = await sales.companies.delete_company(identities["admin_a"], seed_data["customer_a"].id)
    seller = await sales.companies.delete_company(identities["admin_a"], seed_data["seller_a"].id)

    assert customer.kind == ErrorKind.HAS_DEPENDENTS
    assert customer.context["dependents"] == {"quotes": 1}
    assert "Customer A" in customer.msg
    assert seller.kind == ErrorKind.HAS_DEPENDENTS


async def test_plain_users_cannot_delete_companies(sales, identities, seed_data):
    result = await sales.companies.delete_company(identities["user_a"], seed_data["other_customer_a"].id)

    assert result.kind == ErrorKind.SCOPE_MISMATCH


async def test_companies_of_other_tenants_are_invisible(sales, identities, seed_data):
    result = await sales.companies.delete_company(identities["admin_a"], seed_data["customer_b"].id)

    assert result.kind == ErrorKind.COMPANY_NOT_FOUND
