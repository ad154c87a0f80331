"""
Unit tests for mrms/services/vendor_service.py and mrms/services/site_service.py
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from mrms.errors import BusinessRuleViolation, NotFound, Unauthorized
from mrms.schemas.site import SiteCreate
from mrms.schemas.vendor import VendorCreate
from mrms.services import site_service, vendor_service


def _make_user(role: str):
    u = MagicMock()
    u.id = uuid.uuid4()
    u.role = role
    u.assigned_site_ids = set()
    return u


def _result(one=None, first=None, many=None):
    r = MagicMock()
    r.scalar_one_or_none.return_value = one
    r.scalars.return_value.first.return_value = first
    r.scalars.return_value.all.return_value = many if many is not None else []
    return r


def _mock_session(*results) -> AsyncMock:
    session = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    session.execute.side_effect = list(results)
    return session


def _vendor_payload(name: str = "Sharma Traders") -> VendorCreate:
    return VendorCreate(
        company_name=name,
        email="Sales@SharmaTraders.in",
        phone="9876543210",
        gst_number="27AAPFU0939F1ZV",
        address="Plot 4, MIDC, Pune",
    )


# ---------------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_vendor_normalises_fields():
    session = _mock_session(_result(first=None))

    vendor = await vendor_service.create_vendor(session, _make_user("purchase_officer"), _vendor_payload("  Sharma Traders "))

    assert vendor.company_name == "Sharma Traders"
    assert vendor.email == "sales@sharmatraders.in"
    session.add.assert_called_once_with(vendor)


@pytest.mark.asyncio
async def test_create_vendor_duplicate_name():
    session = _mock_session(_result(first=MagicMock()))

    with pytest.raises(BusinessRuleViolation, match="already exists"):
        await vendor_service.create_vendor(session, _make_user("purchase_officer"), _vendor_payload())
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_vendor_requires_purchase_officer():
    session = _mock_session()
    with pytest.raises(Unauthorized):
        await vendor_service.create_vendor(session, _make_user("manager"), _vendor_payload())


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_site_duplicate_name():
    session = _mock_session(_result(first=uuid.uuid4()))

    with pytest.raises(BusinessRuleViolation, match="A location with this name already exists"):
        await site_service.create_site(session, _make_user("manager"), SiteCreate(name="Baner Tower B"))


@pytest.mark.asyncio
async def test_assign_sites_only_to_engineers():
    target = MagicMock()
    target.id = uuid.uuid4()
    target.role = "purchase_officer"
    session = _mock_session(_result(one=target))

    with pytest.raises(BusinessRuleViolation):
        await site_service.assign_sites(session, _make_user("manager"), target.id, [str(uuid.uuid4())])


@pytest.mark.asyncio
async def test_assign_sites_unknown_site():
    target = MagicMock()
    target.id = uuid.uuid4()
    target.role = "site_engineer"
    session = _mock_session(_result(one=target), _result(many=[]))

    with pytest.raises(NotFound, match="Site not found or inactive"):
        await site_service.assign_sites(session, _make_user("manager"), target.id, [str(uuid.uuid4())])


@pytest.mark.asyncio
async def test_assign_sites_replaces_assignment():
    target = MagicMock()
    target.id = uuid.uuid4()
    target.role = "site_engineer"
    site = MagicMock()
    site.id = uuid.uuid4()
    session = _mock_session(_result(one=target), _result(many=[site]))

    updated = await site_service.assign_sites(session, _make_user("manager"), target.id, [str(site.id)])

    assert updated.assigned_sites == [site]


@pytest.mark.asyncio
async def test_engineer_without_sites_sees_none():
    session = _mock_session()

    assert await site_service.list_sites(session, _make_user("site_engineer")) == []
    session.execute.assert_not_awaited()
