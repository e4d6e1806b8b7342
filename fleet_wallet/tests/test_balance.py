"""
Vendor balance tests.

balance = commission credit for the day - live payout sums for that day.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from fleet_wallet.app.core.exceptions import InvalidRequestError, VendorNotFoundError
from fleet_wallet.app.domain.money import local_day_window
from fleet_wallet.app.domain.wallet.balance_aggregator import BalanceAggregator
from fleet_wallet.app.domain.wallet.commission_ledger import CommissionLedger

IST = 330
DAY = date(2025, 1, 15)


async def test_credit_without_drivers(session_factory, db_session, vendor):
    """Credit of 5000, no drivers: everything is still available."""
    await CommissionLedger.record_credit(db_session, vendor.id, DAY, "5000.00")

    balance = await BalanceAggregator(session_factory, IST).compute_balance(vendor.id, DAY)

    assert balance.allocated == Decimal("5000.00")
    assert balance.deducted == Decimal("0.00")
    assert balance.balance == Decimal("5000.00")


async def test_credit_minus_trip_payouts(session_factory, db_session, vendor, driver, add_trip):
    """1200 standard + 300 airport owed against a 5000 credit leaves 3500."""
    start, _ = local_day_window(DAY, IST)
    await add_trip("standard", driver.id, start + timedelta(hours=3), "1200.00")
    await add_trip("airport", driver.id, start + timedelta(hours=9), "300.00")
    await CommissionLedger.record_credit(db_session, vendor.id, DAY, "5000.00")

    balance = await BalanceAggregator(session_factory, IST).compute_balance(vendor.id, DAY)

    assert balance.allocated == Decimal("5000.00")
    assert balance.deducted == Decimal("1500.00")
    assert balance.balance == Decimal("3500.00")


async def test_no_credit_goes_negative(session_factory, vendor, driver, add_trip):
    start, _ = local_day_window(DAY, IST)
    await add_trip("rental", driver.id, start + timedelta(hours=1), "250.00")

    balance = await BalanceAggregator(session_factory, IST).compute_balance(vendor.id, DAY)

    assert balance.allocated == Decimal("0.00")
    assert balance.balance == Decimal("-250.00")


async def test_trips_on_neighbouring_local_days_do_not_count(session_factory, vendor, driver, add_trip):
    start, end = local_day_window(DAY, IST)
    await add_trip("standard", driver.id, start - timedelta(minutes=1), "100.00")
    await add_trip("standard", driver.id, end + timedelta(minutes=1), "100.00")

    balance = await BalanceAggregator(session_factory, IST).compute_balance(vendor.id, DAY)

    assert balance.deducted == Decimal("0.00")


async def test_other_vendors_drivers_do_not_count(
    session_factory, db_session, vendor, other_vendor, driver, add_trip
):
    from fleet_wallet.app.models.driver import Driver

    outsider = Driver(vendor_id=other_vendor.id, name="Outsider", phone="+919833333333", license_number="X-1")
    db_session.add(outsider)
    await db_session.commit()
    start, _ = local_day_window(DAY, IST)
    await add_trip("standard", outsider.id, start + timedelta(hours=1), "999.00")

    balance = await BalanceAggregator(session_factory, IST).compute_balance(vendor.id, DAY)

    assert balance.deducted == Decimal("0.00")


async def test_compute_balance_is_deterministic(session_factory, db_session, vendor, driver, add_trip):
    start, _ = local_day_window(DAY, IST)
    await add_trip("outstation", driver.id, start + timedelta(hours=5), "420.50")
    await CommissionLedger.record_credit(db_session, vendor.id, DAY, "1000.00")
    aggregator = BalanceAggregator(session_factory, IST)

    first = await aggregator.compute_balance(vendor.id, DAY)
    second = await aggregator.compute_balance(vendor.id, DAY)

    assert first == second


async def test_unknown_vendor(session_factory):
    with pytest.raises(VendorNotFoundError):
        await BalanceAggregator(session_factory, IST).compute_balance(424242, DAY)


async def test_series_has_no_carry_forward(session_factory, db_session, vendor, driver, add_trip):
    await CommissionLedger.record_credit(db_session, vendor.id, DAY, "100.00")
    next_day_start, _ = local_day_window(DAY + timedelta(days=1), IST)
    await add_trip("standard", driver.id, next_day_start + timedelta(hours=1), "30.00")

    series = await BalanceAggregator(session_factory, IST).compute_balance_series(
        vendor.id, DAY, DAY + timedelta(days=2), max_days=92
    )

    assert [day.date for day in series] == [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2)]
    assert [day.balance for day in series] == [Decimal("100.00"), Decimal("-30.00"), Decimal("0.00")]


async def test_series_rejects_inverted_range(session_factory, vendor):
    with pytest.raises(InvalidRequestError):
        await BalanceAggregator(session_factory, IST).compute_balance_series(
            vendor.id, DAY, DAY - timedelta(days=1), max_days=92
        )


async def test_series_rejects_long_range(session_factory, vendor):
    with pytest.raises(InvalidRequestError):
        await BalanceAggregator(session_factory, IST).compute_balance_series(
            vendor.id, DAY, DAY + timedelta(days=92), max_days=92
        )


async def test_balance_endpoint(client, db_session, vendor, driver, add_trip, vendor_headers):
    start, _ = local_day_window(DAY, IST)
    await add_trip("standard", driver.id, start + timedelta(hours=3), "1200.00")
    await add_trip("airport", driver.id, start + timedelta(hours=9), "300.00")
    await CommissionLedger.record_credit(db_session, vendor.id, DAY, "5000.00")

    response = await client.get("/v1/vendor/balance", params={"date": "2025-01-15"}, headers=vendor_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["date"] == "2025-01-15"
    assert Decimal(data["allocated"]) == Decimal("5000.00")
    assert Decimal(data["deducted"]) == Decimal("1500.00")
    assert Decimal(data["balance"]) == Decimal("3500.00")


async def test_balance_series_endpoint_range_limit(client, vendor, vendor_headers):
    response = await client.get(
        "/v1/vendor/balance/series",
        params={"start": "2025-01-01", "end": "2025-06-30"},
        headers=vendor_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_BAD_REQUEST_001"


async def test_payouts_endpoint(client, vendor, driver, second_driver, add_trip, vendor_headers):
    start, _ = local_day_window(DAY, IST)
    await add_trip("rental", driver.id, start + timedelta(hours=2), "80.00")

    response = await client.get("/v1/vendor/payouts", params={"date": "2025-01-15"}, headers=vendor_headers)

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["per_driver"][str(driver.id)]) == Decimal("80.00")
    assert Decimal(data["per_driver"][str(second_driver.id)]) == Decimal("0.00")
    assert Decimal(data["total"]) == Decimal("80.00")


async def test_balance_requires_vendor_token(client, admin_headers):
    response = await client.get("/v1/vendor/balance", headers=admin_headers)

    assert response.status_code == 403
