from decimal import Decimal

import pytest

from conftest import FakePort, make_product
from shopdesk.domain.calculations import compute_sale_metrics
from shopdesk.domain.errors import InsufficientStockError, RequestFailedError, ValidationError
from shopdesk.domain.models import Customer, DerivedSaleMetrics, StockRisk
from shopdesk.services.sales_service import CustomerMode, SaleComputationEngine


async def _engine(*products, customers=()):
    port = FakePort(products=products or [make_product()], customers=customers)
    engine = SaleComputationEngine(port)
    await engine.load_products()
    return engine, port


@pytest.mark.asyncio
async def test_sale_below_stock_derives_totals_profit_margin_and_stock():
    engine, _ = await _engine()
    engine.set_product(1)
    m = engine.set_quantity(4)

    assert m.total_amount == Decimal("400")
    assert m.estimated_profit == Decimal("160")
    assert m.profit_margin_percent == Decimal("66.67")
    assert m.remaining_stock == 6
    assert m.stock_risk is StockRisk.OK


@pytest.mark.asyncio
async def test_quantity_reaching_min_stock_is_low_risk():
    engine, _ = await _engine()
    engine.set_product(1)
    m = engine.set_quantity(8)

    assert m.remaining_stock == 2
    assert m.stock_risk is StockRisk.LOW
    assert engine.will_be_low_stock is True


def test_selling_everything_is_depleted():
    m = compute_sale_metrics(make_product(), 10, Decimal("100"))
    assert m.remaining_stock == 0
    assert m.stock_risk is StockRisk.DEPLETED


@pytest.mark.asyncio
async def test_insufficient_stock_blocks_submit_client_side():
    engine, port = await _engine()
    engine.set_product(1)
    engine.set_quantity(15)

    check = engine.validate_for_submit()
    assert not check.ok
    err = next(e for e in check.errors if isinstance(e, InsufficientStockError))
    assert err.available == 10

    engine.set_customer(1)
    result = await engine.submit(CustomerMode.EXISTING)
    assert not result.ok
    assert port.created == []


def test_zero_cost_with_positive_price_is_full_margin():
    m = compute_sale_metrics(make_product(cost="0"), 2, Decimal("50"))
    assert m.profit_margin_percent == Decimal("100")
    assert m.estimated_profit == Decimal("100")


def test_zero_cost_and_zero_price_has_no_margin():
    m = compute_sale_metrics(make_product(cost="0"), 2, Decimal("0"))
    assert m.profit_margin_percent == Decimal("0")


@pytest.mark.asyncio
async def test_invalid_quantity_yields_zero_totals_without_raising():
    engine, _ = await _engine()
    engine.set_product(1)

    for bad in (0, -3, "abc", None):
        m = engine.set_quantity(bad)
        assert m.total_amount == Decimal("0")
        assert m.estimated_profit == Decimal("0")
        assert m.remaining_stock == 10

    field_errors = {getattr(e, "field", None) for e in engine.validate_for_submit().errors}
    assert "quantity" in field_errors


@pytest.mark.asyncio
async def test_no_product_gives_empty_metrics():
    engine, _ = await _engine()
    assert engine.set_quantity(3) == DerivedSaleMetrics()
    assert engine.validate_for_submit().error_for("product_id") is not None


@pytest.mark.asyncio
async def test_switching_product_takes_its_price_and_recomputes():
    engine, _ = await _engine(make_product(), make_product(pid=2, name="Gadget", cost="10", price="25", stock=5, min_stock=1))
    engine.set_product(1)
    engine.set_quantity(2)

    m = engine.set_product(2)
    assert engine.draft.unit_price == Decimal("25")
    assert m.total_amount == Decimal("50")
    assert m.remaining_stock == 3


@pytest.mark.asyncio
async def test_price_override_survives_product_switch_until_cleared():
    engine, _ = await _engine(make_product(), make_product(pid=2, name="Gadget", price="25"))
    engine.set_product(1)
    engine.set_unit_price("90")
    engine.set_product(2)
    assert engine.draft.unit_price == Decimal("90")

    engine.set_unit_price(None)
    assert engine.draft.unit_price == Decimal("25")


@pytest.mark.asyncio
async def test_recompute_is_idempotent_and_pushes_only_on_change():
    engine, _ = await _engine()
    pushed = []
    engine.metrics.subscribe(pushed.append)
    engine.set_product(1)
    engine.set_quantity(4)
    before = len(pushed)

    first = engine.recompute()
    second = engine.recompute()
    assert first == second
    assert len(pushed) == before


@pytest.mark.asyncio
async def test_inactive_and_empty_products_are_not_offered():
    engine, _ = await _engine(
        make_product(),
        make_product(pid=2, name="Old", active=False),
        make_product(pid=3, name="Empty", stock=0),
    )
    assert [p.id for p in engine.products] == [1]
    assert [p.id for p in engine.search_products("wid")] == [1]


@pytest.mark.asyncio
async def test_load_failure_is_pushed_not_raised():
    port = FakePort()
    port.list_error = RequestFailedError("down")
    engine = SaleComputationEngine(port)
    seen = []
    engine.errors.subscribe(seen.append)

    assert await engine.load_products() == []
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_existing_customer_mode_requires_customer():
    engine, _ = await _engine()
    engine.set_product(1)
    engine.set_quantity(2)

    check = engine.build_transaction_request("existing")
    assert check.error_for("customer_id") is not None

    engine.set_customer(7)
    check = engine.build_transaction_request("existing")
    assert check.ok
    payload = check.request.to_payload()
    assert payload["customerId"] == 7
    assert payload["amount"] == 200.0
    assert payload["productId"] == 1
    assert payload["type"] == "INCOME"
    assert "customer" not in payload


@pytest.mark.asyncio
async def test_unknown_existing_customer_is_rejected_once_customers_are_loaded():
    engine, _ = await _engine(customers=[Customer(id=1, name="Ana")])
    await engine.load_customers()
    engine.set_product(1)
    engine.set_customer(99)
    assert engine.build_transaction_request("existing").error_for("customer_id") is not None


@pytest.mark.asyncio
async def test_new_customer_mode_requires_name():
    engine, _ = await _engine()
    engine.set_product(1)

    assert engine.build_transaction_request(CustomerMode.NEW).error_for("customer_name") is not None

    engine.set_new_customer("  Bruno ", email="bruno@example.com")
    check = engine.build_transaction_request(CustomerMode.NEW)
    assert check.ok
    assert check.request.to_payload()["customer"] == {"name": "Bruno", "email": "bruno@example.com"}


@pytest.mark.asyncio
async def test_unknown_customer_mode_is_a_validation_error():
    engine, _ = await _engine()
    engine.set_product(1)
    check = engine.build_transaction_request("walk-in")
    assert isinstance(check.error_for("customer_mode"), ValidationError)


@pytest.mark.asyncio
async def test_submit_sends_income_once_and_resets_the_form():
    engine, port = await _engine()
    engine.set_product(1)
    engine.set_quantity(3)
    engine.set_notes("counter sale")
    engine.set_customer(1)

    result = await engine.submit("existing")

    assert result.ok
    assert result.transaction.id == 101
    assert len(port.created) == 1
    assert port.created[0].description == "counter sale"
    assert engine.draft.product_id is None
    assert engine.metrics.value == DerivedSaleMetrics()


@pytest.mark.asyncio
async def test_server_side_stock_rejection_is_reported_with_known_stock():
    engine, port = await _engine()
    port.create_error = InsufficientStockError("Insufficient stock")
    engine.set_product(1)
    engine.set_quantity(2)
    engine.set_customer(1)
    seen = []
    engine.errors.subscribe(seen.append)

    result = await engine.submit("existing")

    assert not result.ok
    assert seen[0].available == 10
    assert "Available: 10" in seen[0].user_message
    # failed submit keeps the draft for another attempt
    assert engine.draft.product_id == 1
    assert engine.submitting.value is False


@pytest.mark.asyncio
async def test_submit_is_not_retried_on_failure():
    engine, port = await _engine()
    port.create_error = RequestFailedError("boom", status=500)
    engine.set_product(1)
    engine.set_customer(1)

    await engine.submit("existing")
    attempts = [c for c in port.calls if c[0] == "create_transaction"]
    assert len(attempts) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("price", ["-5", -1])
async def test_negative_price_blocks_submit(price):
    engine, _ = await _engine()
    engine.set_product(1)
    engine.set_unit_price(price)
    assert engine.validate_for_submit().error_for("unit_price") is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("price", ["nan", "NaN", "inf", "-Infinity", "1e999999", float("inf"), float("nan")])
async def test_non_finite_price_zeroes_metrics_and_blocks_submit(price):
    engine, _ = await _engine(make_product(cost="60"))
    engine.set_product(1)
    engine.set_quantity(2)

    m = engine.set_unit_price(price)

    assert m.total_amount == Decimal("0")
    assert m.estimated_profit == Decimal("0")
    assert m.remaining_stock == 10
    assert isinstance(engine.validate_for_submit().error_for("unit_price"), ValidationError)


@pytest.mark.asyncio
async def test_nan_price_on_zero_cost_product_does_not_raise():
    engine, _ = await _engine(make_product(cost="0"))
    engine.set_product(1)
    engine.set_quantity(3)

    m = engine.set_unit_price("nan")

    assert m.profit_margin_percent == Decimal("0")
    assert engine.validate_for_submit().error_for("unit_price") is not None

    # a valid price clears the error
    m = engine.set_unit_price("50")
    assert m.total_amount == Decimal("150")
    assert engine.validate_for_submit().ok


@pytest.mark.asyncio
@pytest.mark.parametrize("qty", [float("inf"), float("-inf"), float("nan"), 10**9, "1e999999"])
async def test_unrepresentable_quantity_counts_as_invalid(qty):
    engine, _ = await _engine()
    engine.set_product(1)

    m = engine.set_quantity(qty)

    assert engine.draft.quantity == 0
    assert m.total_amount == Decimal("0")
    assert engine.validate_for_submit().error_for("quantity") is not None


def test_huge_margin_is_still_rounded():
    m = compute_sale_metrics(make_product(cost="0.01", stock=5), 1, Decimal("999999999999"))
    assert m.profit_margin_percent == Decimal("9999999999989900.00")
