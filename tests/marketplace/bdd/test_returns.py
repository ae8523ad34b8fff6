"""BDD tests for order returns."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.errors import MarketplaceError
from marketplace.order.order import Order
from marketplace.order.service import OrderLifecycleService
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/returns.feature")


@pytest.fixture()
def outcome():
    return {"error": None}


@given("a pending cash on delivery order", target_fixture="order_id")
def _(pending_order):
    return str(pending_order.id)


@given("the admin has delivered the order")
def _(order_id, admin):
    service = OrderLifecycleService()
    for status in ("processing", "out_for_delivery", "delivered"):
        service.update_status(order_id, status, admin)


@given(parsers.cfparse("the order was delivered {days:d} days ago"))
def _(order_id, days):
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    order.delivered_at = datetime.now(UTC) - timedelta(days=days)
    repo.add(order)


@when(parsers.cfparse('the {who} returns the order because "{reason}"'))
def _(order_id, outcome, customer, admin, who, reason):
    actor = customer if who == "customer" else admin
    try:
        OrderLifecycleService().update_status(order_id, "returned", actor, note=reason)
    except MarketplaceError as exc:
        outcome["error"] = exc


@then(parsers.cfparse('the order is "{status}"'))
def _(order_id, status):
    assert OrderLifecycleService.get(order_id).status == status


@then(parsers.cfparse('the return reason is "{reason}"'))
def _(order_id, reason):
    assert OrderLifecycleService.get(order_id).return_reason == reason


@then(parsers.cfparse('the return is rejected as "{kind}"'))
def _(outcome, kind):
    assert outcome["error"] is not None
    assert outcome["error"].kind == kind
