import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Drain notifications and reset every fake adapter after each test."""
    yield

    from marketplace.invoicing import reset_invoice_renderer
    from marketplace.notifications.channel import reset_channels
    from marketplace.notifications.directory import reset_directory
    from marketplace.notifications.fanout import reset_fanout
    from marketplace.routing import reset_router

    reset_fanout()
    reset_channels()
    reset_invoice_renderer()
    reset_router()
    reset_directory()


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------
@pytest.fixture()
def admin():
    from marketplace.shared.actors import Actor, ActorRole

    return Actor(id="admin-001", role=ActorRole.ADMIN)


@pytest.fixture()
def customer():
    from marketplace.shared.actors import Actor, ActorRole

    return Actor(id="cust-001", role=ActorRole.CUSTOMER)


@pytest.fixture()
def supplier_a():
    from marketplace.shared.actors import Actor, ActorRole

    return Actor(id="sup-a", role=ActorRole.SUPPLIER)


@pytest.fixture()
def supplier_b():
    from marketplace.shared.actors import Actor, ActorRole

    return Actor(id="sup-b", role=ActorRole.SUPPLIER)


# ---------------------------------------------------------------------------
# Catalogue builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_category():
    from marketplace.catalogue.management import CreateCategory

    def _make(name="Electronics", parent_id=None, handling_fee=0.0):
        return current_domain.process(
            CreateCategory(name=name, parent_id=parent_id, handling_fee=handling_fee),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def make_product():
    from marketplace.catalogue.management import AddProduct

    def _make(
        supplier_id="sup-a",
        title="Widget",
        base_price=100.0,
        discounted_price=None,
        gst_rate=0.0,
        stock_quantity=10,
        category_id=None,
        variations=None,
    ):
        return current_domain.process(
            AddProduct(
                supplier_id=supplier_id,
                title=title,
                base_price=base_price,
                discounted_price=discounted_price,
                gst_rate=gst_rate,
                stock_quantity=stock_quantity,
                category_id=category_id,
                variations=json.dumps(variations or []),
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def make_coupon():
    from marketplace.catalogue.management import CreateCoupon

    def _make(code="SAVE10", discount_type="percentage", value=10.0, **kwargs):
        return current_domain.process(
            CreateCoupon(code=code, discount_type=discount_type, value=value, **kwargs),
            asynchronous=False,
        )

    return _make


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@pytest.fixture()
def delivery_address():
    return {
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
        "country": "India",
        "phone": "+919800000001",
        "latitude": 12.9756,
        "longitude": 77.6050,
    }


@pytest.fixture()
def place_order(delivery_address):
    from marketplace.order.factory import OrderFactory

    def _place(lines, customer_id="cust-001", **kwargs):
        kwargs.setdefault("delivery_address", delivery_address)
        return OrderFactory().place(customer_id=customer_id, lines=lines, **kwargs)

    return _place


@pytest.fixture()
def pending_order(make_product, place_order):
    """A single-supplier cash-on-delivery order for supplier sup-a."""
    product_id = make_product(supplier_id="sup-a", title="Kettle", base_price=250.0, stock_quantity=5)
    (order,) = place_order([{"product_id": product_id, "quantity": 1}], customer_email="cust-001@example.com")
    return order


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_agent():
    from marketplace.dispatch.service import DispatchService

    def _make(name="Ravi", phone="+919900000001", online=True, verified=True, latitude=12.9716, longitude=77.5946):
        service = DispatchService()
        agent = service.register_agent(name, phone)
        agent_id = str(agent.id)
        if verified:
            service.verify_agent(agent_id)
        if online:
            service.set_availability(agent_id, True, latitude, longitude)
        return service.get_agent(agent_id)

    return _make


@pytest.fixture()
def agent(make_agent):
    return make_agent()


@pytest.fixture()
def out_for_delivery_order(pending_order, agent):
    """``pending_order`` claimed by ``agent`` and driven out for delivery."""
    from marketplace.dispatch.service import DispatchService

    service = DispatchService()
    service.self_assign(str(pending_order.id), str(agent.id))
    return service.update_delivery_status(str(pending_order.id), str(agent.id), "out_for_delivery")
