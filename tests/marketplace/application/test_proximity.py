"""Tests for proximity queries over agents and unassigned orders."""

import pytest
from marketplace.dispatch.service import DispatchService
from marketplace.routing import set_router
from marketplace.routing.fake_adapter import FakeRouter
from marketplace.shared.geo import GeoPoint

STORE = GeoPoint(latitude=12.9716, longitude=77.5946)


@pytest.fixture()
def router():
    router = FakeRouter()
    set_router(router)
    return router


class TestNearbyAgents:
    def test_sorted_nearest_first_within_radius(self, make_agent):
        near = make_agent(name="Near", latitude=12.9720, longitude=77.5950)
        far = make_agent(name="Far", latitude=12.9900, longitude=77.6200)
        make_agent(name="Away", latitude=13.3000, longitude=77.9000)

        matches = DispatchService.nearby_agents(STORE, max_distance=5000)

        assert [str(m.item.id) for m in matches] == [str(near.id), str(far.id)]
        assert matches[0].meters < matches[1].meters

    def test_offline_and_unverified_agents_excluded(self, make_agent):
        make_agent(name="Offline", online=False)
        make_agent(name="Unverified", verified=False)
        online = make_agent(name="Online")

        assert [str(m.item.id) for m in DispatchService.nearby_agents(STORE)] == [str(online.id)]

    def test_router_failure_skips_candidate(self, make_agent, router):
        broken = make_agent(name="Broken", latitude=12.9720, longitude=77.5950)
        healthy = make_agent(name="Healthy", latitude=12.9730, longitude=77.5960)
        router.fail_for(broken.location)

        matches = DispatchService.nearby_agents(STORE)

        assert [str(m.item.id) for m in matches] == [str(healthy.id)]
        assert len(router.calls) == 2

    def test_router_distance_used_for_radius(self, make_agent, router):
        agent = make_agent(latitude=12.9720, longitude=77.5950)
        router.override(agent.location, meters=50_000)

        assert DispatchService.nearby_agents(STORE, max_distance=10_000) == []

    def test_page_size_cap(self, make_agent, monkeypatch):
        from marketplace import config

        monkeypatch.setattr(config, "PROXIMITY_PAGE_SIZE", 2)
        for i in range(3):
            make_agent(name=f"Agent {i}", phone=f"+91990000020{i}")

        assert len(DispatchService.nearby_agents(STORE)) == 2


class TestNearbyOrders:
    def test_unassigned_orders_near_agent(self, pending_order, delivery_address):
        matches = DispatchService.nearby_orders(STORE, max_distance=5000)

        assert [str(m.item.id) for m in matches] == [str(pending_order.id)]
        assert matches[0].route.seconds > 0

    def test_assigned_orders_excluded(self, out_for_delivery_order):
        assert DispatchService.nearby_orders(STORE) == []

    def test_orders_without_coordinates_excluded(self, make_product, place_order, delivery_address):
        product_id = make_product()
        address = {k: v for k, v in delivery_address.items() if k not in ("latitude", "longitude")}
        place_order([{"product_id": product_id, "quantity": 1}], delivery_address=address)

        assert DispatchService.nearby_orders(STORE) == []

    def test_cancelled_orders_excluded(self, pending_order, customer):
        from marketplace.order.service import OrderLifecycleService

        OrderLifecycleService().update_status(str(pending_order.id), "cancelled", customer)
        assert DispatchService.nearby_orders(STORE) == []


class TestAvailableOrders:
    def test_unassigned_orders_listed_without_location(self, pending_order, make_product, place_order, delivery_address):
        product_id = make_product(title="Lamp")
        address = {k: v for k, v in delivery_address.items() if k not in ("latitude", "longitude")}
        (unlocated,) = place_order([{"product_id": product_id, "quantity": 1}], delivery_address=address)

        available = DispatchService.available_orders()

        assert [str(order.id) for order in available] == [str(pending_order.id), str(unlocated.id)]

    def test_processing_orders_listed(self, pending_order, admin):
        from marketplace.order.service import OrderLifecycleService

        OrderLifecycleService().update_status(str(pending_order.id), "processing", admin)

        assert [order.status for order in DispatchService.available_orders()] == ["processing"]

    def test_claimed_orders_excluded(self, out_for_delivery_order):
        assert DispatchService.available_orders() == []

    def test_cancelled_orders_excluded(self, pending_order, customer):
        from marketplace.order.service import OrderLifecycleService

        OrderLifecycleService().update_status(str(pending_order.id), "cancelled", customer)
        assert DispatchService.available_orders() == []
