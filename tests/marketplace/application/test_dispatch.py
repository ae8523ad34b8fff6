"""Tests for DispatchService — agent pool, assignment, self-claim, delivery progress."""

import threading

import pytest
from marketplace.dispatch.agent import DeliveryAgent
from marketplace.dispatch.assignment import SELF_CLAIM_NOTE
from marketplace.dispatch.service import DispatchService
from marketplace.domain import marketplace
from marketplace.errors import (
    AlreadyAssigned,
    Forbidden,
    InvalidDeliveryTransition,
    InvalidTransition,
    NotFound,
)
from marketplace.notifications.channel import get_channel
from marketplace.notifications.directory import get_directory
from marketplace.notifications.fanout import get_fanout
from marketplace.order.service import OrderLifecycleService
from marketplace.shared.actors import Actor, ActorRole
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def processing_order(pending_order, admin):
    return OrderLifecycleService().update_status(str(pending_order.id), "processing", admin)


class TestAgentPool:
    def test_register_verify_and_go_online(self, make_agent):
        agent = make_agent(name="Asha", phone="+919900000077")

        assert agent.is_verified
        assert agent.is_online
        assert agent.is_dispatchable
        assert get_directory().lookup(str(agent.id)).name == "Asha"

    def test_unverified_agent_not_dispatchable(self, make_agent):
        agent = make_agent(verified=False)
        assert not agent.is_dispatchable

    def test_unknown_agent(self):
        with pytest.raises(NotFound):
            DispatchService.get_agent("missing")


class TestExplicitAssignment:
    def test_admin_assigns_processing_order(self, processing_order, agent, admin):
        order = DispatchService().assign(str(processing_order.id), str(agent.id), admin)

        assert order.agent_id == str(agent.id)
        assert order.delivery.sub_status == "assigned"
        assert order.status == "processing"
        refreshed = DispatchService.get_agent(str(agent.id))
        assert refreshed.last_assigned_order_id == str(order.id)

    def test_owning_supplier_may_assign(self, processing_order, agent, supplier_a):
        order = DispatchService().assign(str(processing_order.id), str(agent.id), supplier_a)
        assert order.agent_id == str(agent.id)

    def test_other_supplier_forbidden(self, processing_order, agent, supplier_b):
        with pytest.raises(Forbidden):
            DispatchService().assign(str(processing_order.id), str(agent.id), supplier_b)

    def test_customer_forbidden(self, processing_order, agent, customer):
        with pytest.raises(Forbidden):
            DispatchService().assign(str(processing_order.id), str(agent.id), customer)

    def test_pending_order_cannot_be_assigned(self, pending_order, agent, admin):
        with pytest.raises(InvalidTransition):
            DispatchService().assign(str(pending_order.id), str(agent.id), admin)

    def test_assigned_order_not_reassigned(self, processing_order, make_agent, admin):
        first = make_agent(name="Ravi", phone="+919900000001")
        second = make_agent(name="Meena", phone="+919900000002")
        DispatchService().assign(str(processing_order.id), str(first.id), admin)

        with pytest.raises(AlreadyAssigned):
            DispatchService().assign(str(processing_order.id), str(second.id), admin)

    def test_unknown_agent(self, processing_order, admin):
        with pytest.raises(NotFound):
            DispatchService().assign(str(processing_order.id), "missing", admin)

    def test_agent_name_sent_to_customer(self, processing_order, agent, admin, delivery_address):
        DispatchService().assign(str(processing_order.id), str(agent.id), admin)
        assert get_fanout().flush()

        bodies = [m["body"] for m in get_channel("sms").messages_to(delivery_address["phone"])]
        assert any(agent.name in body for body in bodies)


class TestExplicitAssignmentProgress:
    def test_packaging_then_out_for_delivery_promotes(self, processing_order, agent, admin):
        service = DispatchService()
        order_id, agent_id = str(processing_order.id), str(agent.id)
        service.assign(order_id, agent_id, admin)

        order = service.update_delivery_status(order_id, agent_id, "packaging")
        assert order.delivery.sub_status == "packaging"
        assert order.status == "processing"

        order = service.update_delivery_status(order_id, agent_id, "out_for_delivery")
        assert order.delivery.sub_status == "out_for_delivery"
        assert order.status == "out_for_delivery"
        assert order.history[-1].actor_id == agent_id

    def test_picked_up_path_does_not_promote(self, processing_order, agent, admin):
        service = DispatchService()
        order_id, agent_id = str(processing_order.id), str(agent.id)
        service.assign(order_id, agent_id, admin)

        service.update_delivery_status(order_id, agent_id, "picked_up")
        order = service.update_delivery_status(order_id, agent_id, "out_for_delivery")

        assert order.delivery.sub_status == "out_for_delivery"
        assert order.status == "processing"

    def test_skipping_a_step_rejected(self, processing_order, agent, admin):
        service = DispatchService()
        service.assign(str(processing_order.id), str(agent.id), admin)

        with pytest.raises(InvalidDeliveryTransition):
            service.update_delivery_status(str(processing_order.id), str(agent.id), "failed")


class TestSelfClaim:
    def test_claim_moves_order_to_packaging(self, pending_order, agent):
        order = DispatchService().self_assign(str(pending_order.id), str(agent.id))

        assert order.status == "packaging"
        assert order.agent_id == str(agent.id)
        assert order.delivery.sub_status == "packaging"
        assert order.history[-1].note == SELF_CLAIM_NOTE
        assert order.history[-1].actor_role == "deliveryAssociate"

    def test_claimed_order_cannot_be_claimed_again(self, pending_order, make_agent):
        first = make_agent(name="Ravi", phone="+919900000001")
        second = make_agent(name="Meena", phone="+919900000002")
        DispatchService().self_assign(str(pending_order.id), str(first.id))

        with pytest.raises(AlreadyAssigned):
            DispatchService().self_assign(str(pending_order.id), str(second.id))

    def test_cancelled_order_cannot_be_claimed(self, pending_order, agent, customer):
        OrderLifecycleService().update_status(str(pending_order.id), "cancelled", customer)

        with pytest.raises(InvalidTransition):
            DispatchService().self_assign(str(pending_order.id), str(agent.id))

    def test_concurrent_claims_have_one_winner(self, pending_order, make_agent):
        agents = [make_agent(name=f"Agent {i}", phone=f"+91990000010{i}") for i in range(4)]
        barrier = threading.Barrier(len(agents))
        winners, losers, errors = [], [], []

        def claim(agent_id):
            with marketplace.domain_context():
                barrier.wait()
                try:
                    DispatchService().self_assign(str(pending_order.id), agent_id)
                    winners.append(agent_id)
                except AlreadyAssigned:
                    losers.append(agent_id)
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=claim, args=(str(a.id),)) for a in agents]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert len(winners) == 1
        assert len(losers) == len(agents) - 1
        order = OrderLifecycleService.get(str(pending_order.id))
        assert order.agent_id == winners[0]
        assert [entry.note for entry in order.history].count(SELF_CLAIM_NOTE) == 1


class TestDeliveryProgress:
    def test_only_assigned_agent_may_update(self, out_for_delivery_order, make_agent):
        stranger = make_agent(name="Meena", phone="+919900000002")
        with pytest.raises(Forbidden):
            DispatchService().update_delivery_status(str(out_for_delivery_order.id), str(stranger.id), "failed")

    def test_delivered_only_through_verification(self, out_for_delivery_order, agent):
        with pytest.raises(InvalidDeliveryTransition):
            DispatchService().update_delivery_status(str(out_for_delivery_order.id), str(agent.id), "delivered")

    def test_unknown_sub_status(self, out_for_delivery_order, agent):
        with pytest.raises(ValidationError):
            DispatchService().update_delivery_status(str(out_for_delivery_order.id), str(agent.id), "lost")

    def test_failed_delivery(self, out_for_delivery_order, agent, delivery_address):
        get_directory().register("sup-a", email="orders@sup-a.example")
        order = DispatchService().update_delivery_status(
            str(out_for_delivery_order.id), str(agent.id), "failed", note="Customer unreachable"
        )
        assert get_fanout().flush()

        assert order.status == "failed"
        assert order.delivery.sub_status == "failed"
        assert order.history[-1].note == "Customer unreachable"
        assert DispatchService.get_agent(str(agent.id)).failed_deliveries == 1
        assert get_channel("email").messages_to("orders@sup-a.example")


class TestLocationPings:
    def test_location_recorded_on_order_and_agent(self, out_for_delivery_order, agent):
        order = DispatchService().record_location(str(out_for_delivery_order.id), str(agent.id), 12.98, 77.60)

        assert order.status == "out_for_delivery"
        assert order.delivery.current_latitude == 12.98
        assert order.history[-1].note.startswith("Location updated")
        moved = current_domain.repository_for(DeliveryAgent).get(str(agent.id))
        assert moved.location.longitude == 77.60

    def test_location_requires_out_for_delivery(self, pending_order, agent):
        DispatchService().self_assign(str(pending_order.id), str(agent.id))

        with pytest.raises(InvalidTransition):
            DispatchService().record_location(str(pending_order.id), str(agent.id), 12.98, 77.60)

    def test_other_agent_rejected(self, out_for_delivery_order, make_agent):
        stranger = make_agent(name="Meena", phone="+919900000002")
        with pytest.raises(Forbidden):
            DispatchService().record_location(str(out_for_delivery_order.id), str(stranger.id), 12.98, 77.60)


class TestActorParsing:
    def test_system_role_cannot_be_claimed(self):
        with pytest.raises(ValidationError):
            Actor.parse("someone", "system")

    def test_known_role(self):
        assert Actor.parse("agent-1", "deliveryAssociate").role == ActorRole.DELIVERY_ASSOCIATE
