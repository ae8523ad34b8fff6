"""Dispatch commands — explicit assignment, self-claim, delivery progress.

Every handler loads the order and the agent and commits both in one unit of
work. The claim on an order's delivery slot is a conditional write: the
order is re-checked as unassigned inside the handler and committed against
the version it was read at, so of two concurrent claimers only one commits;
the other's retry finds the slot taken and fails with ``AlreadyAssigned``.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.dispatch.agent import DeliveryAgent
from marketplace.dispatch.delivery_leg import DeliveryLeg, parse_sub_status
from marketplace.domain import marketplace
from marketplace.errors import AlreadyAssigned, Forbidden, InvalidDeliveryTransition, InvalidTransition
from marketplace.order.order import Order
from marketplace.order.state_machine import OrderStateMachine
from marketplace.order.status import DeliverySubStatus, OrderStatus
from marketplace.shared.actors import Actor, ActorRole

logger = structlog.get_logger(__name__)

SELF_CLAIM_NOTE = "Order accepted by delivery associate"

_CLAIMABLE = {OrderStatus.PENDING.value, OrderStatus.PROCESSING.value}


@marketplace.command(part_of="Order")
class AssignAgent:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)


@marketplace.command(part_of="Order")
class SelfAssignOrder:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)


@marketplace.command(part_of="Order")
class UpdateDeliveryStatus:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    note = Text()


@marketplace.command(part_of="Order")
class RecordDeliveryLocation:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)


def _ensure_unassigned(order: Order) -> None:
    if order.agent_id:
        raise AlreadyAssigned(
            f"Order {order.order_number} is already assigned",
            order_id=str(order.id),
            agent_id=order.agent_id,
        )


def _ensure_assigned_to(order: Order, agent_id: str) -> None:
    if not order.is_assigned_to(agent_id):
        raise Forbidden(
            f"Order {order.order_number} is not assigned to agent {agent_id}",
            order_id=str(order.id),
            agent_id=agent_id,
        )


@marketplace.command_handler(part_of=Order)
class DispatchCommandHandler:
    @handle(AssignAgent)
    def assign_agent(self, command):
        order_repo = current_domain.repository_for(Order)
        agent_repo = current_domain.repository_for(DeliveryAgent)
        order = order_repo.get(command.order_id)

        actor = Actor(id=command.actor_id, role=ActorRole(command.actor_role))
        if actor.role == ActorRole.SUPPLIER:
            if str(order.supplier_id) != actor.id:
                raise Forbidden("Suppliers can only assign their own orders", order_id=str(order.id))
        elif actor.role != ActorRole.ADMIN:
            raise Forbidden(f"{actor.role.value} cannot assign delivery agents", order_id=str(order.id))

        agent = agent_repo.get(command.agent_id)
        _ensure_unassigned(order)
        if order.status != OrderStatus.PROCESSING.value:
            raise InvalidTransition(
                "Only processing orders can be assigned to an agent",
                order_id=str(order.id),
                from_status=order.status,
            )

        order.assign_delivery(str(agent.id), DeliverySubStatus.ASSIGNED)
        agent.record_assignment(str(order.id))
        order_repo.add(order)
        agent_repo.add(agent)

    @handle(SelfAssignOrder)
    def self_assign(self, command):
        order_repo = current_domain.repository_for(Order)
        agent_repo = current_domain.repository_for(DeliveryAgent)
        order = order_repo.get(command.order_id)
        agent = agent_repo.get(command.agent_id)

        _ensure_unassigned(order)
        if order.status not in _CLAIMABLE:
            raise InvalidTransition(
                "Only pending or processing orders can be claimed",
                order_id=str(order.id),
                from_status=order.status,
            )

        actor = Actor(id=str(agent.id), role=ActorRole.DELIVERY_ASSOCIATE)
        order.assign_delivery(actor.id, DeliverySubStatus.PACKAGING, self_claimed=True)
        OrderStateMachine().apply_on_behalf(order, OrderStatus.PACKAGING, actor, note=SELF_CLAIM_NOTE)
        agent.record_assignment(str(order.id))
        order_repo.add(order)
        agent_repo.add(agent)

    @handle(UpdateDeliveryStatus)
    def update_delivery_status(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        _ensure_assigned_to(order, str(command.agent_id))

        target = parse_sub_status(command.status)
        if target == DeliverySubStatus.DELIVERED:
            raise InvalidDeliveryTransition(
                "Deliveries are completed through delivery verification",
                order_id=str(order.id),
                to_status=target.value,
            )

        promotion = DeliveryLeg.check(order, target)
        actor = Actor(id=str(command.agent_id), role=ActorRole.DELIVERY_ASSOCIATE)
        order.change_delivery_sub_status(target)

        if promotion is not None and order.status != promotion.value:
            note = command.note or ("Delivery failed" if promotion == OrderStatus.FAILED else "Out for delivery")
            OrderStateMachine().apply_on_behalf(order, promotion, actor, note=note)

        if target == DeliverySubStatus.FAILED:
            order.clear_challenge()
            agent_repo = current_domain.repository_for(DeliveryAgent)
            agent = agent_repo.get(command.agent_id)
            agent.record_failed_delivery()
            agent_repo.add(agent)
            logger.warning("Delivery failed", order_id=str(order.id), agent_id=str(command.agent_id))

        order_repo.add(order)
        return promotion.value if promotion else None

    @handle(RecordDeliveryLocation)
    def record_location(self, command):
        order_repo = current_domain.repository_for(Order)
        agent_repo = current_domain.repository_for(DeliveryAgent)
        order = order_repo.get(command.order_id)
        _ensure_assigned_to(order, str(command.agent_id))

        actor = Actor(id=str(command.agent_id), role=ActorRole.DELIVERY_ASSOCIATE)
        OrderStateMachine().apply(
            order,
            OrderStatus.OUT_FOR_DELIVERY,
            actor,
            note=f"Location updated: {command.latitude:.6f}, {command.longitude:.6f}",
        )
        order.record_delivery_location(command.latitude, command.longitude)

        agent = agent_repo.get(command.agent_id)
        agent.move_to(command.latitude, command.longitude)
        order_repo.add(order)
        agent_repo.add(agent)
