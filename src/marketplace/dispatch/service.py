"""DispatchService — matches orders to delivery agents and tracks the delivery leg."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.dispatch import proximity
from marketplace.dispatch.agent import DeliveryAgent
from marketplace.dispatch.agents import RegisterAgent, SetAgentAvailability, VerifyAgent
from marketplace.dispatch.assignment import (
    AssignAgent,
    RecordDeliveryLocation,
    SelfAssignOrder,
    UpdateDeliveryStatus,
)
from marketplace.errors import AlreadyAssigned, NotFound
from marketplace.notifications.directory import get_directory
from marketplace.order.order import Order
from marketplace.shared.actors import Actor
from marketplace.shared.processing import process

logger = structlog.get_logger(__name__)


class DispatchService:
    # -------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------
    def register_agent(self, name: str, phone: str, email: str | None = None) -> DeliveryAgent:
        agent_id = process(RegisterAgent(name=name, phone=phone, email=email))
        get_directory().register(agent_id, name=name, email=email, phone=phone)
        logger.info("Delivery agent registered", agent_id=agent_id)
        return self.get_agent(agent_id)

    def verify_agent(self, agent_id: str) -> DeliveryAgent:
        process(VerifyAgent(agent_id=agent_id))
        return self.get_agent(agent_id)

    def set_availability(
        self,
        agent_id: str,
        is_online: bool,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> DeliveryAgent:
        process(SetAgentAvailability(agent_id=agent_id, is_online=is_online, latitude=latitude, longitude=longitude))
        return self.get_agent(agent_id)

    @staticmethod
    def get_agent(agent_id: str) -> DeliveryAgent:
        try:
            return current_domain.repository_for(DeliveryAgent).get(agent_id)
        except ObjectNotFoundError:
            raise NotFound(f"Delivery agent {agent_id} does not exist", agent_id=str(agent_id)) from None

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def assign(self, order_id: str, agent_id: str, actor: Actor) -> Order:
        process(
            AssignAgent(
                order_id=order_id,
                agent_id=agent_id,
                actor_id=actor.id,
                actor_role=actor.role.value,
            )
        )
        order = self._order(order_id)
        logger.info("Delivery agent assigned", order_id=order_id, agent_id=agent_id, actor_id=actor.id)
        return order

    def self_assign(self, order_id: str, agent_id: str) -> Order:
        """Claim an unassigned order for ``agent_id``. Exactly one concurrent claimer wins."""
        process(
            SelfAssignOrder(order_id=order_id, agent_id=agent_id),
            conflict=AlreadyAssigned,
            conflict_message=f"Order {order_id} was claimed by another agent",
        )
        order = self._order(order_id)
        logger.info("Order claimed by delivery agent", order_id=order_id, agent_id=agent_id)
        return order

    def update_delivery_status(self, order_id: str, agent_id: str, status: str, note: str | None = None) -> Order:
        promoted = process(UpdateDeliveryStatus(order_id=order_id, agent_id=agent_id, status=status, note=note))
        order = self._order(order_id)
        logger.info(
            "Delivery status updated",
            order_id=order_id,
            agent_id=agent_id,
            sub_status=order.delivery.sub_status,
            promoted_to=promoted,
        )
        return order

    def record_location(self, order_id: str, agent_id: str, latitude: float, longitude: float) -> Order:
        process(
            RecordDeliveryLocation(
                order_id=order_id,
                agent_id=agent_id,
                latitude=latitude,
                longitude=longitude,
            )
        )
        return self._order(order_id)

    # -------------------------------------------------------------------
    # Proximity
    # -------------------------------------------------------------------
    @staticmethod
    def nearby_agents(origin, max_distance: float | None = None) -> list[proximity.Match]:
        return proximity.nearby_agents(origin, max_distance)

    @staticmethod
    def nearby_orders(origin, max_distance: float | None = None) -> list[proximity.Match]:
        return proximity.nearby_orders(origin, max_distance)

    @staticmethod
    def available_orders() -> list[Order]:
        return proximity.available_orders()

    @staticmethod
    def _order(order_id: str) -> Order:
        return current_domain.repository_for(Order).get(order_id)
