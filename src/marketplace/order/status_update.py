"""Order status updates — command and handler.

Ownership is checked against the freshly loaded order inside the unit of
work, then the transition goes through the state machine.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order
from marketplace.order.state_machine import OrderStateMachine, assert_can_act_on
from marketplace.shared.actors import Actor, ActorRole


@marketplace.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)
    note = Text()


@marketplace.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        actor = Actor(id=command.actor_id, role=ActorRole(command.actor_role))

        assert_can_act_on(order, actor)
        previous = order.status
        OrderStateMachine().apply(order, command.status, actor, note=command.note)
        repo.add(order)
        return previous
