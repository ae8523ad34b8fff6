"""Delivery agent management — registration, verification and availability."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.dispatch.agent import DeliveryAgent
from marketplace.domain import marketplace


@marketplace.command(part_of="DeliveryAgent")
class RegisterAgent:
    name = String(required=True, max_length=150)
    phone = String(required=True, max_length=20)
    email = String(max_length=254)


@marketplace.command(part_of="DeliveryAgent")
class VerifyAgent:
    agent_id = Identifier(required=True)


@marketplace.command(part_of="DeliveryAgent")
class SetAgentAvailability:
    agent_id = Identifier(required=True)
    is_online = Boolean(required=True)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)


@marketplace.command_handler(part_of=DeliveryAgent)
class DeliveryAgentCommandHandler:
    @handle(RegisterAgent)
    def register_agent(self, command):
        agent = DeliveryAgent.register(name=command.name, phone=command.phone, email=command.email)
        current_domain.repository_for(DeliveryAgent).add(agent)
        return str(agent.id)

    @handle(VerifyAgent)
    def verify_agent(self, command):
        repo = current_domain.repository_for(DeliveryAgent)
        agent = repo.get(command.agent_id)
        agent.verify()
        repo.add(agent)

    @handle(SetAgentAvailability)
    def set_availability(self, command):
        repo = current_domain.repository_for(DeliveryAgent)
        agent = repo.get(command.agent_id)
        agent.set_availability(command.is_online, command.latitude, command.longitude)
        repo.add(agent)
