"""Delivery verification commands — issuing and answering the OTP/QR challenge.

A wrong or expired answer is not an exception inside the handler: the
handler records the attempt and returns the outcome, so the bookkeeping
(attempt counter, lockout, cleared challenge) commits. The caller raises the
matching error afterwards. A correct answer completes the delivery in the
same unit of work: order, payment and agent counters move together.
"""

import secrets
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace import config
from marketplace.dispatch.agent import DeliveryAgent
from marketplace.domain import marketplace
from marketplace.errors import Expired, Forbidden, InvalidTransition, TooManyAttempts
from marketplace.order.order import Order
from marketplace.order.state_machine import OrderStateMachine
from marketplace.order.status import DeliverySubStatus, OrderStatus, PaymentStatus
from marketplace.shared.actors import Actor, ActorRole
from marketplace.shared.clock import ensure_aware
from marketplace.verification import otp as otp_codes
from marketplace.verification import qr

logger = structlog.get_logger(__name__)

COD_PAYMENT_NOTE = "Payment received (Cash on Delivery)"
PREPAID_PAYMENT_NOTE = "Payment confirmed upon delivery"


class VerificationOutcome(Enum):
    VERIFIED = "verified"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    LOCKED = "locked"


@marketplace.command(part_of="Order")
class IssueDeliveryChallenge:
    order_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)


@marketplace.command(part_of="Order")
class VerifyDeliveryOtp:
    order_id = Identifier(required=True)
    otp = String(required=True, max_length=12)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)


@marketplace.command(part_of="Order")
class VerifyDeliveryQr:
    token = Text(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)


def _actor(command) -> Actor:
    return Actor(id=command.actor_id, role=ActorRole(command.actor_role))


def _ensure_can_verify(order: Order, actor: Actor) -> None:
    if actor.role == ActorRole.ADMIN:
        return
    if actor.role == ActorRole.DELIVERY_ASSOCIATE and order.is_assigned_to(actor.id):
        return
    raise Forbidden(
        f"Only the assigned delivery agent can verify order {order.order_number}",
        order_id=str(order.id),
    )


def _ensure_out_for_delivery(order: Order) -> None:
    if order.status != OrderStatus.OUT_FOR_DELIVERY.value or not order.agent_id:
        raise InvalidTransition(
            "Only orders out for delivery with an assigned agent can be verified",
            order_id=str(order.id),
            from_status=order.status,
        )


def _complete_delivery(order: Order, actor: Actor, method: str) -> None:
    """Success path: delivered, paid, and credited to the agent."""
    agent_actor = Actor(id=order.agent_id, role=ActorRole.DELIVERY_ASSOCIATE)
    order.clear_challenge()
    order.otp_locked = False
    OrderStateMachine().apply_on_behalf(
        order,
        OrderStatus.DELIVERED,
        agent_actor,
        note=f"Delivery verified by {method}",
    )
    order.change_delivery_sub_status(DeliverySubStatus.DELIVERED)

    if order.payment_status != PaymentStatus.PAID.value:
        order.record_payment(
            PaymentStatus.PAID,
            agent_actor,
            note=COD_PAYMENT_NOTE if order.is_cash_on_delivery else PREPAID_PAYMENT_NOTE,
        )

    agent_repo = current_domain.repository_for(DeliveryAgent)
    agent = agent_repo.get(order.agent_id)
    agent.record_completed_delivery(order.pricing.delivery_charge if order.pricing else 0.0)
    agent_repo.add(agent)
    logger.info("Delivery verified", order_id=str(order.id), agent_id=order.agent_id, method=method, verified_by=actor.id)


@marketplace.command_handler(part_of=Order)
class DeliveryVerificationHandler:
    @handle(IssueDeliveryChallenge)
    def issue_challenge(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _ensure_can_verify(order, _actor(command))
        _ensure_out_for_delivery(order)

        now = datetime.now(UTC)
        code = otp_codes.generate_otp()
        salt = otp_codes.new_salt()
        nonce = secrets.token_urlsafe(16)
        expires_at = now + timedelta(minutes=config.OTP_TTL_MINUTES)

        order.issue_challenge(otp_codes.hash_otp(code, salt), salt, nonce, expires_at)
        repo.add(order)

        token = qr.sign(
            qr.build_payload(
                str(order.id),
                order.agent_id,
                order.delivery_address.phone if order.delivery_address else None,
                nonce,
                now,
            )
        )
        return {"otp": code, "expires_at": expires_at, "qr_payload": token}

    @handle(VerifyDeliveryOtp)
    def verify_otp(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        actor = _actor(command)
        _ensure_can_verify(order, actor)

        if order.otp_locked:
            return {"outcome": VerificationOutcome.LOCKED.value, "attempts": order.otp_attempts}

        if not order.has_outstanding_challenge:
            return {"outcome": VerificationOutcome.EXPIRED.value, "attempts": 0}
        _ensure_out_for_delivery(order)

        if datetime.now(UTC) > ensure_aware(order.otp_expires_at):
            order.clear_challenge()
            repo.add(order)
            return {"outcome": VerificationOutcome.EXPIRED.value, "attempts": 0}

        if not otp_codes.otp_matches(command.otp, order.otp_salt, order.otp_hash):
            order.register_failed_attempt(config.OTP_MAX_ATTEMPTS)
            repo.add(order)
            return {"outcome": VerificationOutcome.INVALID_CODE.value, "attempts": order.otp_attempts}

        _complete_delivery(order, actor, "OTP")
        repo.add(order)
        return {"outcome": VerificationOutcome.VERIFIED.value, "attempts": 0}

    @handle(VerifyDeliveryQr)
    def verify_qr(self, command):
        payload = qr.decode(command.token)
        repo = current_domain.repository_for(Order)
        order = repo.get(payload["order_id"])
        actor = _actor(command)
        _ensure_can_verify(order, actor)

        if payload["agent_id"] != order.agent_id:
            raise Forbidden("Delivery QR code was issued to a different agent", order_id=str(order.id))
        if order.otp_locked:
            raise TooManyAttempts("Delivery challenge is locked, issue a new one", order_id=str(order.id))

        issued_at = ensure_aware(datetime.fromisoformat(payload["issued_at"]))
        if datetime.now(UTC) > issued_at + timedelta(minutes=config.OTP_TTL_MINUTES):
            raise Expired("Delivery QR code has expired", order_id=str(order.id))
        if not order.qr_nonce or payload["nonce"] != order.qr_nonce:
            raise Expired("Delivery QR code has already been used or replaced", order_id=str(order.id))
        _ensure_out_for_delivery(order)

        _complete_delivery(order, actor, "QR")
        repo.add(order)
        return str(order.id)
