"""DeliveryVerificationService — OTP and QR gating of the delivered transition."""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from marketplace import config
from marketplace.errors import Expired, InvalidCode, TooManyAttempts
from marketplace.notifications import lifecycle
from marketplace.order.order import Order
from marketplace.shared.actors import Actor
from marketplace.shared.processing import process
from marketplace.verification.challenge import (
    IssueDeliveryChallenge,
    VerificationOutcome,
    VerifyDeliveryOtp,
    VerifyDeliveryQr,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Challenge:
    otp: str
    expires_at: datetime
    qr_payload: str


class DeliveryVerificationService:
    def issue_challenge(self, order_id: str, actor: Actor) -> Challenge:
        """Issue a fresh code for the order, replacing any outstanding one, and text it to the customer."""
        result = process(IssueDeliveryChallenge(order_id=order_id, actor_id=actor.id, actor_role=actor.role.value))
        order = self._order(order_id)
        logger.info("Delivery challenge issued", order_id=order_id, expires_at=result["expires_at"].isoformat())
        lifecycle.delivery_challenge(order, result["otp"], result["qr_payload"])
        return Challenge(otp=result["otp"], expires_at=result["expires_at"], qr_payload=result["qr_payload"])

    def verify(self, order_id: str, otp: str, actor: Actor) -> Order:
        result = process(VerifyDeliveryOtp(order_id=order_id, otp=otp, actor_id=actor.id, actor_role=actor.role.value))
        outcome = VerificationOutcome(result["outcome"])

        if outcome == VerificationOutcome.LOCKED:
            raise TooManyAttempts("Too many wrong codes, issue a new delivery code", order_id=order_id)
        if outcome == VerificationOutcome.EXPIRED:
            raise Expired("Delivery code has expired or was never issued", order_id=order_id)
        if outcome == VerificationOutcome.INVALID_CODE:
            attempts = result["attempts"]
            logger.warning("Wrong delivery code submitted", order_id=order_id, attempts=attempts)
            raise InvalidCode(
                "Delivery code does not match",
                order_id=order_id,
                attempts_remaining=max(config.OTP_MAX_ATTEMPTS - attempts, 0),
            )

        return self._order(order_id)

    def verify_qr(self, token: str, actor: Actor) -> Order:
        order_id = process(VerifyDeliveryQr(token=token, actor_id=actor.id, actor_role=actor.role.value))
        return self._order(order_id)

    @staticmethod
    def _order(order_id: str) -> Order:
        return current_domain.repository_for(Order).get(order_id)
