"""Signed QR payloads for delivery verification.

A token is ``base64url(json(payload)) + "." + base64url(hmac_sha256(body))``.
The payload binds the order, its agent, a hash of the customer's phone and
the challenge nonce; the nonce on the order is what makes a token single-use.
"""

import base64
import binascii
import hashlib
import hmac
import json
from datetime import datetime

from marketplace import config
from marketplace.errors import InvalidCode


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _signature(body: str, secret: str) -> str:
    return _b64encode(hmac.new(secret.encode(), body.encode("ascii"), hashlib.sha256).digest())


def phone_hash(phone: str | None) -> str:
    return hashlib.sha256((phone or "").encode()).hexdigest()


def build_payload(order_id: str, agent_id: str, customer_phone: str | None, nonce: str, issued_at: datetime) -> dict:
    return {
        "order_id": order_id,
        "agent_id": agent_id,
        "customer_phone_hash": phone_hash(customer_phone),
        "issued_at": issued_at.isoformat(),
        "nonce": nonce,
    }


def sign(payload: dict, secret: str = config.DELIVERY_QR_SECRET) -> str:
    body = _b64encode(json.dumps(payload, sort_keys=True, separators=(",", ":")).encode())
    return f"{body}.{_signature(body, secret)}"


def decode(token: str, secret: str = config.DELIVERY_QR_SECRET) -> dict:
    """Verify the signature and return the payload; raises ``InvalidCode`` on any tampering."""
    body, _, signature = (token or "").strip().partition(".")
    if not body or not signature:
        raise InvalidCode("Malformed delivery QR code")
    if not hmac.compare_digest(_signature(body, secret), signature):
        raise InvalidCode("Delivery QR code signature does not match")
    try:
        payload = json.loads(_b64decode(body))
    except (binascii.Error, ValueError):
        raise InvalidCode("Malformed delivery QR code") from None

    required = {"order_id", "agent_id", "customer_phone_hash", "issued_at", "nonce"}
    if not isinstance(payload, dict) or not required <= payload.keys():
        raise InvalidCode("Delivery QR code is missing fields")
    return payload
