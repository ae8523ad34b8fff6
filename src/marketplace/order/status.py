"""Order and delivery-leg vocabularies.

The order status and the delivery sub-status are separate state machines;
the only coupling between them is the explicit promotion rules applied by
dispatch and delivery verification.
"""

from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PACKAGING = "packaging"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    DAMAGED = "damaged"
    FAILED = "failed"


class DeliverySubStatus(Enum):
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    PACKAGING = "packaging"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
