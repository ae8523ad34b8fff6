"""Pydantic request/response schemas for the Marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class DeliveryAddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"
    phone: str
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class VariationSelector(BaseModel):
    name: str
    value: str


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    variation: VariationSelector | None = None


class VariationSchema(BaseModel):
    name: str
    value: str
    additional_price: float = Field(default=0.0, ge=0)
    stock_quantity: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class CreateCategoryRequest(BaseModel):
    name: str
    parent_id: str | None = None
    handling_fee: float = Field(default=0.0, ge=0)


class AddProductRequest(BaseModel):
    title: str
    category_id: str | None = None
    base_price: float = Field(gt=0)
    discounted_price: float | None = Field(default=None, ge=0)
    gst_rate: float = Field(default=0.0, ge=0, le=100)
    stock_quantity: int = Field(default=0, ge=0)
    variations: list[VariationSchema] = Field(default_factory=list)


class CreateCouponRequest(BaseModel):
    code: str
    discount_type: str
    value: float = Field(gt=0)
    min_purchase: float = Field(default=0.0, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=1)


class IdResponse(BaseModel):
    id: str


class ContactRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    lines: list[CartLine]
    delivery_address: DeliveryAddressSchema
    payment_method: str = "cash_on_delivery"
    payment_status: str = "pending"
    transaction_id: str | None = None
    coupon_code: str | None = None
    is_express_delivery: bool = False
    customer_email: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "lines": [{"product_id": "prod-001", "quantity": 2}],
                    "delivery_address": {
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "postal_code": "560001",
                        "country": "India",
                        "phone": "+919800000001",
                        "latitude": 12.9756,
                        "longitude": 77.6050,
                    },
                    "payment_method": "cash_on_delivery",
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: str
    note: str | None = None


class PricingSchema(BaseModel):
    subtotal: float
    discount_amount: float
    gst: float
    delivery_charge: float
    platform_fee: float
    handling_fee: float
    total_amount: float
    currency: str


class OrderItemResponse(BaseModel):
    product_id: str
    title: str
    quantity: int
    unit_price: float
    discounted_price: float
    variation_name: str | None = None
    variation_value: str | None = None
    line_total: float


class HistoryEntryResponse(BaseModel):
    status: str
    actor_id: str
    actor_role: str
    note: str | None = None
    occurred_at: datetime


class DeliveryResponse(BaseModel):
    agent_id: str
    assigned_at: datetime
    sub_status: str
    current_latitude: float | None = None
    current_longitude: float | None = None
    location_updated_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    supplier_id: str
    status: str
    payment_method: str
    payment_status: str
    transaction_id: str | None = None
    coupon_code: str | None = None
    is_express_delivery: bool
    pricing: PricingSchema
    items: list[OrderItemResponse]
    status_history: list[HistoryEntryResponse]
    delivery: DeliveryResponse | None = None
    invoice_ref: str | None = None
    return_reason: str | None = None
    delivered_at: datetime | None = None
    estimated_delivery_date: datetime | None = None


class InvoiceResponse(BaseModel):
    order_id: str
    invoice_ref: str | None = None


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
class AssignAgentRequest(BaseModel):
    agent_id: str


class DeliveryStatusRequest(BaseModel):
    status: str
    note: str | None = None


class LocationRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class RegisterAgentRequest(BaseModel):
    name: str
    phone: str
    email: str | None = None


class AvailabilityRequest(BaseModel):
    is_online: bool
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class AgentResponse(BaseModel):
    agent_id: str
    name: str
    phone: str
    is_online: bool
    is_verified: bool
    latitude: float | None = None
    longitude: float | None = None
    completed_deliveries: int
    failed_deliveries: int
    total_earnings: float


class NearbyAgentResponse(BaseModel):
    agent: AgentResponse
    distance_meters: float
    duration_seconds: float


class NearbyOrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    distance_meters: float
    duration_seconds: float


# ---------------------------------------------------------------------------
# Verification & payments
# ---------------------------------------------------------------------------
class ChallengeResponse(BaseModel):
    order_id: str
    expires_at: datetime


class VerifyOtpRequest(BaseModel):
    otp: str = Field(min_length=1, max_length=12)


class VerifyQrRequest(BaseModel):
    token: str


class PaymentWebhookRequest(BaseModel):
    order_id: str
    payment_status: str
    transaction_id: str | None = None
