"""FastAPI routes for the Marketplace — catalogue setup, orders, dispatch, verification."""

import json

from fastapi import APIRouter, Depends, Header

from marketplace.api.schemas import (
    AddProductRequest,
    AgentResponse,
    AssignAgentRequest,
    AvailabilityRequest,
    ChallengeResponse,
    CheckoutRequest,
    ContactRequest,
    CreateCategoryRequest,
    CreateCouponRequest,
    DeliveryStatusRequest,
    IdResponse,
    InvoiceResponse,
    LocationRequest,
    NearbyAgentResponse,
    NearbyOrderResponse,
    OrderResponse,
    PaymentWebhookRequest,
    RegisterAgentRequest,
    UpdateStatusRequest,
    VerifyOtpRequest,
    VerifyQrRequest,
)
from marketplace.catalogue.management import AddProduct, CreateCategory, CreateCoupon
from marketplace.dispatch.service import DispatchService
from marketplace.errors import Forbidden
from marketplace.invoicing.trigger import InvoiceTrigger
from marketplace.notifications.directory import get_directory
from marketplace.order.factory import OrderFactory
from marketplace.order.service import OrderLifecycleService
from marketplace.shared.actors import Actor, ActorRole
from marketplace.shared.geo import GeoPoint
from marketplace.shared.processing import process
from marketplace.verification.service import DeliveryVerificationService


# ---------------------------------------------------------------------------
# Identity and serialization helpers
# ---------------------------------------------------------------------------
def current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """The caller's role-tagged identity, as asserted by the gateway in front of this service."""
    return Actor.parse(x_actor_id, x_actor_role)


def _require(actor: Actor, *roles: ActorRole) -> None:
    if actor.role not in roles:
        raise Forbidden(
            f"{actor.role.value} is not allowed to perform this action",
            allowed_roles=[role.value for role in roles],
        )


def order_response(order) -> OrderResponse:
    delivery = order.delivery
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        supplier_id=str(order.supplier_id),
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        transaction_id=order.transaction_id,
        coupon_code=order.coupon_code,
        is_express_delivery=bool(order.is_express_delivery),
        pricing=order.pricing.to_dict(),
        items=[
            {
                "product_id": str(item.product_id),
                "title": item.title,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "discounted_price": item.discounted_price,
                "variation_name": item.variation_name,
                "variation_value": item.variation_value,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        status_history=[
            {
                "status": entry.status,
                "actor_id": entry.actor_id,
                "actor_role": entry.actor_role,
                "note": entry.note,
                "occurred_at": entry.occurred_at,
            }
            for entry in order.history
        ],
        delivery=delivery.to_dict() if delivery else None,
        invoice_ref=order.invoice_ref,
        return_reason=order.return_reason,
        delivered_at=order.delivered_at,
        estimated_delivery_date=order.estimated_delivery_date,
    )


def agent_response(agent) -> AgentResponse:
    return AgentResponse(
        agent_id=str(agent.id),
        name=agent.name,
        phone=agent.phone,
        is_online=bool(agent.is_online),
        is_verified=bool(agent.is_verified),
        latitude=agent.location.latitude if agent.location else None,
        longitude=agent.location.longitude if agent.location else None,
        completed_deliveries=agent.completed_deliveries or 0,
        failed_deliveries=agent.failed_deliveries or 0,
        total_earnings=agent.total_earnings or 0.0,
    )


# ---------------------------------------------------------------------------
# Catalogue Router
# ---------------------------------------------------------------------------
catalogue_router = APIRouter(tags=["catalogue"])


@catalogue_router.post("/categories", status_code=201, response_model=IdResponse)
async def create_category(body: CreateCategoryRequest, actor: Actor = Depends(current_actor)) -> IdResponse:
    _require(actor, ActorRole.ADMIN)
    command = CreateCategory(name=body.name, parent_id=body.parent_id, handling_fee=body.handling_fee)
    return IdResponse(id=process(command))


@catalogue_router.post("/products", status_code=201, response_model=IdResponse)
async def add_product(body: AddProductRequest, actor: Actor = Depends(current_actor)) -> IdResponse:
    _require(actor, ActorRole.SUPPLIER)
    command = AddProduct(
        supplier_id=actor.id,
        title=body.title,
        category_id=body.category_id,
        base_price=body.base_price,
        discounted_price=body.discounted_price,
        gst_rate=body.gst_rate,
        stock_quantity=body.stock_quantity,
        variations=json.dumps([variation.model_dump() for variation in body.variations]),
    )
    return IdResponse(id=process(command))


@catalogue_router.post("/coupons", status_code=201, response_model=IdResponse)
async def create_coupon(body: CreateCouponRequest, actor: Actor = Depends(current_actor)) -> IdResponse:
    _require(actor, ActorRole.ADMIN)
    command = CreateCoupon(**body.model_dump())
    return IdResponse(id=process(command))


@catalogue_router.put("/contacts/{party_id}", response_model=IdResponse)
async def register_contact(party_id: str, body: ContactRequest, actor: Actor = Depends(current_actor)) -> IdResponse:
    if actor.role != ActorRole.ADMIN and actor.id != party_id:
        raise Forbidden("Contacts can only be registered by their owner", party_id=party_id)
    get_directory().register(party_id, name=body.name, email=body.email, phone=body.phone)
    return IdResponse(id=party_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=list[OrderResponse])
async def place_order(body: CheckoutRequest, actor: Actor = Depends(current_actor)) -> list[OrderResponse]:
    _require(actor, ActorRole.CUSTOMER)
    orders = OrderFactory().place(
        customer_id=actor.id,
        lines=[line.model_dump() for line in body.lines],
        delivery_address=body.delivery_address.model_dump(),
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
        is_express_delivery=body.is_express_delivery,
        notes=body.notes,
        payment_status=body.payment_status,
        transaction_id=body.transaction_id,
        customer_email=body.customer_email,
    )
    return [order_response(order) for order in orders]


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(actor: Actor = Depends(current_actor)) -> list[OrderResponse]:
    return [order_response(order) for order in OrderLifecycleService().orders_for(actor)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(OrderLifecycleService().view(order_id, actor))


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str, body: UpdateStatusRequest, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    order = OrderLifecycleService().update_status(order_id, body.status, actor, note=body.note)
    return order_response(order)


@order_router.post("/{order_id}/invoice", response_model=InvoiceResponse)
async def trigger_invoice(order_id: str, actor: Actor = Depends(current_actor)) -> InvoiceResponse:
    _require(actor, ActorRole.ADMIN)
    OrderLifecycleService.get(order_id)
    return InvoiceResponse(order_id=order_id, invoice_ref=InvoiceTrigger().fire(order_id))


# ---------------------------------------------------------------------------
# Dispatch (order-scoped)
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/assignment", response_model=OrderResponse)
async def assign_agent(order_id: str, body: AssignAgentRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(DispatchService().assign(order_id, body.agent_id, actor))


@order_router.post("/{order_id}/claim", response_model=OrderResponse)
async def claim_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    _require(actor, ActorRole.DELIVERY_ASSOCIATE)
    return order_response(DispatchService().self_assign(order_id, actor.id))


@order_router.patch("/{order_id}/delivery", response_model=OrderResponse)
async def update_delivery_status(
    order_id: str, body: DeliveryStatusRequest, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    _require(actor, ActorRole.DELIVERY_ASSOCIATE)
    return order_response(DispatchService().update_delivery_status(order_id, actor.id, body.status, note=body.note))


@order_router.post("/{order_id}/location", response_model=OrderResponse)
async def record_location(order_id: str, body: LocationRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    _require(actor, ActorRole.DELIVERY_ASSOCIATE)
    return order_response(DispatchService().record_location(order_id, actor.id, body.latitude, body.longitude))


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/delivery-challenge", status_code=201, response_model=ChallengeResponse)
async def issue_delivery_challenge(order_id: str, actor: Actor = Depends(current_actor)) -> ChallengeResponse:
    challenge = DeliveryVerificationService().issue_challenge(order_id, actor)
    # The code itself is only ever sent to the customer
    return ChallengeResponse(order_id=order_id, expires_at=challenge.expires_at)


@order_router.post("/{order_id}/delivery-verification", response_model=OrderResponse)
async def verify_delivery(order_id: str, body: VerifyOtpRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(DeliveryVerificationService().verify(order_id, body.otp, actor))


verification_router = APIRouter(prefix="/delivery-verification", tags=["verification"])


@verification_router.post("/qr", response_model=OrderResponse)
async def verify_delivery_qr(body: VerifyQrRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(DeliveryVerificationService().verify_qr(body.token, actor))


# ---------------------------------------------------------------------------
# Agent & proximity Router
# ---------------------------------------------------------------------------
dispatch_router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@dispatch_router.post("/agents", status_code=201, response_model=AgentResponse)
async def register_agent(body: RegisterAgentRequest, actor: Actor = Depends(current_actor)) -> AgentResponse:
    _require(actor, ActorRole.ADMIN)
    return agent_response(DispatchService().register_agent(body.name, body.phone, body.email))


@dispatch_router.get("/agents/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, actor: Actor = Depends(current_actor)) -> AgentResponse:
    if actor.role != ActorRole.ADMIN and actor.id != agent_id:
        raise Forbidden("Agents can only view their own profile", agent_id=agent_id)
    return agent_response(DispatchService.get_agent(agent_id))


@dispatch_router.post("/agents/{agent_id}/verify", response_model=AgentResponse)
async def verify_agent(agent_id: str, actor: Actor = Depends(current_actor)) -> AgentResponse:
    _require(actor, ActorRole.ADMIN)
    return agent_response(DispatchService().verify_agent(agent_id))


@dispatch_router.put("/agents/{agent_id}/availability", response_model=AgentResponse)
async def set_availability(
    agent_id: str, body: AvailabilityRequest, actor: Actor = Depends(current_actor)
) -> AgentResponse:
    if actor.role != ActorRole.DELIVERY_ASSOCIATE or actor.id != agent_id:
        raise Forbidden("Agents can only change their own availability", agent_id=agent_id)
    agent = DispatchService().set_availability(agent_id, body.is_online, body.latitude, body.longitude)
    return agent_response(agent)


@dispatch_router.get("/nearby-agents", response_model=list[NearbyAgentResponse])
async def nearby_agents(
    latitude: float,
    longitude: float,
    max_distance: float | None = None,
    actor: Actor = Depends(current_actor),
) -> list[NearbyAgentResponse]:
    _require(actor, ActorRole.ADMIN, ActorRole.SUPPLIER)
    matches = DispatchService.nearby_agents(GeoPoint(latitude=latitude, longitude=longitude), max_distance)
    return [
        NearbyAgentResponse(
            agent=agent_response(match.item),
            distance_meters=match.route.meters,
            duration_seconds=match.route.seconds,
        )
        for match in matches
    ]


@dispatch_router.get("/available-orders", response_model=list[OrderResponse])
async def available_orders(actor: Actor = Depends(current_actor)) -> list[OrderResponse]:
    _require(actor, ActorRole.ADMIN, ActorRole.DELIVERY_ASSOCIATE)
    return [order_response(order) for order in DispatchService.available_orders()]


@dispatch_router.get("/nearby-orders", response_model=list[NearbyOrderResponse])
async def nearby_orders(
    latitude: float,
    longitude: float,
    max_distance: float | None = None,
    actor: Actor = Depends(current_actor),
) -> list[NearbyOrderResponse]:
    _require(actor, ActorRole.ADMIN, ActorRole.DELIVERY_ASSOCIATE)
    matches = DispatchService.nearby_orders(GeoPoint(latitude=latitude, longitude=longitude), max_distance)
    return [
        NearbyOrderResponse(
            order_id=str(match.item.id),
            order_number=match.item.order_number,
            status=match.item.status,
            distance_meters=match.route.meters,
            duration_seconds=match.route.seconds,
        )
        for match in matches
    ]


# ---------------------------------------------------------------------------
# Payment processor webhook
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=OrderResponse)
async def payment_webhook(body: PaymentWebhookRequest) -> OrderResponse:
    order = OrderLifecycleService().record_payment(body.order_id, body.payment_status, body.transaction_id)
    return order_response(order)
