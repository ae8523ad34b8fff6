"""Queries over the dispatch pool — read-only.

Distances for the proximity queries come from the routing port. A candidate the router cannot reach
is left out of the result rather than failing the query.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from marketplace import config
from marketplace.dispatch.agent import DeliveryAgent
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus
from marketplace.routing import get_router
from marketplace.routing.port import Route

logger = structlog.get_logger(__name__)

_UNASSIGNED_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PROCESSING.value]


@dataclass(frozen=True)
class Match:
    item: object
    route: Route

    @property
    def meters(self) -> float:
        return self.route.meters


def _within(origin, candidates, location_of, max_distance: float, limit: int) -> list[Match]:
    router = get_router()
    matches = []
    for candidate in candidates:
        try:
            route = router.distance(origin, location_of(candidate))
        except Exception as exc:
            logger.warning(
                "Routing failed, candidate skipped",
                candidate_id=str(candidate.id),
                error=str(exc),
            )
            continue
        if route.meters <= max_distance:
            matches.append(Match(item=candidate, route=route))

    matches.sort(key=lambda match: match.meters)
    return matches[:limit]


def nearby_agents(origin, max_distance: float | None = None, limit: int | None = None) -> list[Match]:
    """Online, verified agents within ``max_distance`` metres, nearest first."""
    agents = [
        agent
        for agent in current_domain.repository_for(DeliveryAgent)._dao.query.limit(None).all().items
        if agent.is_dispatchable
    ]
    return _within(
        origin,
        agents,
        lambda agent: agent.location,
        max_distance if max_distance is not None else config.PROXIMITY_DEFAULT_RADIUS_METERS,
        limit or config.PROXIMITY_PAGE_SIZE,
    )


def available_orders() -> list[Order]:
    """Pending or processing orders nobody has claimed yet, oldest first. No location filter."""
    return [
        order
        for order in current_domain.repository_for(Order)
        ._dao.query.filter(status__in=_UNASSIGNED_STATUSES)
        .order_by("created_at")
        .limit(None)
        .all()
        .items
        if not order.agent_id
    ]


def nearby_orders(origin, max_distance: float | None = None, limit: int | None = None) -> list[Match]:
    """Unassigned pending/processing orders whose delivery address is within ``max_distance`` metres."""
    orders = [
        order
        for order in available_orders()
        if order.delivery_address and order.delivery_address.latitude is not None
    ]
    return _within(
        origin,
        orders,
        lambda order: order.delivery_address,
        max_distance if max_distance is not None else config.PROXIMITY_DEFAULT_RADIUS_METERS,
        limit or config.PROXIMITY_PAGE_SIZE,
    )
