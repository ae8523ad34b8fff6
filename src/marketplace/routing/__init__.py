"""Router factory.

ROUTING_ADAPTER selects the implementation: "haversine" (default) for
straight-line distances, "fake" for tests that inject failures.
"""

import os

from marketplace.routing.port import Router

_current_router: Router | None = None


def get_router() -> Router:
    global _current_router
    if _current_router is None:
        adapter = os.environ.get("ROUTING_ADAPTER", "haversine")
        if adapter == "haversine":
            from marketplace.routing.haversine_adapter import HaversineRouter

            _current_router = HaversineRouter()
        elif adapter == "fake":
            from marketplace.routing.fake_adapter import FakeRouter

            _current_router = FakeRouter()
        else:
            raise ValueError(f"Unknown routing adapter: {adapter}")
    return _current_router


def set_router(router: Router) -> None:
    """Override the active router (useful for tests)."""
    global _current_router
    _current_router = router


def reset_router() -> None:
    global _current_router
    _current_router = None
