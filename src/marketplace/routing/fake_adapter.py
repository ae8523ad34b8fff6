"""Configurable fake router for testing proximity queries."""

from marketplace.routing.haversine_adapter import HaversineRouter
from marketplace.routing.port import Route, RoutingError


class FakeRouter(HaversineRouter):
    """Haversine distances, with per-destination overrides and injectable failures."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []
        self.failing: set[tuple] = set()
        self.overrides: dict[tuple, Route] = {}

    @staticmethod
    def _key(point) -> tuple:
        return (round(point.latitude, 6), round(point.longitude, 6))

    def fail_for(self, destination) -> None:
        self.failing.add(self._key(destination))

    def override(self, destination, meters: float, seconds: float | None = None) -> None:
        self.overrides[self._key(destination)] = Route(meters=meters, seconds=seconds if seconds is not None else meters / self.speed_mps)

    def distance(self, origin, destination) -> Route:
        key = self._key(destination)
        self.calls.append((self._key(origin), key))
        if key in self.failing:
            raise RoutingError(f"No route to {key}")
        if key in self.overrides:
            return self.overrides[key]
        return super().distance(origin, destination)

    def reset(self) -> None:
        self.calls.clear()
        self.failing.clear()
        self.overrides.clear()
