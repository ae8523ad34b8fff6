"""Great-circle router — straight-line distance with a nominal travel speed."""

from marketplace.routing.port import Route, Router
from marketplace.shared.geo import haversine_meters

# Average urban two-wheeler speed, metres per second (~25 km/h)
DEFAULT_SPEED_MPS = 7.0


class HaversineRouter(Router):
    def __init__(self, speed_mps: float = DEFAULT_SPEED_MPS):
        self.speed_mps = speed_mps

    def distance(self, origin, destination) -> Route:
        meters = haversine_meters(origin, destination)
        return Route(meters=meters, seconds=meters / self.speed_mps)
