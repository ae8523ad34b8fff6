"""Routing port (abstract interface).

Proximity queries ask a router for the travel distance between two points.
Routers may fail (provider outage, unroutable points); callers treat a
failure as "no match" for that candidate.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Route:
    meters: float
    seconds: float


class RoutingError(Exception):
    """The router could not produce a distance for a pair of points."""


class Router(ABC):
    @abstractmethod
    def distance(self, origin, destination) -> Route:
        """Travel distance from ``origin`` to ``destination`` (objects with latitude/longitude)."""
        ...
