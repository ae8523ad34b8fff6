"""Geographic point value object and great-circle distance."""

import math

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float

from marketplace.domain import marketplace

EARTH_RADIUS_METERS = 6_371_000.0


@marketplace.value_object
class GeoPoint:
    """Latitude/longitude pair. Both coordinates are required."""

    latitude: Float(min_value=-90.0, max_value=90.0)
    longitude: Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


def haversine_meters(origin: GeoPoint, destination: GeoPoint) -> float:
    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))
