"""
Great-circle distance helpers
"""
import math

# Mean Earth radius in statute miles
EARTH_RADIUS_MILES = 3956.0


def haversine_miles(lat1, lon1, lat2, lon2) -> float:
    """Great-circle distance in miles between two decimal-degree coordinates.

    South latitudes and west longitudes are negative. Values are coerced with
    float(), so malformed input raises ValueError/TypeError to the caller.
    """
    lat1, lon1, lat2, lon2 = float(lat1), float(lon1), float(lat2), float(lon2)

    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_MILES * c
