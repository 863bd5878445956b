"""
Geo helpers - great-circle distance for geofencing
"""
import math
from typing import Optional

EARTH_RADIUS_M = 6371000  # Mean Earth radius in meters


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two coordinates using Haversine formula

    Returns:
        float: Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def is_unknown_location(lat: Optional[float], lon: Optional[float]) -> bool:
    """(0, 0) is the stored placeholder for "no location", not a real point"""
    if lat is None or lon is None:
        return True
    return lat == 0 and lon == 0
