"""
Distance helpers for safe-zone checks.
"""
import math

EARTH_RADIUS_METERS = 6371000


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in metres between two WGS84 points."""
    lat1, lon1, lat2, lon2 = (float(v) for v in (lat1, lon1, lat2, lon2))
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_within_zone(latitude, longitude, zone):
    return haversine_distance(latitude, longitude, zone.latitude, zone.longitude) <= zone.radius_meters


def find_current_zone(latitude, longitude, zones):
    """First zone containing the point, or None."""
    for zone in zones:
        if is_within_zone(latitude, longitude, zone):
            return zone
    return None


def find_closest_zone(latitude, longitude, zones):
    closest = None
    best = None
    for zone in zones:
        distance = haversine_distance(latitude, longitude, zone.latitude, zone.longitude)
        if best is None or distance < best:
            closest, best = zone, distance
    return closest


def format_duration(minutes):
    minutes = int(minutes)
    if minutes < 60:
        return f'{minutes} minutes'
    return f'{minutes // 60}h {minutes % 60}min'
