import math

from app.schemas import LatLng

EARTH_RADIUS_M = 6371e3


def haversine_m(a: LatLng, b: LatLng) -> float:
    """두 좌표 사이의 대원 거리(미터)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def format_distance(meters: float) -> str:
    # 1500 -> "1.5km", 800 -> "800m"
    if meters >= 1000:
        return f"{meters / 1000:.1f}km"
    return f"{round(meters)}m"


def format_duration(seconds: float) -> str:
    # 3600 -> "1h 0m", 1800 -> "30m"
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
