import logging
from typing import List, Sequence
from ..errors import DirectionsFailure, InsufficientWaypoints
from ..schemas import DirectionStep, DirectionsResult, LatLng, Waypoint
from .maps_client import GoogleMapsClient

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    "ZERO_RESULTS": (
        DirectionsFailure.NO_ROUTE_FOUND,
        "No walking route found between these points. Try different locations.",
    ),
    "NOT_FOUND": (
        DirectionsFailure.WAYPOINT_NOT_LOCATED,
        "One or more waypoints could not be located. Please check coordinates.",
    ),
    "REQUEST_DENIED": (
        DirectionsFailure.ACCESS_DENIED,
        "Directions API access denied. Please check API key permissions.",
    ),
    "INVALID_REQUEST": (
        DirectionsFailure.INVALID,
        "Invalid route request. Please check waypoints.",
    ),
}


def _latlng(raw: dict) -> LatLng:
    return LatLng(lat=raw["lat"], lng=raw["lng"])


def aggregate_route(route: dict, waypoints: Sequence[Waypoint]) -> DirectionsResult:
    """route의 모든 leg를 합산. 단계 순서는 leg 순서 그대로 이어붙인다."""
    legs = route.get("legs") or []
    if not legs:
        raise DirectionsFailure(DirectionsFailure.UPSTREAM, "Directions returned a route without legs.")

    total_distance = 0.0
    total_duration = 0.0
    steps: List[DirectionStep] = []
    for leg in legs:
        total_distance += leg["distance"]["value"]
        total_duration += leg["duration"]["value"]
        for step in leg.get("steps") or []:
            steps.append(
                DirectionStep(
                    distance_m=step["distance"]["value"],
                    duration_s=step["duration"]["value"],
                    instruction=step.get("html_instructions", ""),
                    start_location=_latlng(step["start_location"]),
                    end_location=_latlng(step["end_location"]),
                    polyline=(step.get("polyline") or {}).get("points", ""),
                )
            )

    return DirectionsResult(
        total_distance_m=total_distance,
        total_duration_s=total_duration,
        start_address=legs[0].get("start_address", ""),
        end_address=legs[-1].get("end_address", ""),
        overview_polyline=(route.get("overview_polyline") or {}).get("points", ""),
        steps=tuple(steps),
        waypoints=tuple(waypoints),
    )


class RouteCalculator:
    def __init__(self, client: GoogleMapsClient):
        self.client = client

    async def calculate(self, waypoints: Sequence[Waypoint]) -> DirectionsResult:
        if len(waypoints) < 2:
            raise InsufficientWaypoints()

        origin = waypoints[0].location
        destination = waypoints[-1].location
        intermediate = [w.location for w in waypoints[1:-1]]

        data = await self.client.directions(origin, destination, intermediate)
        status = data.get("status")
        if status in _STATUS_ERRORS:
            reason, message = _STATUS_ERRORS[status]
            raise DirectionsFailure(reason, message)
        routes = data.get("routes") or []
        if status != "OK" or not routes:
            raise DirectionsFailure(
                DirectionsFailure.UPSTREAM,
                f"Failed to calculate route: {status}",
                details={"status": status},
            )

        # 첫 번째(최적) 경로 사용
        try:
            result = aggregate_route(routes[0], waypoints)
        except (KeyError, TypeError, ValueError) as e:
            raise DirectionsFailure(
                DirectionsFailure.UPSTREAM, "Directions returned an unreadable route."
            ) from e
        logger.info(
            "walking route: %.0fm, %.0fs, %d legs, %d steps",
            result.total_distance_m,
            result.total_duration_s,
            len(routes[0]["legs"]),
            len(result.steps),
        )
        return result
