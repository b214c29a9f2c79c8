from typing import Any, Optional


class RouteGenerationError(Exception):
    """경로 생성 파이프라인의 공통 예외. message는 사용자에게 그대로 노출 가능한 문장."""

    status_code = 500
    error_code = "ROUTE_GENERATION_FAILED"
    default_message = "Failed to generate a route. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.message = message or self.default_message
        self.reason = reason
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        code = self.error_code if not self.reason else f"{self.error_code}_{self.reason}"
        return {"error_code": code, "message": self.message, "details": self.details}


class InvalidInput(RouteGenerationError):
    status_code = 400
    error_code = "INVALID_INPUT"
    default_message = "Invalid request."


class InsufficientWaypoints(InvalidInput):
    error_code = "INSUFFICIENT_WAYPOINTS"
    default_message = "At least 2 waypoints required (start and end)."


class Unauthorized(RouteGenerationError):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "You must be logged in to generate routes."


class FeatureDisabled(RouteGenerationError):
    status_code = 503
    error_code = "FEATURE_DISABLED"
    default_message = "AI route generation is currently unavailable. Please try again later."


class Transient(RouteGenerationError):
    status_code = 503
    error_code = "TRANSIENT"
    default_message = "A network error occurred. Please try again."


class GeocodeFailure(RouteGenerationError):
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    UPSTREAM = "UPSTREAM"

    status_code = 502
    error_code = "GEOCODE_FAILED"
    default_message = "Failed to geocode location. Please try again."

    def __init__(self, reason: str, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message=message, reason=reason, details=details)
        if reason == self.NOT_FOUND:
            self.status_code = 404


class PlaceSearchFailure(RouteGenerationError):
    ACCESS_DENIED = "ACCESS_DENIED"
    INVALID = "INVALID"
    UPSTREAM = "UPSTREAM"

    status_code = 502
    error_code = "PLACE_SEARCH_FAILED"
    default_message = "Failed to search for nearby places. Please try again."

    def __init__(self, reason: str, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message=message, reason=reason, details=details)


class MalformedSelectorOutput(RouteGenerationError):
    status_code = 502
    error_code = "MALFORMED_SELECTOR_OUTPUT"
    default_message = "The route planner returned an invalid route. Please try again."


class DirectionsFailure(RouteGenerationError):
    NO_ROUTE_FOUND = "NO_ROUTE_FOUND"
    WAYPOINT_NOT_LOCATED = "WAYPOINT_NOT_LOCATED"
    ACCESS_DENIED = "ACCESS_DENIED"
    INVALID = "INVALID"
    UPSTREAM = "UPSTREAM"

    status_code = 502
    error_code = "DIRECTIONS_FAILED"
    default_message = "Failed to calculate walking route. Please try again."

    def __init__(self, reason: str, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message=message, reason=reason, details=details)
        if reason in (self.NO_ROUTE_FOUND, self.WAYPOINT_NOT_LOCATED):
            self.status_code = 422
