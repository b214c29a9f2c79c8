import math
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Tuple


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class LatLng(_Frozen):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    @field_validator("lat", "lng")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("coordinate must be finite")
        return v


class GeocodeResult(_Frozen):
    coordinates: LatLng
    formatted_address: str
    place_id: Optional[str] = None


class PlaceCategory(str, Enum):
    PARK = "park"
    CAFE = "cafe"
    DOG_PARK = "dog_park"
    OTHER = "other"


class Place(_Frozen):
    place_id: str
    name: str
    location: LatLng
    category: PlaceCategory = PlaceCategory.OTHER
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    rating_count: Optional[int] = None
    distance_from_origin: float = 0.0
    vicinity: str = ""
    types: Tuple[str, ...] = ()
    open_now: Optional[bool] = None


class PoiSearchResult(_Frozen):
    parks: Tuple[Place, ...] = ()
    cafes: Tuple[Place, ...] = ()
    dog_parks: Tuple[Place, ...] = ()
    merged: Tuple[Place, ...] = ()


class RoutePreferences(_Frozen):
    # 거리 범위(1~10km) 검사는 RouteGenerator에서 InvalidInput으로 처리
    distance_km: float = Field(..., description="요청 산책 거리(km)")
    must_include: Tuple[PlaceCategory, ...] = ()
    preferences: Tuple[str, ...] = ()
    circular: bool = True

    @field_validator("must_include")
    @classmethod
    def _dedup_categories(cls, v: Tuple[PlaceCategory, ...]) -> Tuple[PlaceCategory, ...]:
        out: List[PlaceCategory] = []
        for c in v:
            if c not in out:
                out.append(c)
        return tuple(out)


class WaypointRole(str, Enum):
    START = "start"
    POI = "poi"
    END = "end"


class Waypoint(_Frozen):
    location: LatLng
    name: str
    role: WaypointRole = WaypointRole.POI
    category: Optional[PlaceCategory] = None
    place_id: Optional[str] = None


class DirectionStep(_Frozen):
    distance_m: float
    duration_s: float
    instruction: str
    start_location: LatLng
    end_location: LatLng
    polyline: str = ""


class DirectionsResult(_Frozen):
    total_distance_m: float
    total_duration_s: float
    start_address: str = ""
    end_address: str = ""
    overview_polyline: str = ""
    steps: Tuple[DirectionStep, ...] = ()
    waypoints: Tuple[Waypoint, ...] = ()


class SelectorProposal(_Frozen):
    route_name: str
    waypoints: Tuple[Waypoint, ...]
    estimated_distance: str = ""
    highlights: str = ""


class RouteRecommendation(_Frozen):
    route_name: str
    waypoints: Tuple[Waypoint, ...]
    estimated_distance: str
    highlights: str
    directions: Optional[DirectionsResult] = None
    duration_text: Optional[str] = None


class RouteQuery(BaseModel):
    location: str = Field(..., description="출발지 텍스트 (주소, 지명, 우편번호)")
    distance_km: float = 3.0
    must_include: List[PlaceCategory] = []
    preferences: List[str] = []
    circular: bool = True

    def to_preferences(self) -> RoutePreferences:
        return RoutePreferences(
            distance_km=self.distance_km,
            must_include=self.must_include,
            preferences=self.preferences,
            circular=self.circular,
        )


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Optional[dict] = None
