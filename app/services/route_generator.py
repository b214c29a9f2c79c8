import asyncio
import logging
import time
from typing import Optional
from pydantic import BaseModel, ConfigDict
from ..config import Settings, settings
from ..errors import (
    FeatureDisabled,
    InvalidInput,
    RouteGenerationError,
    Transient,
    Unauthorized,
)
from ..schemas import (
    DirectionsResult,
    RoutePreferences,
    RouteRecommendation,
    SelectorProposal,
)
from ..utils.geo import format_distance, format_duration
from .directions import RouteCalculator
from .geocoder import Geocoder
from .places import MAX_RADIUS_M, PlaceAggregator
from .waypoint_selector import WaypointSelector, missing_categories

logger = logging.getLogger(__name__)

MIN_DISTANCE_KM = 1
MAX_DISTANCE_KM = 10
MIN_LOCATION_LEN = 2


class RouteGeneratorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    ai_enabled: bool = False
    pipeline_timeout_s: float = 45.0
    # 요청 거리 1km 당 POI 검색 반경(m)
    radius_per_km_m: int = 1000
    must_include_retries: int = 1

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "RouteGeneratorConfig":
        return cls(ai_enabled=s.ai_routes_enabled, pipeline_timeout_s=s.pipeline_timeout_s)


class RouteGenerator:
    """위치 텍스트 + 선호 조건 -> 검증된 산책 경로.

    geocode -> POI 검색 -> 웨이포인트 선택 -> 도보 경로 계산 순서로 진행하고
    어느 단계든 실패하면 바로 중단한다. 부분 결과는 만들지 않는다.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        places: PlaceAggregator,
        selector: WaypointSelector,
        calculator: RouteCalculator,
        config: Optional[RouteGeneratorConfig] = None,
    ):
        self.geocoder = geocoder
        self.places = places
        self.selector = selector
        self.calculator = calculator
        self.config = config or RouteGeneratorConfig.from_settings()

    def validate(
        self, location_text: Optional[str], preferences: RoutePreferences, identity: Optional[str]
    ) -> str:
        # 외부 호출 전에 끝내야 하는 검사들
        if not self.config.ai_enabled:
            raise FeatureDisabled()
        if not identity or not str(identity).strip():
            raise Unauthorized()
        location = (location_text or "").strip()
        if not location:
            raise InvalidInput("Please enter a location.")
        if len(location) < MIN_LOCATION_LEN:
            raise InvalidInput("Please enter a valid location.")
        if not MIN_DISTANCE_KM <= preferences.distance_km <= MAX_DISTANCE_KM:
            raise InvalidInput(
                f"Distance must be between {MIN_DISTANCE_KM} and {MAX_DISTANCE_KM} km."
            )
        return location

    def search_radius(self, distance_km: float) -> int:
        return min(int(round(distance_km * self.config.radius_per_km_m)), MAX_RADIUS_M)

    async def generate_route(
        self,
        location_text: Optional[str],
        preferences: RoutePreferences,
        identity: Optional[str],
    ) -> RouteRecommendation:
        location = self.validate(location_text, preferences, identity)
        try:
            return await asyncio.wait_for(
                self._run(location, preferences), timeout=self.config.pipeline_timeout_s
            )
        except asyncio.TimeoutError as e:
            logger.warning("route generation for %r timed out", location)
            raise Transient("Route generation timed out. Please try again.") from e

    async def _run(self, location: str, preferences: RoutePreferences) -> RouteRecommendation:
        t0 = time.perf_counter()

        geo = await self.geocoder.resolve(location)

        radius = self.search_radius(preferences.distance_km)
        pois = await self.places.find_pois(geo.coordinates, radius)

        proposal = await self._select(pois.merged, preferences, geo)

        directions = await self.calculator.calculate(proposal.waypoints)

        rec = self._assemble(proposal, directions)
        logger.info(
            "generated %r for %r in %.2fs", rec.route_name, location, time.perf_counter() - t0
        )
        return rec

    async def _select(self, candidates, preferences: RoutePreferences, geo) -> SelectorProposal:
        proposal = await self.selector.select(
            candidates, preferences, geo.coordinates, geo.formatted_address
        )

        # 주변에 실제로 있는 카테고리만 누락으로 판단
        available = {p.category for p in candidates}
        wanted = [c for c in preferences.must_include if c in available]
        missing = missing_categories(proposal, wanted)

        attempts = 0
        while missing and attempts < self.config.must_include_retries:
            attempts += 1
            logger.info(
                "proposal misses %s, asking selector again",
                ", ".join(c.value for c in missing),
            )
            try:
                retry = await self.selector.select(
                    candidates, preferences, geo.coordinates, geo.formatted_address
                )
            except RouteGenerationError as e:
                # 재선택 실패 시 이미 검증된 첫 제안을 유지
                logger.warning("reselection failed, keeping first proposal: %s", e.message)
                break
            retry_missing = missing_categories(retry, wanted)
            if len(retry_missing) < len(missing):
                proposal, missing = retry, retry_missing

        if missing:
            logger.warning(
                "route %r still misses requested categories: %s",
                proposal.route_name,
                ", ".join(c.value for c in missing),
            )
        return proposal

    @staticmethod
    def _assemble(proposal: SelectorProposal, directions: DirectionsResult) -> RouteRecommendation:
        return RouteRecommendation(
            route_name=proposal.route_name,
            waypoints=proposal.waypoints,
            estimated_distance=format_distance(directions.total_distance_m),
            highlights=proposal.highlights,
            directions=directions,
            duration_text=format_duration(directions.total_duration_s),
        )
