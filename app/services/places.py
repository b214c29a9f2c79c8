import asyncio
import logging
from functools import cmp_to_key
from typing import Dict, List, Optional
from ..errors import InvalidInput, PlaceSearchFailure, RouteGenerationError
from ..schemas import LatLng, Place, PlaceCategory, PoiSearchResult
from ..utils.geo import haversine_m
from .maps_client import GoogleMapsClient

logger = logging.getLogger(__name__)

# Places API nearby search 최대 반경
MAX_RADIUS_M = 50_000

# 평점 차이가 이 값을 넘으면 거리보다 평점 우선
RATING_GAP = 0.5

# (카테고리, type, keyword)
CATEGORY_SEARCHES = (
    (PlaceCategory.PARK, "park", None),
    (PlaceCategory.CAFE, "cafe", "dog friendly"),
    (PlaceCategory.DOG_PARK, None, "dog park"),
)


def compare_places(a: Place, b: Place) -> int:
    a_rated = a.rating is not None
    b_rated = b.rating is not None
    if a_rated != b_rated:
        return -1 if a_rated else 1
    if a_rated and b_rated:
        diff = b.rating - a.rating
        if abs(diff) > RATING_GAP:
            return 1 if diff > 0 else -1
    if a.distance_from_origin == b.distance_from_origin:
        return 0
    return -1 if a.distance_from_origin < b.distance_from_origin else 1


def rank_places(places: List[Place]) -> List[Place]:
    return sorted(places, key=cmp_to_key(compare_places))


def merge_places(*groups: List[Place]) -> List[Place]:
    """place_id 기준 중복 제거. 먼저 나온 항목을 유지한다."""
    seen: Dict[str, Place] = {}
    for group in groups:
        for p in group:
            if p.place_id not in seen:
                seen[p.place_id] = p
    return list(seen.values())


def _to_place(raw: dict, category: PlaceCategory, origin: LatLng) -> Optional[Place]:
    try:
        loc = raw["geometry"]["location"]
        location = LatLng(lat=loc["lat"], lng=loc["lng"])
        hours = raw.get("opening_hours") or {}
        return Place(
            place_id=raw["place_id"],
            name=raw.get("name", ""),
            location=location,
            category=category,
            rating=raw.get("rating"),
            rating_count=raw.get("user_ratings_total"),
            distance_from_origin=haversine_m(origin, location),
            vicinity=raw.get("vicinity") or "",
            types=tuple(raw.get("types") or ()),
            open_now=hours.get("open_now"),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("skipping unreadable place result %r: %s", raw.get("place_id"), e)
        return None


class PlaceAggregator:
    def __init__(self, client: GoogleMapsClient):
        self.client = client

    async def search_category(
        self,
        origin: LatLng,
        radius_m: int,
        category: PlaceCategory,
        type: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> List[Place]:
        data = await self.client.nearby_search(origin, radius_m, type=type, keyword=keyword)
        if not isinstance(data, dict):
            raise PlaceSearchFailure(
                PlaceSearchFailure.UPSTREAM, "Places search returned an unreadable response."
            )
        status = data.get("status")

        # 결과 없음은 에러가 아님
        if status == "ZERO_RESULTS":
            return []
        if status == "REQUEST_DENIED":
            raise PlaceSearchFailure(
                PlaceSearchFailure.ACCESS_DENIED,
                "Places API access denied. Please check API key permissions.",
            )
        if status == "INVALID_REQUEST":
            raise PlaceSearchFailure(PlaceSearchFailure.INVALID, "Invalid search parameters.")
        if status != "OK":
            raise PlaceSearchFailure(
                PlaceSearchFailure.UPSTREAM,
                f"Failed to search places: {status}",
                details={"status": status},
            )

        places = []
        for raw in data.get("results") or []:
            p = _to_place(raw, category, origin)
            if p is not None:
                places.append(p)
        return rank_places(places)

    async def find_pois(self, origin: LatLng, radius_m: int) -> PoiSearchResult:
        if radius_m <= 0 or radius_m > MAX_RADIUS_M:
            raise InvalidInput(
                f"Radius must be between 1 and {MAX_RADIUS_M} meters (got {radius_m})."
            )

        tasks = [
            self.search_category(origin, radius_m, category, type=t, keyword=kw)
            for category, t, kw in CATEGORY_SEARCHES
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        lists: List[List[Place]] = []
        failures: List[Exception] = []
        for (category, _, _), res in zip(CATEGORY_SEARCHES, results):
            if isinstance(res, Exception):
                logger.warning("%s search failed: %s", category.value, res)
                failures.append(res)
                lists.append([])
            elif isinstance(res, BaseException):
                # CancelledError 등은 그대로 전파
                raise res
            else:
                lists.append(res)

        # 모든 카테고리가 실패했을 때만 전체 실패
        if len(failures) == len(CATEGORY_SEARCHES):
            first = failures[0]
            if isinstance(first, RouteGenerationError):
                raise first
            raise PlaceSearchFailure(
                PlaceSearchFailure.UPSTREAM, "Failed to search places."
            ) from first

        parks, cafes, dog_parks = lists
        merged = rank_places(merge_places(parks, cafes, dog_parks))
        logger.info(
            "found %d POIs (%d parks, %d cafes, %d dog parks) within %dm",
            len(merged), len(parks), len(cafes), len(dog_parks), radius_m,
        )
        return PoiSearchResult(
            parks=tuple(parks), cafes=tuple(cafes), dog_parks=tuple(dog_parks), merged=tuple(merged)
        )
