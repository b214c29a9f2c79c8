from typing import Dict, List, Optional

import httpx
import pytest

from app.schemas import LatLng, Place, PlaceCategory
from app.services.maps_client import GoogleMapsClient

# Bradford on Avon
ORIGIN = LatLng(lat=51.3462, lng=-2.2517)


class FakeMaps:
    """경로(path)별로 준비된 응답을 돌려주는 가짜 Google Maps. 요청은 calls에 기록."""

    def __init__(self):
        self.geocode = self.geocode_ok()
        # nearby 응답은 keyword(없으면 type) 기준으로 고름
        self.nearby: Dict[str, object] = {}
        self.directions = self.directions_ok([self.leg(1000, 720, 2)])
        self.calls: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path.endswith("/geocode/json"):
            body = self.geocode
        elif path.endswith("/place/nearbysearch/json"):
            key = request.url.params.get("keyword") or request.url.params.get("type")
            body = self.nearby.get(key, {"status": "ZERO_RESULTS", "results": []})
        elif path.endswith("/directions/json"):
            body = self.directions
        else:
            return httpx.Response(404)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    def client(self, **kw) -> GoogleMapsClient:
        kw.setdefault("retries", 0)
        return GoogleMapsClient(
            api_key="test-key", backoff=0, transport=httpx.MockTransport(self.handler), **kw
        )

    def calls_to(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.calls if r.url.path.endswith(suffix)]

    # ---- 응답 빌더

    @staticmethod
    def geocode_ok(lat=ORIGIN.lat, lng=ORIGIN.lng, address="Bradford-on-Avon, UK"):
        return {
            "status": "OK",
            "results": [
                {
                    "geometry": {"location": {"lat": lat, "lng": lng}},
                    "formatted_address": address,
                    "place_id": "origin-place",
                }
            ],
        }

    @staticmethod
    def place(place_id, name, lat, lng, rating=None, types=("park",), vicinity=""):
        raw = {
            "place_id": place_id,
            "name": name,
            "geometry": {"location": {"lat": lat, "lng": lng}},
            "vicinity": vicinity,
            "types": list(types),
        }
        if rating is not None:
            raw["rating"] = rating
            raw["user_ratings_total"] = 10
        return raw

    @staticmethod
    def nearby_ok(*results):
        return {"status": "OK", "results": list(results)}

    @staticmethod
    def step(i: int, distance=100, duration=60):
        return {
            "distance": {"value": distance},
            "duration": {"value": duration},
            "html_instructions": f"Step <b>{i}</b>",
            "start_location": {"lat": 51.0 + i * 0.001, "lng": -2.0},
            "end_location": {"lat": 51.0 + (i + 1) * 0.001, "lng": -2.0},
            "polyline": {"points": f"poly{i}"},
        }

    @classmethod
    def leg(cls, distance, duration, n_steps, start="A", end="B", first_step=0):
        return {
            "distance": {"value": distance},
            "duration": {"value": duration},
            "start_address": start,
            "end_address": end,
            "steps": [cls.step(first_step + i) for i in range(n_steps)],
        }

    @staticmethod
    def directions_ok(legs):
        return {
            "status": "OK",
            "routes": [{"legs": legs, "overview_polyline": {"points": "overview"}}],
        }


@pytest.fixture
def fake_maps() -> FakeMaps:
    return FakeMaps()


@pytest.fixture
def make_place():
    def _make(
        place_id: str,
        rating: Optional[float] = None,
        distance: float = 0.0,
        category: PlaceCategory = PlaceCategory.PARK,
        lat: float = ORIGIN.lat,
        lng: float = ORIGIN.lng,
    ) -> Place:
        return Place(
            place_id=place_id,
            name=place_id.title(),
            location=LatLng(lat=lat, lng=lng),
            category=category,
            rating=rating,
            distance_from_origin=distance,
        )

    return _make


@pytest.fixture
def origin() -> LatLng:
    return ORIGIN
