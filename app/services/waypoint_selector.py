import json
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
import openai
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage

from ..config import settings
from ..errors import MalformedSelectorOutput, Transient
from ..schemas import (
    LatLng,
    Place,
    PlaceCategory,
    RoutePreferences,
    SelectorProposal,
    Waypoint,
    WaypointRole,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a dog walking route planner.
Given a starting point, a requested walk distance and a list of nearby candidate places,
choose an ordered sequence of waypoints that makes a pleasant, safe walk for a dog and its owner.

Rules:
- The first waypoint is the start and MUST be the given starting coordinates.
- If the route is circular, the last waypoint MUST have exactly the same coordinates as the start.
- Only use coordinates of the starting point or of the candidate places. Never invent places.
- Visit every category listed under "must include" when a candidate of that category exists.
- Keep the total walking distance close to the requested distance.
- Prefer green space, parks and quiet paths; honour the user's freeform preferences.

Return ONLY a JSON object:
{"routeName": "short catchy name",
 "waypoints": [{"lat": 0.0, "lng": 0.0, "name": "...", "role": "start|poi|end",
                "category": "park|cafe|dog_park|other", "placeId": "..."}],
 "estimatedDistance": "e.g. 2.1km",
 "highlights": "one or two sentences about what makes this walk good"}"""


USER_PROMPT = """Starting point: {address} ({lat}, {lng})
Requested distance: {distance_km} km
Circular route: {circular}
Must include: {must_include}
Preferences: {preferences}

Candidate places (JSON):
{candidates}
"""


class WaypointSelector(ABC):
    """웨이포인트 선택 오라클 인터페이스. 테스트에서는 결정적인 구현으로 교체한다."""

    @abstractmethod
    async def select(
        self,
        candidates: Sequence[Place],
        preferences: RoutePreferences,
        origin: LatLng,
        origin_address: str = "",
    ) -> SelectorProposal:
        ...


def build_user_prompt(
    candidates: Sequence[Place],
    preferences: RoutePreferences,
    origin: LatLng,
    origin_address: str = "",
) -> str:
    cand = [
        {
            "placeId": p.place_id,
            "name": p.name,
            "lat": p.location.lat,
            "lng": p.location.lng,
            "category": p.category.value,
            "rating": p.rating,
            "distanceFromStartM": round(p.distance_from_origin),
            "vicinity": p.vicinity,
            "openNow": p.open_now,
        }
        for p in candidates
    ]
    return USER_PROMPT.format(
        address=origin_address or "starting point",
        lat=origin.lat,
        lng=origin.lng,
        distance_km=preferences.distance_km,
        circular="yes" if preferences.circular else "no",
        must_include=", ".join(c.value for c in preferences.must_include) or "nothing specific",
        preferences=", ".join(preferences.preferences) or "none",
        candidates=json.dumps(cand, ensure_ascii=False, indent=1),
    )


def _to_float(v) -> Optional[float]:
    if isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _to_category(v) -> Optional[PlaceCategory]:
    if v is None or v == "":
        return None
    key = re.sub(r"[\s\-]+", "_", str(v).strip().lower())
    try:
        return PlaceCategory(key)
    except ValueError:
        return PlaceCategory.OTHER


def _load_json(raw: Union[str, dict]) -> Any:
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise MalformedSelectorOutput(details={"problem": "not text"})
    # ```json ... ``` 로 감싸져 와도 본문 객체만 꺼냄
    m = re.search(r"\{.*\}", raw, re.S)
    if not m:
        raise MalformedSelectorOutput(details={"problem": "no JSON object"})
    try:
        return json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise MalformedSelectorOutput(details={"problem": "invalid JSON"}) from e


def _same_point(a: LatLng, b: LatLng) -> bool:
    return math.isclose(a.lat, b.lat, abs_tol=1e-6) and math.isclose(a.lng, b.lng, abs_tol=1e-6)


def parse_selector_output(
    raw: Union[str, dict],
    circular: bool,
    candidates: Sequence[Place] = (),
) -> SelectorProposal:
    """오라클 응답을 검증해 SelectorProposal로 변환. 규칙 위반은 전부 MalformedSelectorOutput."""
    data = _load_json(raw)
    if not isinstance(data, dict):
        raise MalformedSelectorOutput(details={"problem": "not an object"})
    raw_wps = data.get("waypoints")
    if not isinstance(raw_wps, list):
        raise MalformedSelectorOutput(details={"problem": "waypoints missing"})
    if len(raw_wps) < 2:
        raise MalformedSelectorOutput(details={"problem": "fewer than 2 waypoints"})

    by_id: Dict[str, Place] = {p.place_id: p for p in candidates}
    last = len(raw_wps) - 1
    waypoints: List[Waypoint] = []
    for i, wp in enumerate(raw_wps):
        if not isinstance(wp, dict):
            raise MalformedSelectorOutput(details={"problem": "waypoint not an object", "index": i})
        lat = _to_float(wp.get("lat"))
        lng = _to_float(wp.get("lng"))
        if lat is None or lng is None or not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise MalformedSelectorOutput(details={"problem": "invalid coordinates", "index": i})

        # 역할은 위치로 결정: 처음=start, 마지막=end
        if i == 0:
            role = WaypointRole.START
        elif i == last:
            role = WaypointRole.END
        else:
            role = WaypointRole.POI

        place_id = wp.get("placeId") or wp.get("place_id")
        place_id = str(place_id) if place_id else None
        category = _to_category(wp.get("category"))
        if category is None and place_id in by_id:
            category = by_id[place_id].category

        default_name = {WaypointRole.START: "Start", WaypointRole.END: "End"}.get(role, f"Stop {i}")
        waypoints.append(
            Waypoint(
                location=LatLng(lat=lat, lng=lng),
                name=str(wp.get("name") or default_name),
                role=role,
                category=category,
                place_id=place_id,
            )
        )

    if circular:
        if not _same_point(waypoints[0].location, waypoints[-1].location):
            raise MalformedSelectorOutput(details={"problem": "circular route does not return to start"})
        # 허용 오차 안이면 도착점을 출발 좌표로 맞춤
        waypoints[-1] = waypoints[-1].model_copy(update={"location": waypoints[0].location})

    highlights = data.get("highlights") or ""
    if isinstance(highlights, list):
        highlights = "; ".join(str(h) for h in highlights)

    return SelectorProposal(
        route_name=str(data.get("routeName") or data.get("route_name") or "Custom dog walk"),
        waypoints=tuple(waypoints),
        estimated_distance=str(data.get("estimatedDistance") or data.get("estimated_distance") or ""),
        highlights=str(highlights),
    )


def missing_categories(
    proposal: SelectorProposal, must_include: Sequence[PlaceCategory]
) -> List[PlaceCategory]:
    present = {w.category for w in proposal.waypoints if w.category is not None}
    return [c for c in must_include if c not in present]


def _content_text(content) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content)


class LLMWaypointSelector(WaypointSelector):
    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_candidates: Optional[int] = None,
        llm=None,
    ):
        if llm is None:
            llm = ChatOpenAI(
                model=model_name or settings.llm_model,
                temperature=settings.llm_temperature if temperature is None else temperature,
                api_key=settings.openai_api_key,
                timeout=settings.http_timeout_s * 4,
                max_retries=0,
            ).bind(response_format={"type": "json_object"})
        self.llm = llm
        self.max_candidates = max_candidates or settings.max_candidates

    async def select(
        self,
        candidates: Sequence[Place],
        preferences: RoutePreferences,
        origin: LatLng,
        origin_address: str = "",
    ) -> SelectorProposal:
        shortlist = list(candidates)[: self.max_candidates]
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(
                content=build_user_prompt(shortlist, preferences, origin, origin_address)
            ),
        ]
        try:
            resp = await self.llm.ainvoke(messages)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.warning("waypoint selector call failed: %s", e)
            raise Transient("The AI route planner is unavailable. Please try again.") from e

        proposal = parse_selector_output(
            _content_text(resp.content), preferences.circular, shortlist
        )
        logger.info(
            "selector proposed %r with %d waypoints", proposal.route_name, len(proposal.waypoints)
        )
        return proposal


# 전역 인스턴스
_selector: Optional[LLMWaypointSelector] = None


def get_waypoint_selector() -> LLMWaypointSelector:
    """LLMWaypointSelector 싱글톤 인스턴스 반환"""
    global _selector
    if _selector is None:
        if settings.langsmith_project:
            from langchain_teddynote import logging as langsmith_logging

            langsmith_logging.langsmith(settings.langsmith_project)
        _selector = LLMWaypointSelector()
    return _selector
