import asyncio
import logging
import httpx
from typing import Dict, List, Optional
from ..config import settings
from ..errors import Transient
from ..schemas import LatLng

BASE = "https://maps.googleapis.com/maps/api"

logger = logging.getLogger(__name__)


def _fmt(coord: LatLng) -> str:
    return f"{coord.lat},{coord.lng}"


class GoogleMapsClient:
    """Google Maps 웹 서비스(geocode / nearby search / directions) 호출 전담.

    응답 JSON을 그대로 돌려주고 status 해석은 각 서비스가 맡는다.
    네트워크 오류와 타임아웃은 Transient로 바꿔 올린다.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        backoff: float = 0.25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        # 키가 비어있으면 즉시 명확한 예외
        if not self.api_key:
            raise RuntimeError(
                "GOOGLE_MAPS_API_KEY 환경변수가 비어있습니다. "
                ".env 또는 환경변수를 확인하세요."
            )
        self.timeout = timeout if timeout is not None else settings.http_timeout_s
        self.retries = retries if retries is not None else settings.http_retries
        self.backoff = backoff
        self.transport = transport
        self.headers = {"User-Agent": "SniffRoutes/0.1 (FastAPI)"}

    async def _get(self, path: str, params: Dict, retries: int = 0) -> dict:
        params = {**params, "key": self.api_key}
        last_exc: Optional[Exception] = None
        for i in range(retries + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, headers=self.headers, transport=self.transport
                ) as client:
                    r = await client.get(f"{BASE}/{path}", params=params)
                if r.status_code >= 500 or r.status_code == 429:
                    # 서버 오류와 rate limit은 재시도 대상
                    last_exc = httpx.HTTPStatusError(
                        f"{path} {r.status_code}", request=r.request, response=r
                    )
                elif r.status_code in (401, 403):
                    # HTTP 레벨 거절도 API status 어휘로 맞춰서 돌려준다
                    return {"status": "REQUEST_DENIED", "error_message": r.text}
                elif r.status_code >= 400:
                    return {"status": "INVALID_REQUEST", "error_message": r.text}
                else:
                    return r.json()
            except httpx.TransportError as e:
                last_exc = e
            except ValueError as e:
                # 본문이 JSON이 아님
                last_exc = e
            logger.warning("maps %s attempt %d/%d failed: %s", path, i + 1, retries + 1, last_exc)
            if i < retries:
                await asyncio.sleep(self.backoff * (2**i))
        raise Transient(
            "Could not reach the maps service. Please try again.",
            details={"endpoint": path},
        ) from last_exc

    async def geocode(self, address: str) -> dict:
        return await self._get("geocode/json", {"address": address}, retries=self.retries)

    async def nearby_search(
        self,
        location: LatLng,
        radius: int,
        type: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> dict:
        params = {"location": _fmt(location), "radius": str(radius)}
        if type:
            params["type"] = type
        if keyword:
            params["keyword"] = keyword
        return await self._get("place/nearbysearch/json", params, retries=self.retries)

    async def directions(
        self, origin: LatLng, destination: LatLng, waypoints: List[LatLng]
    ) -> dict:
        params = {
            "origin": _fmt(origin),
            "destination": _fmt(destination),
            "mode": "walking",
        }
        if waypoints:
            params["waypoints"] = "|".join(_fmt(w) for w in waypoints)
        # 비용 문제로 directions는 재시도하지 않음
        return await self._get("directions/json", params, retries=0)
