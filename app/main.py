import logging
from typing import Optional
from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.errors import FeatureDisabled, RouteGenerationError
from app.schemas import ErrorResponse, RouteQuery, RouteRecommendation
from app.services.directions import RouteCalculator
from app.services.geocoder import Geocoder
from app.services.maps_client import GoogleMapsClient
from app.services.places import PlaceAggregator
from app.services.route_generator import RouteGenerator, RouteGeneratorConfig
from app.services.waypoint_selector import get_waypoint_selector

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Sniff-Routes", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RouteGenerationError)
async def route_error_handler(_: Request, exc: RouteGenerationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def get_route_generator() -> RouteGenerator:
    config = RouteGeneratorConfig.from_settings(settings)
    if not config.ai_enabled:
        # 비활성화 상태에서는 외부 클라이언트를 만들지 않음
        raise FeatureDisabled()
    client = GoogleMapsClient()
    return RouteGenerator(
        geocoder=Geocoder(client),
        places=PlaceAggregator(client),
        selector=get_waypoint_selector(),
        calculator=RouteCalculator(client),
        config=config,
    )


# 인증은 앞단(auth 레이어)에서 처리하고 사용자 id만 헤더로 넘겨받음
def get_identity(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_user_id


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post(
    "/v1/routes/generate",
    response_model=RouteRecommendation,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def generate_custom_route(
    body: RouteQuery,
    identity: Optional[str] = Depends(get_identity),
    generator: RouteGenerator = Depends(get_route_generator),
):
    # "다른 경로 보기"도 같은 입력으로 이 엔드포인트를 다시 호출
    return await generator.generate_route(body.location, body.to_preferences(), identity)
