import asyncio

import httpx
import pytest

from app.errors import Transient
from app.schemas import LatLng
from app.services.maps_client import GoogleMapsClient


def _client(handler, retries=2):
    return GoogleMapsClient(
        api_key="k", retries=retries, backoff=0, transport=httpx.MockTransport(handler)
    )


def test_missing_api_key_fails_fast():
    with pytest.raises(RuntimeError):
        GoogleMapsClient(api_key="")


def test_geocode_sends_address_and_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"status": "OK", "results": []})

    data = asyncio.run(_client(handler).geocode("Bradford on Avon"))

    assert data["status"] == "OK"
    params = seen[0].url.params
    assert params["address"] == "Bradford on Avon"
    assert params["key"] == "k"
    assert seen[0].url.path == "/maps/api/geocode/json"


def test_transport_errors_are_retried_then_succeed():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused")
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    data = asyncio.run(_client(handler, retries=2).geocode("Bath"))

    assert data["status"] == "ZERO_RESULTS"
    assert len(attempts) == 3


def test_exhausted_retries_raise_transient():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ReadTimeout("too slow")

    with pytest.raises(Transient):
        asyncio.run(_client(handler, retries=1).nearby_search(LatLng(lat=1, lng=1), 1000))
    assert len(attempts) == 2


def test_server_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503, text="unavailable")

    with pytest.raises(Transient):
        asyncio.run(_client(handler, retries=2).geocode("Bath"))
    assert len(attempts) == 3


def test_directions_are_never_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("down")

    with pytest.raises(Transient):
        asyncio.run(
            _client(handler, retries=5).directions(
                LatLng(lat=1, lng=1), LatLng(lat=1, lng=1), []
            )
        )
    assert len(attempts) == 1


@pytest.mark.parametrize("code, status", [(401, "REQUEST_DENIED"), (403, "REQUEST_DENIED"), (400, "INVALID_REQUEST")])
def test_http_rejections_map_to_api_status(code, status):
    data = asyncio.run(_client(lambda r: httpx.Response(code, text="nope")).geocode("Bath"))
    assert data["status"] == status


def test_directions_params_keep_waypoint_order():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"status": "OK", "routes": []})

    asyncio.run(
        _client(handler).directions(
            LatLng(lat=1, lng=2),
            LatLng(lat=1, lng=2),
            [LatLng(lat=3, lng=4), LatLng(lat=5, lng=6)],
        )
    )

    params = seen[0].url.params
    assert params["origin"] == "1.0,2.0"
    assert params["destination"] == "1.0,2.0"
    assert params["waypoints"] == "3.0,4.0|5.0,6.0"
    assert params["mode"] == "walking"


def test_rate_limit_is_retried_then_transient():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(429, text="OVER_QUERY_LIMIT")

    with pytest.raises(Transient):
        asyncio.run(_client(handler, retries=1).geocode("Bath"))
    assert len(attempts) == 2
