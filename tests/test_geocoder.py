import asyncio

import httpx
import pytest

from app.errors import GeocodeFailure, InvalidInput, Transient
from app.services.geocoder import Geocoder


def test_resolve_returns_first_result(fake_maps):
    fake_maps.geocode = {
        "status": "OK",
        "results": [
            {
                "geometry": {"location": {"lat": 51.3462, "lng": -2.2517}},
                "formatted_address": "Bradford-on-Avon, UK",
                "place_id": "first",
            },
            {
                "geometry": {"location": {"lat": 40.0, "lng": -70.0}},
                "formatted_address": "Somewhere else",
                "place_id": "second",
            },
        ],
    }

    result = asyncio.run(Geocoder(fake_maps.client()).resolve("  Bradford on Avon "))

    assert result.coordinates.lat == 51.3462
    assert result.coordinates.lng == -2.2517
    assert result.formatted_address == "Bradford-on-Avon, UK"
    assert result.place_id == "first"
    assert fake_maps.calls[0].url.params["address"] == "Bradford on Avon"


def test_zero_results_is_not_found(fake_maps):
    fake_maps.geocode = {"status": "ZERO_RESULTS", "results": []}

    with pytest.raises(GeocodeFailure) as exc:
        asyncio.run(Geocoder(fake_maps.client()).resolve("Nowhereville"))

    assert exc.value.reason == GeocodeFailure.NOT_FOUND
    assert exc.value.status_code == 404
    assert "Nowhereville" in exc.value.message


def test_request_denied_is_access_denied(fake_maps):
    fake_maps.geocode = {"status": "REQUEST_DENIED"}

    with pytest.raises(GeocodeFailure) as exc:
        asyncio.run(Geocoder(fake_maps.client()).resolve("Bath"))

    assert exc.value.reason == GeocodeFailure.ACCESS_DENIED


def test_invalid_request_is_invalid_input(fake_maps):
    fake_maps.geocode = {"status": "INVALID_REQUEST"}

    with pytest.raises(InvalidInput):
        asyncio.run(Geocoder(fake_maps.client()).resolve("Bath"))


def test_unexpected_status_is_upstream_failure(fake_maps):
    fake_maps.geocode = {"status": "OVER_QUERY_LIMIT", "results": []}

    with pytest.raises(GeocodeFailure) as exc:
        asyncio.run(Geocoder(fake_maps.client()).resolve("Bath"))

    assert exc.value.reason == GeocodeFailure.UPSTREAM
    assert exc.value.details == {"status": "OVER_QUERY_LIMIT"}


def test_network_failure_is_transient(fake_maps):
    fake_maps.geocode = httpx.ConnectError("dns failure")

    with pytest.raises(Transient):
        asyncio.run(Geocoder(fake_maps.client()).resolve("Bath"))
