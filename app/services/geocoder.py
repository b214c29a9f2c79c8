import logging
from ..errors import GeocodeFailure, InvalidInput
from ..schemas import GeocodeResult, LatLng
from .maps_client import GoogleMapsClient

logger = logging.getLogger(__name__)


class Geocoder:
    def __init__(self, client: GoogleMapsClient):
        self.client = client

    async def resolve(self, location_text: str) -> GeocodeResult:
        location = location_text.strip()
        data = await self.client.geocode(location)
        status = data.get("status")

        if status == "ZERO_RESULTS":
            raise GeocodeFailure(
                GeocodeFailure.NOT_FOUND,
                f'Location "{location}" not found. Please try a more specific address or place name.',
            )
        if status == "REQUEST_DENIED":
            raise GeocodeFailure(
                GeocodeFailure.ACCESS_DENIED,
                "Geocoding API access denied. Please check API key permissions.",
            )
        if status == "INVALID_REQUEST":
            raise InvalidInput(
                "Invalid location format. Please provide a valid address or place name."
            )
        results = data.get("results") or []
        if status != "OK" or not results:
            raise GeocodeFailure(
                GeocodeFailure.UPSTREAM,
                f"Failed to geocode location: {status}",
                details={"status": status},
            )

        # 첫 번째 결과가 신뢰도가 가장 높음
        first = results[0]
        try:
            loc = first["geometry"]["location"]
            result = GeocodeResult(
                coordinates=LatLng(lat=loc["lat"], lng=loc["lng"]),
                formatted_address=first.get("formatted_address") or location,
                place_id=first.get("place_id"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(
                GeocodeFailure.UPSTREAM, "Geocoding returned an unreadable result."
            ) from e
        logger.info("geocoded %r -> %s", location, result.formatted_address)
        return result
