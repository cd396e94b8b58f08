"""Client for the Google Places API."""

import logging
from typing import Any, Dict, List

from afritable.etl.transform import google_to_source_record
from afritable.models import Provider, SourceRecord
from afritable.vendors.base import ApiResult, ProviderError, SourceAdapter

logger = logging.getLogger(__name__)
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

MAX_RADIUS_METERS = 50000
PHOTO_MAX_WIDTH = 800
DETAIL_FIELDS = ",".join(
    (
        "place_id",
        "name",
        "formatted_address",
        "address_components",
        "geometry",
        "formatted_phone_number",
        "website",
        "opening_hours",
        "photos",
        "reviews",
        "rating",
        "user_ratings_total",
        "price_level",
    )
)


class GooglePlacesError(ProviderError):
    """Raised when the Places API returns a non-successful response."""


class GooglePlacesAdapter(SourceAdapter):
    provider = Provider.GOOGLE
    base_url = _BASE_URL

    def _provider_error(self, payload: Any) -> Any:
        status = (payload or {}).get("status")
        if status in (None, "OK"):
            return None
        return payload.get("error_message") or status

    def photo_url(self, photo_reference: str) -> str:
        return (
            f"{_BASE_URL}/photo?maxwidth={PHOTO_MAX_WIDTH}"
            f"&photoreference={photo_reference}&key={self.api_key}"
        )

    def search(self, term: str, location: str, radius: int) -> ApiResult[List[SourceRecord]]:
        params: Dict[str, Any] = {
            "query": term,
            "location": location,
            "radius": min(int(radius), MAX_RADIUS_METERS),
            "type": "restaurant",
            "key": self.api_key,
        }

        def parse(payload: Dict[str, Any]) -> List[SourceRecord]:
            results = [google_to_source_record(item, self.photo_url) for item in payload.get("results", [])]
            logger.info("Google text search returned %d results for %r", len(results), term)
            return [record for record in results if record.external_id and record.name]

        return self._call("text-search", "/textsearch/json", params, parse)

    def get_details(self, place_id: str) -> ApiResult[SourceRecord]:
        params = {"place_id": place_id, "fields": DETAIL_FIELDS, "key": self.api_key}

        def parse(payload: Dict[str, Any]) -> SourceRecord:
            result = payload.get("result")
            if not result:
                raise GooglePlacesError(f"No details returned for {place_id}")
            record = google_to_source_record(result, self.photo_url)
            record.external_id = record.external_id or place_id
            return record

        return self._call("place-details", "/details/json", params, parse)
