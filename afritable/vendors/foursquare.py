"""Client for the Foursquare Places API."""

import logging
from typing import Any, Dict, List, Optional

from afritable.etl.transform import foursquare_to_source_record
from afritable.models import Provider, SourceRecord
from afritable.vendors.base import ApiResult, ProviderError, SourceAdapter, split_lat_lng

logger = logging.getLogger(__name__)
_BASE_URL = "https://api.foursquare.com/v3"

MAX_RADIUS_METERS = 100000
SEARCH_LIMIT = 50
RESTAURANT_CATEGORY = "13000"
FIELDS = ",".join(
    (
        "fsq_id",
        "name",
        "location",
        "geocodes",
        "tel",
        "website",
        "rating",
        "price",
        "hours",
        "categories",
        "photos",
    )
)


class FoursquareAdapter(SourceAdapter):
    provider = Provider.FOURSQUARE
    base_url = _BASE_URL

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self.api_key, "Accept": "application/json"}

    def _provider_error(self, payload: Any) -> Optional[str]:
        if isinstance(payload, dict) and payload.get("message") and "results" not in payload and "fsq_id" not in payload:
            return str(payload["message"])
        return None

    def search(self, term: str, location: str, radius: int) -> ApiResult[List[SourceRecord]]:
        params: Dict[str, Any] = {
            "query": term,
            "radius": min(int(radius), MAX_RADIUS_METERS),
            "categories": RESTAURANT_CATEGORY,
            "limit": SEARCH_LIMIT,
            "fields": FIELDS,
        }
        coordinates = split_lat_lng(location)
        if coordinates:
            params["ll"] = f"{coordinates[0]},{coordinates[1]}"
        else:
            params["near"] = location

        def parse(payload: Dict[str, Any]) -> List[SourceRecord]:
            results = [foursquare_to_source_record(item) for item in payload.get("results", [])]
            logger.info("Foursquare search returned %d places for %r", len(results), term)
            return [record for record in results if record.external_id and record.name]

        return self._call("places-search", "/places/search", params, parse)

    def get_details(self, fsq_id: str) -> ApiResult[SourceRecord]:
        def parse(payload: Dict[str, Any]) -> SourceRecord:
            if not payload.get("fsq_id"):
                raise ProviderError(f"No details returned for {fsq_id}")
            return foursquare_to_source_record(payload)

        return self._call("place-details", f"/places/{fsq_id}", {"fields": FIELDS}, parse)
