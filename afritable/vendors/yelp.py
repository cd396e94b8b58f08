"""Client for the Yelp Fusion API."""

import logging
from typing import Any, Dict, List, Optional

from afritable.etl.transform import yelp_to_source_record
from afritable.models import Provider, SourceRecord
from afritable.vendors.base import ApiResult, ProviderError, SourceAdapter, split_lat_lng

logger = logging.getLogger(__name__)
_BASE_URL = "https://api.yelp.com/v3"

MAX_RADIUS_METERS = 40000
SEARCH_LIMIT = 50


class YelpAdapter(SourceAdapter):
    provider = Provider.YELP
    base_url = _BASE_URL

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    def _provider_error(self, payload: Any) -> Optional[str]:
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if not error:
            return None
        if isinstance(error, dict):
            return error.get("description") or error.get("code") or "Yelp API error"
        return str(error)

    def search(self, term: str, location: str, radius: int) -> ApiResult[List[SourceRecord]]:
        params: Dict[str, Any] = {
            "term": term,
            "radius": min(int(radius), MAX_RADIUS_METERS),
            "limit": SEARCH_LIMIT,
            "categories": "restaurants",
        }
        coordinates = split_lat_lng(location)
        if coordinates:
            params["latitude"], params["longitude"] = coordinates
        else:
            params["location"] = location

        def parse(payload: Dict[str, Any]) -> List[SourceRecord]:
            results = [yelp_to_source_record(item) for item in payload.get("businesses", [])]
            logger.info("Yelp search returned %d businesses for %r", len(results), term)
            return [record for record in results if record.external_id and record.name]

        return self._call("business-search", "/businesses/search", params, parse)

    def get_details(self, business_id: str) -> ApiResult[SourceRecord]:
        def parse(payload: Dict[str, Any]) -> SourceRecord:
            if not payload.get("id"):
                raise ProviderError(f"No details returned for {business_id}")
            return yelp_to_source_record(payload)

        return self._call("business-details", f"/businesses/{business_id}", {}, parse)
