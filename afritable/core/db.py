"""Database helpers for the restaurant store."""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import psycopg2
from psycopg2 import extras, pool

from afritable.core.config import Settings, get_settings
from afritable.models import (
    WEEKDAYS,
    DayHours,
    PhotoAsset,
    PhotoQuality,
    PhotoSource,
    PhotoType,
    PriceRange,
    RestaurantRecord,
)

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None
_pool_lock = threading.Lock()

_SCALAR_COLUMNS = (
    "google_place_id",
    "yelp_business_id",
    "foursquare_id",
    "name",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "latitude",
    "longitude",
    "phone",
    "website",
    "email",
    "description",
    "cuisine",
    "price_range",
    "rating",
    "review_count",
    "main_image",
    "last_updated",
    "is_verified",
    "is_active",
    "data_source",
)
_HOURS_COLUMNS = tuple(
    f"{day}_{suffix}" for day in WEEKDAYS for suffix in ("open", "close", "closed")
)
_UPDATABLE_COLUMNS = frozenset(_SCALAR_COLUMNS) | frozenset(_HOURS_COLUMNS)


def pool_size(settings: Settings) -> int:
    """Connections needed for a full enhancement batch, the task workers and the scheduler thread."""
    return max(settings.db_pool_max, settings.enhance_batch_size + settings.task_workers + 1)


def init_pool(
    minconn: int = 1,
    maxconn: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is not None:
        return _connection_pool
    with _pool_lock:
        if _connection_pool is None:
            settings = settings or get_settings()
            if not settings.database_url:
                raise RuntimeError("DATABASE_URL is required for database connections")
            maxconn = maxconn or pool_size(settings)
            _connection_pool = pool.ThreadedConnectionPool(
                minconn,
                maxconn,
                dsn=settings.database_url,
                connect_timeout=10,
            )
            logger.info("Database connection pool initialised (maxconn=%d)", maxconn)
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _hours_to_columns(hours: Dict[str, DayHours]) -> Dict[str, Any]:
    columns: Dict[str, Any] = {}
    for day in WEEKDAYS:
        entry = hours.get(day) or DayHours()
        columns[f"{day}_open"] = entry.open or None
        columns[f"{day}_close"] = entry.close or None
        columns[f"{day}_closed"] = bool(entry.closed)
    return columns


def _prepare_params(record: RestaurantRecord) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "google_place_id": record.google_place_id,
        "yelp_business_id": record.yelp_business_id,
        "foursquare_id": record.foursquare_id,
        "name": record.name,
        "address": record.address,
        "city": record.city,
        "state": record.state,
        "zip_code": record.zip_code,
        "country": record.country,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "phone": record.phone,
        "website": record.website,
        "email": record.email,
        "description": record.description,
        "cuisine": record.cuisine,
        "price_range": record.price_range.value if record.price_range else None,
        "rating": record.rating,
        "review_count": record.review_count,
        "main_image": record.main_image,
        "last_updated": record.last_updated or datetime.now(timezone.utc),
        "is_verified": record.is_verified,
        "is_active": record.is_active,
        "data_source": record.data_source,
    }
    params.update(_hours_to_columns(record.hours))
    return params


def _prepare_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    prepared: Dict[str, Any] = {}
    for key, value in changes.items():
        if key == "hours":
            prepared.update(_hours_to_columns(value))
            continue
        if key not in _UPDATABLE_COLUMNS:
            raise ValueError(f"Column {key!r} cannot be updated")
        if isinstance(value, PriceRange):
            value = value.value
        prepared[key] = value
    return prepared


def _row_to_photo(row: Dict[str, Any]) -> PhotoAsset:
    return PhotoAsset(
        url=row["url"],
        source=PhotoSource(row.get("source") or PhotoSource.MANUAL.value),
        type=PhotoType(row.get("type") or PhotoType.OTHER.value),
        quality=PhotoQuality(row.get("quality") or PhotoQuality.MEDIUM.value),
        is_primary=bool(row.get("is_primary")),
        caption=row.get("caption"),
        verified=bool(row.get("verified")),
    )


def _row_to_record(row: Dict[str, Any], photos: Optional[List[PhotoAsset]] = None) -> RestaurantRecord:
    hours = {
        day: DayHours(
            open=row.get(f"{day}_open") or "",
            close=row.get(f"{day}_close") or "",
            closed=bool(row.get(f"{day}_closed")),
        )
        for day in WEEKDAYS
    }
    price_range = row.get("price_range")
    return RestaurantRecord(
        id=str(row["id"]),
        google_place_id=row.get("google_place_id"),
        yelp_business_id=row.get("yelp_business_id"),
        foursquare_id=row.get("foursquare_id"),
        name=row.get("name") or "",
        address=row.get("address") or "",
        city=row.get("city") or "",
        state=row.get("state") or "",
        zip_code=row.get("zip_code") or "",
        country=row.get("country") or "US",
        latitude=float(row.get("latitude") or 0.0),
        longitude=float(row.get("longitude") or 0.0),
        phone=row.get("phone"),
        website=row.get("website"),
        email=row.get("email"),
        description=row.get("description"),
        cuisine=row.get("cuisine"),
        price_range=PriceRange(price_range) if price_range else None,
        rating=float(row.get("rating") or 0.0),
        review_count=int(row.get("review_count") or 0),
        main_image=row.get("main_image"),
        hours=hours,
        last_updated=row.get("last_updated"),
        is_verified=bool(row.get("is_verified")),
        is_active=row.get("is_active", True) is not False,
        data_source=row.get("data_source"),
        photos=photos or [],
    )


_INSERT_RESTAURANT = (
    "INSERT INTO restaurants ("
    + ", ".join(_SCALAR_COLUMNS + _HOURS_COLUMNS)
    + ") VALUES ("
    + ", ".join(f"%({column})s" for column in _SCALAR_COLUMNS + _HOURS_COLUMNS)
    + ") RETURNING id;"
)

_INSERT_PHOTO = """
INSERT INTO photos (
    restaurant_id,
    url,
    source,
    type,
    quality,
    is_primary,
    caption,
    verified
) VALUES (
    %(restaurant_id)s,
    %(url)s,
    %(source)s,
    %(type)s,
    %(quality)s,
    %(is_primary)s,
    %(caption)s,
    %(verified)s
);
"""

_INCREMENT_USAGE = """
INSERT INTO api_usage (api_name, endpoint, day, requests, updated_at)
VALUES (%(api_name)s, %(endpoint)s, %(day)s, 1, NOW())
ON CONFLICT (api_name, endpoint, day) DO UPDATE SET
    requests = api_usage.requests + 1,
    updated_at = NOW()
RETURNING requests;
"""


class PostgresRestaurantStore:
    """Persistence operations over the restaurants, photos and api_usage tables."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def _fetch_all(self, sql: str, params: Any = None) -> List[Dict[str, Any]]:
        init_pool(settings=self.settings)
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]

    def _fetch_records(self, sql: str, params: Any = None) -> List[RestaurantRecord]:
        rows = self._fetch_all(sql, params)
        if not rows:
            return []
        ids = [str(row["id"]) for row in rows]
        photos = self._photos_for(ids)
        return [_row_to_record(row, photos.get(str(row["id"]))) for row in rows]

    def _photos_for(self, restaurant_ids: List[str]) -> Dict[str, List[PhotoAsset]]:
        rows = self._fetch_all(
            "SELECT * FROM photos WHERE restaurant_id::text = ANY(%s) ORDER BY is_primary DESC, id;",
            (restaurant_ids,),
        )
        grouped: Dict[str, List[PhotoAsset]] = {}
        for row in rows:
            grouped.setdefault(str(row["restaurant_id"]), []).append(_row_to_photo(row))
        return grouped

    def _first(self, sql: str, params: Any) -> Optional[RestaurantRecord]:
        records = self._fetch_records(sql, params)
        return records[0] if records else None

    def find_by_id(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        return self._first("SELECT * FROM restaurants WHERE id::text = %s;", (str(restaurant_id),))

    def find_by_external_ids(
        self,
        google_place_id: Optional[str] = None,
        yelp_business_id: Optional[str] = None,
        foursquare_id: Optional[str] = None,
    ) -> Optional[RestaurantRecord]:
        clauses = []
        params: List[str] = []
        for column, value in (
            ("google_place_id", google_place_id),
            ("yelp_business_id", yelp_business_id),
            ("foursquare_id", foursquare_id),
        ):
            if value:
                clauses.append(f"{column} = %s")
                params.append(value)
        if not clauses:
            return None
        sql = f"SELECT * FROM restaurants WHERE {' OR '.join(clauses)} LIMIT 1;"
        return self._first(sql, tuple(params))

    def find_by_name_and_address(self, name: str, address: str) -> Optional[RestaurantRecord]:
        return self._first(
            "SELECT * FROM restaurants WHERE name = %s AND address = %s LIMIT 1;",
            (name, address),
        )

    def find_by_name_and_coordinates(self, name: str, latitude: float, longitude: float) -> Optional[RestaurantRecord]:
        return self._first(
            "SELECT * FROM restaurants WHERE name = %s AND latitude = %s AND longitude = %s LIMIT 1;",
            (name, latitude, longitude),
        )

    def list_restaurants(
        self,
        restaurant_ids: Optional[Iterable[str]] = None,
        stale_before: Optional[datetime] = None,
    ) -> List[RestaurantRecord]:
        """Active restaurants, optionally limited to ids or to unverified/stale records."""
        clauses = ["is_active = TRUE"]
        params: List[Any] = []
        if restaurant_ids is not None:
            clauses.append("id::text = ANY(%s)")
            params.append([str(rid) for rid in restaurant_ids])
        if stale_before is not None:
            clauses.append("(is_verified = FALSE OR last_updated < %s)")
            params.append(stale_before)
        sql = f"SELECT * FROM restaurants WHERE {' AND '.join(clauses)} ORDER BY name;"
        return self._fetch_records(sql, tuple(params))

    def list_with_external_ids(self) -> List[RestaurantRecord]:
        return self._fetch_records(
            "SELECT * FROM restaurants WHERE is_active = TRUE AND ("
            "google_place_id IS NOT NULL OR yelp_business_id IS NOT NULL OR foursquare_id IS NOT NULL"
            ") ORDER BY name;"
        )

    def find_updated_before(self, cutoff: datetime) -> List[str]:
        rows = self._fetch_all(
            "SELECT id FROM restaurants WHERE is_active = TRUE AND last_updated < %s ORDER BY last_updated;",
            (cutoff,),
        )
        return [str(row["id"]) for row in rows]

    def create_restaurant(self, record: RestaurantRecord) -> str:
        """Insert a restaurant with its photos; the first photo becomes primary."""
        if not record.name:
            raise ValueError("name is required to create a restaurant")
        params = _prepare_params(record)

        init_pool(settings=self.settings)
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(_INSERT_RESTAURANT, params)
                    restaurant_id = str(cur.fetchone()[0])
                    for index, photo in enumerate(record.photos):
                        cur.execute(_INSERT_PHOTO, _photo_params(restaurant_id, photo, index == 0))
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise
        logger.debug("Created restaurant %s (%s)", record.name, restaurant_id)
        return restaurant_id

    def update_restaurant(self, restaurant_id: str, changes: Dict[str, Any]) -> None:
        prepared = _prepare_changes(changes)
        if not prepared:
            return
        assignments = ", ".join(f"{column} = %({column})s" for column in prepared)
        prepared["id"] = str(restaurant_id)

        init_pool(settings=self.settings)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"UPDATE restaurants SET {assignments} WHERE id::text = %(id)s;", prepared)
            conn.commit()
        logger.debug("Updated restaurant %s columns=%s", restaurant_id, sorted(prepared))

    def replace_photos(self, restaurant_id: str, photos: List[PhotoAsset]) -> None:
        """Delete and recreate the photo set in one transaction."""
        init_pool(settings=self.settings)
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM photos WHERE restaurant_id::text = %s;", (str(restaurant_id),))
                    for index, photo in enumerate(photos):
                        cur.execute(_INSERT_PHOTO, _photo_params(str(restaurant_id), photo, index == 0))
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise
        logger.debug("Replaced %d photos for restaurant %s", len(photos), restaurant_id)

    def get_api_usage(self, api_name: str, endpoint: str, day: date) -> int:
        rows = self._fetch_all(
            "SELECT requests FROM api_usage WHERE api_name = %s AND endpoint = %s AND day = %s;",
            (api_name, endpoint, day),
        )
        return int(rows[0]["requests"]) if rows else 0

    def increment_api_usage(self, api_name: str, endpoint: str, day: Optional[date] = None) -> int:
        """Atomically bump the (api, endpoint, day) counter, creating it at 1."""
        params = {"api_name": api_name, "endpoint": endpoint, "day": day or datetime.now(timezone.utc).date()}
        init_pool(settings=self.settings)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INCREMENT_USAGE, params)
                row = cur.fetchone()
            conn.commit()
        return int(row[0]) if row else 0


def _photo_params(restaurant_id: str, photo: PhotoAsset, is_primary: bool) -> Dict[str, Any]:
    return {
        "restaurant_id": restaurant_id,
        "url": photo.url,
        "source": photo.source.value,
        "type": photo.type.value,
        "quality": photo.quality.value,
        "is_primary": is_primary,
        "caption": photo.caption,
        "verified": photo.verified,
    }
