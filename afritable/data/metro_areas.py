"""Metro areas and sub-regions covered by collection sweeps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

METERS_PER_MILE = 1609
MAX_SEARCH_RADIUS_METERS = 50000

SEARCH_TERMS = (
    "African restaurant",
    "Ethiopian restaurant",
    "Nigerian restaurant",
    "Moroccan restaurant",
    "Egyptian restaurant",
    "Kenyan restaurant",
    "Ghanaian restaurant",
    "Senegalese restaurant",
    "Somali restaurant",
    "Sudanese restaurant",
    "West African restaurant",
    "East African restaurant",
    "North African restaurant",
    "Caribbean restaurant",
    "Jamaican restaurant",
    "Haitian restaurant",
    "Trinidadian restaurant",
)


def radius_meters(miles: float) -> int:
    return int(min(miles * METERS_PER_MILE, MAX_SEARCH_RADIUS_METERS))


@dataclass(frozen=True)
class Region:
    id: str
    name: str
    latitude: float
    longitude: float
    radius_miles: float

    @property
    def location(self) -> str:
        return f"{self.latitude},{self.longitude}"

    @property
    def radius_meters(self) -> int:
        return radius_meters(self.radius_miles)


@dataclass(frozen=True)
class MetroArea:
    id: str
    name: str
    display_name: str
    state: str
    latitude: float
    longitude: float
    radius_miles: float
    regions: Tuple[Region, ...] = ()

    @property
    def location(self) -> str:
        return f"{self.latitude},{self.longitude}"

    @property
    def radius_meters(self) -> int:
        return radius_meters(self.radius_miles)


METRO_AREAS: Tuple[MetroArea, ...] = (
    MetroArea(
        id="atlanta",
        name="Atlanta",
        display_name="Metro Atlanta",
        state="GA",
        latitude=33.7490,
        longitude=-84.3880,
        radius_miles=50,
        regions=(
            Region("atlanta-city", "Atlanta", 33.7490, -84.3880, 15),
            Region("clayton", "Clayton", 33.5415, -84.3593, 10),
            Region("coweta", "Coweta", 33.3526, -84.7699, 10),
            Region("cherokee", "Cherokee", 34.2439, -84.4741, 10),
            Region("douglas", "Douglas", 33.7515, -84.7477, 10),
            Region("fayette", "Fayette", 33.4143, -84.4900, 10),
            Region("fulton", "Fulton", 33.7490, -84.3880, 20),
            Region("rockdale", "Rockdale", 33.6543, -84.0266, 10),
        ),
    ),
    MetroArea(
        id="houston",
        name="Houston",
        display_name="Houston",
        state="TX",
        latitude=29.7604,
        longitude=-95.3698,
        radius_miles=50,
        regions=(
            Region("houston-city", "Houston", 29.7604, -95.3698, 20),
            Region("harris", "Harris County", 29.7604, -95.3698, 30),
            Region("fort-bend", "Fort Bend County", 29.5694, -95.8144, 15),
            Region("montgomery", "Montgomery County", 30.3072, -95.5031, 15),
        ),
    ),
    MetroArea(
        id="new-york-city",
        name="New York City",
        display_name="New York City",
        state="NY",
        latitude=40.7128,
        longitude=-74.0060,
        radius_miles=50,
        regions=(
            Region("manhattan", "Manhattan", 40.7831, -73.9712, 10),
            Region("brooklyn", "Brooklyn", 40.6782, -73.9442, 10),
            Region("queens", "Queens", 40.7282, -73.7949, 10),
            Region("bronx", "Bronx", 40.8448, -73.8648, 10),
            Region("staten-island", "Staten Island", 40.5795, -74.1502, 10),
        ),
    ),
    MetroArea(
        id="los-angeles",
        name="Los Angeles",
        display_name="Los Angeles",
        state="CA",
        latitude=34.0522,
        longitude=-118.2437,
        radius_miles=60,
        regions=(
            Region("los-angeles-city", "Los Angeles", 34.0522, -118.2437, 20),
            Region("beverly-hills", "Beverly Hills", 34.0736, -118.4004, 5),
            Region("santa-monica", "Santa Monica", 34.0195, -118.4912, 5),
            Region("pasadena", "Pasadena", 34.1478, -118.1445, 5),
            Region("long-beach", "Long Beach", 33.7701, -118.1937, 10),
        ),
    ),
    MetroArea(
        id="chicago",
        name="Chicago",
        display_name="Chicago / Illinois",
        state="IL",
        latitude=41.8781,
        longitude=-87.6298,
        radius_miles=50,
        regions=(
            Region("chicago-city", "Chicago", 41.8781, -87.6298, 20),
            Region("cook-county", "Cook County", 41.8781, -87.6298, 30),
            Region("dupage", "DuPage County", 41.8081, -88.0881, 15),
            Region("kane", "Kane County", 41.9389, -88.4286, 15),
        ),
    ),
    MetroArea(
        id="dallas-fort-worth",
        name="Dallas - Fort Worth",
        display_name="Dallas - Fort Worth",
        state="TX",
        latitude=32.7767,
        longitude=-96.7970,
        radius_miles=50,
        regions=(
            Region("dallas", "Dallas", 32.7767, -96.7970, 15),
            Region("fort-worth", "Fort Worth", 32.7555, -97.3308, 15),
            Region("plano", "Plano", 33.0198, -96.6989, 10),
            Region("irving", "Irving", 32.8140, -96.9489, 10),
        ),
    ),
    MetroArea(
        id="washington-dc",
        name="Washington, D.C.",
        display_name="Washington, D.C. Area",
        state="DC",
        latitude=38.9072,
        longitude=-77.0369,
        radius_miles=50,
        regions=(
            Region("washington-dc", "Washington, D.C.", 38.9072, -77.0369, 15),
            Region("arlington", "Arlington", 38.8816, -77.0910, 10),
            Region("alexandria", "Alexandria", 38.8048, -77.0469, 10),
            Region("bethesda", "Bethesda", 38.9847, -77.0947, 10),
        ),
    ),
    MetroArea(
        id="miami",
        name="Miami",
        display_name="Miami - Dade",
        state="FL",
        latitude=25.7617,
        longitude=-80.1918,
        radius_miles=50,
        regions=(
            Region("miami", "Miami", 25.7617, -80.1918, 15),
            Region("miami-beach", "Miami Beach", 25.7907, -80.1300, 5),
            Region("coral-gables", "Coral Gables", 25.7214, -80.2683, 5),
            Region("aventura", "Aventura", 25.9565, -80.1390, 5),
        ),
    ),
    MetroArea(
        id="philadelphia",
        name="Philadelphia",
        display_name="Philadelphia County",
        state="PA",
        latitude=39.9526,
        longitude=-75.1652,
        radius_miles=50,
        regions=(
            Region("philadelphia", "Philadelphia", 39.9526, -75.1652, 20),
            Region("montgomery-pa", "Montgomery County", 40.1379, -75.3872, 15),
            Region("bucks", "Bucks County", 40.3368, -75.1299, 15),
        ),
    ),
    MetroArea(
        id="boston",
        name="Boston",
        display_name="Greater Boston",
        state="MA",
        latitude=42.3601,
        longitude=-71.0589,
        radius_miles=50,
        regions=(
            Region("boston", "Boston", 42.3601, -71.0589, 15),
            Region("cambridge", "Cambridge", 42.3736, -71.1097, 5),
            Region("somerville", "Somerville", 42.3876, -71.0995, 5),
            Region("brookline", "Brookline", 42.3317, -71.1212, 5),
        ),
    ),
    MetroArea(
        id="seattle",
        name="Seattle",
        display_name="Seattle / Eastern Washington",
        state="WA",
        latitude=47.6062,
        longitude=-122.3321,
        radius_miles=50,
        regions=(
            Region("seattle", "Seattle", 47.6062, -122.3321, 15),
            Region("bellevue", "Bellevue", 47.6101, -122.2015, 10),
            Region("redmond", "Redmond", 47.6740, -122.1215, 10),
            Region("kirkland", "Kirkland", 47.6769, -122.2059, 10),
        ),
    ),
    MetroArea(
        id="denver",
        name="Denver",
        display_name="Denver / Colorado",
        state="CO",
        latitude=39.7392,
        longitude=-104.9903,
        radius_miles=50,
        regions=(
            Region("denver", "Denver", 39.7392, -104.9903, 15),
            Region("boulder", "Boulder", 40.0150, -105.2705, 10),
            Region("aurora", "Aurora", 39.7294, -104.8319, 10),
            Region("lakewood", "Lakewood", 39.7047, -105.0814, 10),
        ),
    ),
    MetroArea(
        id="las-vegas",
        name="Las Vegas",
        display_name="Las Vegas",
        state="NV",
        latitude=36.1699,
        longitude=-115.1398,
        radius_miles=50,
        regions=(
            Region("las-vegas", "Las Vegas", 36.1699, -115.1398, 20),
            Region("henderson", "Henderson", 36.0395, -114.9817, 10),
            Region("north-las-vegas", "North Las Vegas", 36.1989, -115.1175, 10),
        ),
    ),
    MetroArea(
        id="san-francisco",
        name="San Francisco",
        display_name="San Francisco Bay Area",
        state="CA",
        latitude=37.7749,
        longitude=-122.4194,
        radius_miles=60,
        regions=(
            Region("san-francisco", "San Francisco", 37.7749, -122.4194, 15),
            Region("oakland", "Oakland", 37.8044, -122.2712, 10),
            Region("san-jose", "San Jose", 37.3382, -121.8863, 15),
            Region("palo-alto", "Palo Alto", 37.4419, -122.1430, 5),
        ),
    ),
    MetroArea(
        id="san-diego",
        name="San Diego",
        display_name="San Diego",
        state="CA",
        latitude=32.7157,
        longitude=-117.1611,
        radius_miles=50,
        regions=(
            Region("san-diego", "San Diego", 32.7157, -117.1611, 20),
            Region("la-jolla", "La Jolla", 32.8328, -117.2713, 5),
            Region("del-mar", "Del Mar", 32.9595, -117.2653, 5),
        ),
    ),
    MetroArea(
        id="portland",
        name="Portland",
        display_name="Portland / Oregon",
        state="OR",
        latitude=45.5152,
        longitude=-122.6784,
        radius_miles=50,
        regions=(
            Region("portland", "Portland", 45.5152, -122.6784, 15),
            Region("beaverton", "Beaverton", 45.4871, -122.8037, 10),
            Region("hillsboro", "Hillsboro", 45.5229, -122.9898, 10),
        ),
    ),
    MetroArea(
        id="connecticut",
        name="Connecticut",
        display_name="Connecticut",
        state="CT",
        latitude=41.6032,
        longitude=-73.0877,
        radius_miles=50,
        regions=(
            Region("hartford", "Hartford", 41.7658, -72.6734, 15),
            Region("new-haven", "New Haven", 41.3083, -72.9279, 15),
            Region("stamford", "Stamford", 41.0534, -73.5387, 10),
        ),
    ),
    MetroArea(
        id="new-jersey",
        name="New Jersey",
        display_name="New Jersey",
        state="NJ",
        latitude=40.2989,
        longitude=-74.5210,
        radius_miles=50,
        regions=(
            Region("newark", "Newark", 40.7357, -74.1724, 15),
            Region("jersey-city", "Jersey City", 40.7178, -74.0431, 10),
            Region("paterson", "Paterson", 40.9168, -74.1718, 10),
        ),
    ),
    MetroArea(
        id="new-york-state",
        name="New York State",
        display_name="New York State",
        state="NY",
        latitude=42.1657,
        longitude=-74.9481,
        radius_miles=100,
        regions=(
            Region("albany", "Albany", 42.6526, -73.7562, 20),
            Region("buffalo", "Buffalo", 42.8864, -78.8784, 20),
            Region("rochester", "Rochester", 43.1566, -77.6088, 20),
        ),
    ),
)

_BY_ID: Dict[str, MetroArea] = {metro.id: metro for metro in METRO_AREAS}


def get_metro_area(metro_id: str) -> Optional[MetroArea]:
    return _BY_ID.get(metro_id)


def get_region(region_id: str) -> Optional[Region]:
    for metro in METRO_AREAS:
        for region in metro.regions:
            if region.id == region_id:
                return region
    return None


def search_metro_areas(text: str) -> Tuple[MetroArea, ...]:
    """Case-insensitive match on name, display name or state code."""
    needle = text.strip().lower()
    return tuple(
        metro
        for metro in METRO_AREAS
        if needle in metro.name.lower() or needle in metro.display_name.lower() or needle == metro.state.lower()
    )
