"""
Academy locations for the vehicle fleet.

Every comparison between locations goes through ``normalize_location`` so that
codes, canonical names and the short synonyms used by staff records
(``Pune``/``PTC``, ``Bangalore``/``BLR``) all compare equal.
"""
import enum
from typing import Optional, Union


ALL_LOCATIONS = "ALL"


class Location(str, enum.Enum):
    PTC = "PTC"
    VGTAP = "VGTAP"
    NCR = "NCR"
    BLR = "BLR"


LOCATION_DETAILS = {
    Location.PTC: {"name": "Pune", "full_name": "Pune Training Center", "code": "PUN", "region": "West"},
    Location.VGTAP: {"name": "VGTAP", "full_name": "VGTAP Training Center", "code": "VGT", "region": "North"},
    Location.NCR: {"name": "NCR", "full_name": "NCR Training Center", "code": "NCR", "region": "North"},
    Location.BLR: {"name": "Bangalore", "full_name": "Bangalore Training Center", "code": "BLR", "region": "South"},
}


def _build_synonyms():
    synonyms = {}
    for location, details in LOCATION_DETAILS.items():
        for alias in (location.value, details["name"], details["full_name"], details["code"]):
            synonyms[alias.lower()] = location
    return synonyms


_SYNONYMS = _build_synonyms()


def normalize_location(value: Union[str, Location, None]) -> Optional[Location]:
    """Map a location code, name or synonym to its canonical ``Location``."""
    if value is None:
        return None
    if isinstance(value, Location):
        return value
    return _SYNONYMS.get(value.strip().lower())


def is_unrestricted(value: Optional[str]) -> bool:
    return value is not None and value.strip().upper() == ALL_LOCATIONS


def same_location(a: Union[str, Location, None], b: Union[str, Location, None]) -> bool:
    """True when both values name the same academy location."""
    left, right = normalize_location(a), normalize_location(b)
    return left is not None and left == right


def location_matches(filter_value: Optional[str], scope: Optional[str]) -> bool:
    """
    Check a location filter against a user's location scope.

    An empty filter matches everyone and the ``ALL`` scope matches any filter.
    """
    if not filter_value:
        return True
    if is_unrestricted(scope):
        return True
    return same_location(filter_value, scope)
