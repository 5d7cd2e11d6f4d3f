"""Best-effort region inference from free-text locations.

Pure functions over a static lookup table, no I/O.
"""

import re
from typing import Iterable, List, Optional, Tuple

# Ordered: the first region that matches wins
REGION_LOOKUP: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("West Mediterranean", ("France", "Monaco", "Italy", "Sardinia", "Corsica", "Spain",
                            "Balearic Islands")),
    ("East Mediterranean", ("Greece", "Croatia", "Montenegro", "Turkey")),
    ("Caribbean", ("Bahamas", "Virgin Islands", "St. Barts", "Antigua")),
    ("Indian Ocean", ("Maldives", "Seychelles")),
    ("South Pacific", ("Fiji", "Tahiti", "French Polynesia")),
    ("North America", ("Florida", "New England", "Alaska")),
    ("South America", ("Brazil", "Argentina")),
    ("Northern Europe", ("Norway", "Sweden", "Denmark", "Netherlands")),
)

_OPERATING_AREA = re.compile(r"Operating Area:([^\n]+)", re.IGNORECASE)


def infer_region(text: Optional[str],
                 lookup: Iterable[Tuple[str, Iterable[str]]] = REGION_LOOKUP) -> Optional[str]:
    """Return the first region whose name or one of its locations occurs in ``text``."""
    if not text:
        return None

    haystack = text.lower()
    for region, locations in lookup:
        if region.lower() in haystack:
            return region
        if any(location.lower() in haystack for location in locations):
            return region
    return None


def parse_operating_areas(description: Optional[str]) -> List[str]:
    """Extract the comma-separated list following ``Operating Area:``."""
    if not isinstance(description, str) or not description:
        return []
    match = _OPERATING_AREA.search(description)
    if not match:
        return []
    return [area.strip() for area in match.group(1).split(",") if area.strip()]


def region_for_areas(areas: Iterable[str]) -> Optional[str]:
    """Infer a region from a list of operating areas. Table order decides ties."""
    return infer_region(", ".join(areas))
