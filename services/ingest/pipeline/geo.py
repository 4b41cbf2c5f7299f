"""Distance and fuzzy-name primitives used by dedup and the display helpers."""

import math

EARTH_RADIUS_M = 6_371_000


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters on a sphere of radius 6 371 000 m."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    sin_lat = math.sin(d_lat / 2)
    sin_lon = math.sin(d_lon / 2)
    a = sin_lat * sin_lat + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * sin_lon * sin_lon
    # min() guards against a > 1 from float rounding on antipodal points
    return EARTH_RADIUS_M * 2 * math.asin(math.sqrt(min(1.0, a)))


def _bigrams(text: str) -> set[str]:
    return {text[i:i + 2] for i in range(len(text) - 1)}


def string_similarity(a: str, b: str) -> float:
    """
    Dice coefficient over adjacent-character bigram sets.

    Strings are lowercased and trimmed first. Empty input scores 0, equal
    strings score 1, and anything shorter than two characters scores 0.
    """
    if not a or not b:
        return 0.0
    s1 = a.lower().strip()
    s2 = b.lower().strip()
    if s1 == s2:
        return 1.0
    if len(s1) < 2 or len(s2) < 2:
        return 0.0

    b1 = _bigrams(s1)
    b2 = _bigrams(s2)
    return 2 * len(b1 & b2) / (len(b1) + len(b2))


def format_distance(meters: float) -> str:
    """'150 m' under a kilometer, '1.5 km' above."""
    if meters < 1000:
        return f"{math.floor(meters + 0.5)} m"
    return f"{meters / 1000:.1f} km"
