"""
Presentation helpers over a stored place's `raw` payload (a serialized Site),
plus nearest-fridge matching for linking places to known fridges.

Public helpers for readers of the external_place store (map and detail
views). The ingest run does not call them; it writes the `raw` payload
these functions read.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from services.ingest.pipeline.geo import haversine_meters, string_similarity
from services.ingest.pipeline.text import phone_digits

SITE_TYPE_LABELS = {
    "community_fridge": "Community Fridge",
    "food_pantry": "Food Pantry",
    "food_bank": "Food Bank",
    "soup_kitchen": "Soup Kitchen",
    "senior_meals": "Senior Meals",
    "shelter": "Shelter",
    "multi_service": "Multi-Service Center",
    "church_program": "Church Program",
    "gov_center": "Government Center",
    "youth_center": "Youth Center",
}

ACCESS_MODEL_LABELS = {
    "walk_in": "Walk-in",
    "appointment": "Appointment Required",
    "scheduled_days": "Scheduled Days",
    "twenty_four_seven": "24/7 Access",
}

_TIME_CHARS_RE = re.compile(r"[^\d:]")


# ---------------------------------------------------------------------------
# Hours
# ---------------------------------------------------------------------------


def format_time(value: str) -> str:
    """'09:00', '9:00' or '0900' to '9:00 AM'. Unreadable input is returned as is."""
    cleaned = _TIME_CHARS_RE.sub("", value)
    if ":" in cleaned:
        hour_part, _, minute_part = cleaned.partition(":")
    else:
        hour_part, minute_part = cleaned[:-2], cleaned[-2:]

    try:
        hours = int(hour_part)
    except ValueError:
        return value
    try:
        minutes = int(minute_part) if minute_part else 0
    except ValueError:
        minutes = 0

    period = "PM" if hours >= 12 else "AM"
    hours = hours % 12 or 12
    return f"{hours}:{minutes:02d} {period}"


def format_operating_hours(raw: Optional[dict[str, Any]]) -> list[str]:
    if not raw or not isinstance(raw.get("hours"), list):
        return []

    lines = []
    for entry in raw["hours"]:
        days = entry.get("days") or ""
        opens = format_time(entry["opens"]) if entry.get("opens") else None
        closes = format_time(entry["closes"]) if entry.get("closes") else None
        notes = entry.get("notes")

        if opens and closes:
            line = f"{days}: {opens} - {closes}"
            if notes:
                line += f" ({notes})"
        elif notes:
            line = f"{days}: {notes}"
        else:
            line = days
        if line:
            lines.append(line)
    return lines


# ---------------------------------------------------------------------------
# Phones and links
# ---------------------------------------------------------------------------


def extract_phone_number(raw: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Primary phone: the first one not labeled as a fax line."""
    if not raw or not isinstance(raw.get("phones"), list) or not raw["phones"]:
        return None

    phones = raw["phones"]
    phone = next((p for p in phones if (p.get("label") or "").lower() != "fax"), phones[0])
    return {"number": phone.get("number"), "label": phone.get("label"), "ext": phone.get("ext")}


def format_phone_for_display(phone: dict[str, Any]) -> str:
    display = phone["number"]
    if phone.get("ext"):
        display += f" ext. {phone['ext']}"
    if phone.get("label"):
        display += f" ({phone['label']})"
    return display


def format_phone_for_link(phone: dict[str, Any]) -> str:
    digits = phone_digits(phone["number"])
    return f"{digits},{phone['ext']}" if phone.get("ext") else digits


def extract_website(raw: Optional[dict[str, Any]]) -> Optional[str]:
    website = raw.get("website") if raw else None
    if not website or not isinstance(website, str):
        return None
    if not website.startswith(("http://", "https://")):
        return f"https://{website}"
    return website


def site_type_label(raw: Optional[dict[str, Any]]) -> Optional[str]:
    return SITE_TYPE_LABELS.get(raw.get("site_type")) if raw else None


def access_model_label(raw: Optional[dict[str, Any]]) -> Optional[str]:
    return ACCESS_MODEL_LABELS.get(raw.get("access_model")) if raw else None


# ---------------------------------------------------------------------------
# Nearest fridge
# ---------------------------------------------------------------------------


@dataclass
class NearestMatch:
    id: str
    name: str
    distance: float
    similarity: float


def nearest_match(
    name: Optional[str], lat: Optional[float], lng: Optional[float], fridges: list[dict[str, Any]]
) -> Optional[NearestMatch]:
    """
    Closest fridge to a place by haversine distance, with the name
    similarity reported alongside. Fridges need id, name, lat and lng.
    """
    if lat is None or lng is None or not fridges:
        return None

    best: Optional[NearestMatch] = None
    for fridge in fridges:
        distance = haversine_meters(lat, lng, fridge["lat"], fridge["lng"])
        if best is None or distance < best.distance:
            best = NearestMatch(
                id=fridge["id"],
                name=fridge["name"],
                distance=distance,
                similarity=string_similarity(name or "", fridge["name"]),
            )
    return best
