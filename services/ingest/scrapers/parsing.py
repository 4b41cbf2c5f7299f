"""
Field parsers shared by the provider adapters: coordinates, addresses,
phone lists, and the two hours grammars (free text and OSM opening_hours).
"""

import math
import re
from typing import Any, Iterable, Optional

from services.ingest.pipeline.models import Address, HoursEntry, Location, Phone
from services.ingest.pipeline.text import clean_text, phone_digits, title_case

# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


def coerce_coordinate(value: Any) -> Optional[float]:
    """A finite int/float, else None. Strings and booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def make_location(lat: Any, lon: Any) -> Optional[Location]:
    lat_f = coerce_coordinate(lat)
    lon_f = coerce_coordinate(lon)
    if lat_f is None or lon_f is None:
        return None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lon_f <= 180.0):
        return None
    return Location(lat=lat_f, lon=lon_f)


# ---------------------------------------------------------------------------
# Address
# ---------------------------------------------------------------------------

_STATE_RE = re.compile(r"^[A-Z]{2}$")
_ZIP_RE = re.compile(r"\d{5}")


def field_text(props: dict, *keys: str) -> Optional[str]:
    """First non-empty value among keys, numbers stringified, then cleaned."""
    for key in keys:
        value = props.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            value = str(int(value)) if float(value).is_integer() else str(value)
        cleaned = clean_text(value)
        if cleaned:
            return cleaned
    return None


def normalize_state(raw: Optional[str]) -> Optional[str]:
    state = clean_text(raw)
    if not state:
        return None
    state = state.upper()[:2]
    return state if _STATE_RE.match(state) else None


def normalize_zip(raw: Optional[str]) -> Optional[str]:
    zip_code = clean_text(raw)
    if not zip_code:
        return None
    match = _ZIP_RE.search(zip_code)
    return match.group(0) if match else None


def build_address(
    street1: Optional[str],
    street2: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
    default_state: Optional[str] = None,
) -> Address:
    street1 = clean_text(street1)
    street2 = clean_text(street2)
    city = clean_text(city)
    return Address(
        street1=title_case(street1) if street1 else None,
        street2=title_case(street2) if street2 else None,
        city=title_case(city) if city else None,
        state=normalize_state(state) or default_state,
        zip=normalize_zip(zip_code),
    )


# ---------------------------------------------------------------------------
# Phones
# ---------------------------------------------------------------------------

PHONE_LABEL_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(fax)\b", re.I), "FAX"),
    (re.compile(r"\b(service|intake)\b", re.I), "Service/Intake"),
    (re.compile(r"\b(admin|administration)\b", re.I), "Administration"),
    (re.compile(r"\b(hotline)\b", re.I), "Hotline"),
    (re.compile(r"\b(info|information)\b", re.I), "Info"),
    (re.compile(r"\b(24\s*hour|24\s*hr)\b", re.I), "24 Hour"),
    (re.compile(r"\b(volunteer)\b", re.I), "Volunteer"),
]

_EXT_RE = re.compile(r"\b(ext|extension|x)[:.\s]*(\d+)", re.I)
_PHONE_SPLIT_RE = re.compile(r"[,;]")
_PHONE_STRIP_RE = re.compile(r"[^\d\s\-()]")
_PHONE_STRIP_INTL_RE = re.compile(r"[^\d\s\-()+]")


def dedupe_phones(phones: Iterable[Phone]) -> list[Phone]:
    """Keep the first phone per digits-only number; drop numbers with no digits."""
    seen: set[str] = set()
    unique = []
    for phone in phones:
        digits = phone_digits(phone.number)
        if not digits or digits in seen:
            continue
        seen.add(digits)
        unique.append(phone)
    return unique


def parse_phone_list(raw: Any) -> list[Phone]:
    """
    Parse a free-form "label number ext N, label number" string.

    Each comma/semicolon part may carry a label keyword and an extension;
    both are lifted out before the number is stripped to phone characters.
    """
    if not raw or not isinstance(raw, str):
        return []

    phones = []
    for part in (p.strip() for p in _PHONE_SPLIT_RE.split(raw)):
        if not part:
            continue

        label = None
        number_part = part
        for pattern, detected in PHONE_LABEL_RULES:
            if pattern.search(part):
                label = detected
                number_part = pattern.sub("", part, count=1).strip()
                break

        ext = None
        ext_match = _EXT_RE.search(number_part)
        if ext_match:
            ext = ext_match.group(2)
            number_part = number_part.replace(ext_match.group(0), "", 1).strip()

        number = " ".join(_PHONE_STRIP_RE.sub("", number_part).split())
        if number:
            phones.append(Phone(number=number, label=label, ext=ext))

    return dedupe_phones(phones)


def clean_phone_number(raw: Any) -> Optional[str]:
    """Strip a single number to digits, whitespace, + - and parentheses."""
    if not raw or not isinstance(raw, str):
        return None
    cleaned = " ".join(_PHONE_STRIP_INTL_RE.sub("", raw).split())
    return cleaned if phone_digits(cleaned) else None


# ---------------------------------------------------------------------------
# Hours
# ---------------------------------------------------------------------------

_DAY = (
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tues|tue|wed|thurs|thu|fri|sat|sun"
)

TWENTY_FOUR_SEVEN_RE = re.compile(
    r"\b(24\s*hours?|24\s*/\s*7|open\s+24|twenty[\s-]?four\s+hours?)\b", re.I
)

# "1st and 3rd Wednesday", "2nd Saturday"
NTH_WEEKDAY_RE = re.compile(
    rf"\b(\d+(?:st|nd|rd|th))(?:\s+(?:and|&)\s+(\d+(?:st|nd|rd|th)))?\s+({_DAY})\b", re.I
)

# "Mon-Fri 9:00 AM - 5:00 PM", "Monday 9am to 12pm"
DAY_RANGE_RE = re.compile(
    rf"\b({_DAY})\b[\s\-:,]*(?:({_DAY})\b\s*)?[:,]?\s*"
    r"(\d{1,2}):?(\d{2})?\s*(am|pm)?\s*(?:-|–|—|to)+\s*"
    r"(\d{1,2}):?(\d{2})?\s*(am|pm)?",
    re.I,
)

OSM_24_7_RE = re.compile(r"^(24/7|24 hours?|always open)$", re.I)
OSM_RANGE_RE = re.compile(
    r"\b(Mo|Tu|We|Th|Fr|Sa|Su)(?:-(Mo|Tu|We|Th|Fr|Sa|Su))?\s+(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})"
)


def _day_abbrev(day: str) -> str:
    return day[:1].upper() + day[1:3].lower()


def _to_24h(hour: str, minute: Optional[str], meridiem: Optional[str]) -> str:
    h = int(hour)
    meridiem = (meridiem or "").lower()
    if meridiem == "pm" and h < 12:
        h += 12
    elif meridiem == "am" and h == 12:
        h = 0
    return f"{h:02d}:{minute or '00'}"


def _unparsed(text: str) -> list[HoursEntry]:
    return [HoursEntry(days="See notes", notes=text, parsed=False)]


def twenty_four_seven() -> HoursEntry:
    return HoursEntry(days="24/7", opens=None, closes=None, notes=None, parsed=True)


def parse_free_text_hours(raw: Any) -> list[HoursEntry]:
    """
    Best-effort parse of a free-text hours field.

    Tries, in order: a 24/7 phrase, an Nth-weekday schedule, a day range
    with times. The first match wins; otherwise one unparsed entry keeps
    the cleaned text in notes.
    """
    text = clean_text(raw)
    if not text:
        return []

    if TWENTY_FOUR_SEVEN_RE.search(text):
        return [twenty_four_seven()]

    match = NTH_WEEKDAY_RE.search(text)
    if match:
        ordinals = "&".join(o for o in (match.group(1), match.group(2)) if o)
        return [HoursEntry(days=f"{ordinals} {_day_abbrev(match.group(3))}", notes=text, parsed=True)]

    match = DAY_RANGE_RE.search(text)
    if match:
        day1 = _day_abbrev(match.group(1))
        days = f"{day1}-{_day_abbrev(match.group(2))}" if match.group(2) else day1
        return [HoursEntry(
            days=days,
            opens=_to_24h(match.group(3), match.group(4), match.group(5)),
            closes=_to_24h(match.group(6), match.group(7), match.group(8)),
            parsed=True,
        )]

    return _unparsed(text)


def parse_opening_hours(raw: Any) -> list[HoursEntry]:
    """
    Parse an OSM opening_hours value.

    Handles "24/7" style values and any number of "Mo-Fr 09:00-17:00"
    segments; anything else becomes a single unparsed entry.
    """
    text = clean_text(raw)
    if not text:
        return []

    if OSM_24_7_RE.match(text):
        return [twenty_four_seven()]

    hours = [
        HoursEntry(
            days=f"{m.group(1)}-{m.group(2)}" if m.group(2) else m.group(1),
            opens=f"{int(m.group(3)):02d}:{m.group(4)}",
            closes=f"{int(m.group(5)):02d}:{m.group(6)}",
            parsed=True,
        )
        for m in OSM_RANGE_RE.finditer(text)
    ]
    return hours or _unparsed(text)
