"""
Canonical site model and the provider-neutral intermediate record.

Adapters emit IntermediateRecord; site_builder turns each one into a Site.
Vocabularies are closed str enums so tag membership can be checked and
serialized without translation tables.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ProviderKind(str, Enum):
    """Which upstream wire shape a record came from."""
    ARCGIS = "arcgis_feature"
    OSM = "osm_element"
    LOCATOR = "locator_row"


class SiteType(str, Enum):
    COMMUNITY_FRIDGE = "community_fridge"
    FOOD_PANTRY = "food_pantry"
    FOOD_BANK = "food_bank"
    SOUP_KITCHEN = "soup_kitchen"
    SENIOR_MEALS = "senior_meals"
    SHELTER = "shelter"
    MULTI_SERVICE = "multi_service"
    CHURCH_PROGRAM = "church_program"
    GOV_CENTER = "gov_center"
    YOUTH_CENTER = "youth_center"


class ServiceTag(str, Enum):
    COMMUNITY_FRIDGE = "community_fridge"
    MUTUAL_AID = "mutual_aid"
    FREE_STORE = "free_store"
    FOOD_PANTRY = "food_pantry"
    FOOD_BANK_WHOLESALE = "food_bank_wholesale"
    CONGREGATE_MEAL = "congregate_meal"
    HOME_DELIVERED_MEAL = "home_delivered_meal"
    HOLIDAY_MEAL = "holiday_meal"
    SHELTER = "shelter"
    UTILITY_AID = "utility_aid"
    COUNSELING = "counseling"
    EMPLOYMENT = "employment"
    IMMIGRATION = "immigration"
    YOUTH_PROGRAMS = "youth_programs"
    SENIOR_SERVICES = "senior_services"
    HEALTH_CLINIC = "health_clinic"


class PopulationTag(str, Enum):
    SENIORS_60_PLUS = "seniors_60_plus"
    FAMILIES_WITH_CHILDREN = "families_with_children"
    HOMELESS = "homeless"
    HIV_AIDS = "hiv_aids"
    UNDOCUMENTED = "undocumented"
    ZIP_RESTRICTED = "zip_restricted"
    YOUTH = "youth"
    VETERANS = "veterans"
    ACCESS_PERMISSIVE = "access_permissive"


class AccessModel(str, Enum):
    WALK_IN = "walk_in"
    APPOINTMENT = "appointment"
    SCHEDULED_DAYS = "scheduled_days"
    TWENTY_FOUR_SEVEN = "twenty_four_seven"


class OrgType(str, Enum):
    FAITH_BASED = "faith_based"
    NONPROFIT = "nonprofit"
    GOVERNMENT = "government"
    COLLECTIVE = "collective"


class FreshnessBucket(str, Enum):
    UNDER_12_MONTHS = "<12mo"
    MONTHS_12_TO_24 = "12_24mo"
    OVER_24_MONTHS = ">24mo"


@dataclass
class Address:
    street1: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    def components(self) -> list[str]:
        """Non-empty parts in street1, street2, city, state, zip order."""
        return [p for p in (self.street1, self.street2, self.city, self.state, self.zip) if p]


@dataclass
class Location:
    lat: float
    lon: float


@dataclass
class HoursEntry:
    days: str
    opens: Optional[str] = None
    closes: Optional[str] = None
    notes: Optional[str] = None
    parsed: bool = True


@dataclass
class Phone:
    number: str
    label: Optional[str] = None
    ext: Optional[str] = None


@dataclass
class Flags:
    flag_address_geo_mismatch: bool = False
    flag_unparseable_hours: bool = False
    flag_broken_url: bool = False
    flag_stale_record: bool = False
    flag_sparse_record: bool = False


@dataclass
class IntermediateRecord:
    """
    Provider-neutral view of one upstream feature.

    `tags` holds structured key/value tags (OSM, or synthesized for locator
    rows); `categories` holds free-text category fields (ArcGIS cat1..3).
    `raw` is carried through to the Site untouched.
    """
    kind: ProviderKind
    source: str
    site_id: str
    name: str
    location: Location
    address: Address = field(default_factory=Address)
    raw_name: Optional[str] = None
    description: Optional[str] = None
    hours_text: Optional[str] = None
    hours: list[HoursEntry] = field(default_factory=list)
    phones: list[Phone] = field(default_factory=list)
    websites: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    updated_at: Optional[str] = None
    post_id: Optional[int] = None
    org_name: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def website(self) -> Optional[str]:
        return self.websites[0] if self.websites else None

    @property
    def email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None


@dataclass
class Classification:
    site_type: Optional[SiteType] = None
    service_tags: list[ServiceTag] = field(default_factory=list)
    population_tags: list[PopulationTag] = field(default_factory=list)
    access_model: Optional[AccessModel] = None
    org_type: Optional[OrgType] = None
    org_root_name: Optional[str] = None
    freshness_bucket: Optional[FreshnessBucket] = None


@dataclass
class Site:
    site_id: str
    name: str
    location: Location
    source: str
    post_id: Optional[int] = None
    org_root_name: Optional[str] = None
    org_type: Optional[OrgType] = None
    site_type: Optional[SiteType] = None
    service_tags: list[ServiceTag] = field(default_factory=list)
    population_tags: list[PopulationTag] = field(default_factory=list)
    access_model: Optional[AccessModel] = None
    description: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    website_domain: Optional[str] = None
    address: Address = field(default_factory=Address)
    hours: list[HoursEntry] = field(default_factory=list)
    phones: list[Phone] = field(default_factory=list)
    updated_at: Optional[str] = None
    freshness_bucket: Optional[FreshnessBucket] = None
    score_recency: float = 0.0
    score_open_now: float = 0.0
    score_specificity: float = 0.0
    score_population_fit: float = 0.0
    flags: Flags = field(default_factory=Flags)
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ClusteredSite:
    site_id: str
    name: str
    site_type: Optional[SiteType]
    address: Address
    location: Location
    service_tags: list[ServiceTag]
    population_tags: list[PopulationTag]


@dataclass
class OrgCluster:
    org_root_name: str
    org_type: Optional[OrgType]
    website: Optional[str]
    website_domain: Optional[str]
    sites: list[ClusteredSite] = field(default_factory=list)


def to_jsonable(value: Any) -> Any:
    """
    Recursively convert dataclasses/enums into plain JSON types.

    Dict key order and list order are preserved, so serializing the same
    Site twice yields identical JSON.
    """
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "__dataclass_fields__"):
        return {name: to_jsonable(getattr(value, name)) for name in value.__dataclass_fields__}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
