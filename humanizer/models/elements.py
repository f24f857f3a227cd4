"""Humanization elements: personas, locations, discussions and content sources.

Each element carries an opaque id, a usage counter and a last-used
timestamp. The counter only moves through ``UsageTracker.mark_used`` (or the
store's atomic equivalent); everything else here is plain data plus the
small amount of domain behaviour each element owns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# ── Enumerations ───────────────────────────────────────────────────────────

class StateCode(str, Enum):
    """The 27 Brazilian federative units."""

    AC = "AC"
    AL = "AL"
    AP = "AP"
    AM = "AM"
    BA = "BA"
    CE = "CE"
    DF = "DF"
    ES = "ES"
    GO = "GO"
    MA = "MA"
    MT = "MT"
    MS = "MS"
    MG = "MG"
    PA = "PA"
    PB = "PB"
    PR = "PR"
    PE = "PE"
    PI = "PI"
    RJ = "RJ"
    RN = "RN"
    RS = "RS"
    RO = "RO"
    RR = "RR"
    SC = "SC"
    SP = "SP"
    SE = "SE"
    TO = "TO"


class TrafficPattern(str, Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"
    CONGESTED = "congested"


class DiscussionCategory(str, Enum):
    MAINTENANCE = "maintenance"
    PERFORMANCE = "performance"
    MODIFICATION = "modification"
    TROUBLESHOOTING = "troubleshooting"
    PURCHASE = "purchase"
    COMPARISON = "comparison"
    NEWS = "news"
    OTHER = "other"


class SourceType(str, Enum):
    FORUM = "forum"
    SOCIAL_MEDIA = "social_media"
    BLOG = "blog"
    NEWS = "news"
    REVIEW = "review"
    OFFICIAL = "official"
    OTHER = "other"


class ProfessionCategory(str, Enum):
    TECHNOLOGY = "technology"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    FINANCE = "finance"
    LEGAL = "legal"
    CREATIVE = "creative"
    TRADE = "trade"
    ENGINEERING = "engineering"
    MANAGEMENT = "management"
    SALES = "sales"
    SERVICE = "service"
    OTHER = "other"


class ElementKind(str, Enum):
    PERSONA = "persona"
    LOCATION = "location"
    DISCUSSION = "discussion"
    CONTENT_SOURCE = "content_source"


# ── Profession classification ──────────────────────────────────────────────

# First match wins, so the order matters ("engenheiro de software" is technology)
PROFESSION_KEYWORDS: list[tuple[ProfessionCategory, tuple[str, ...]]] = [
    (ProfessionCategory.TECHNOLOGY, (
        "desenvolvedor", "programador", "analista de sistema", "developer",
        "programmer", "software", "engenheiro de software", "devops", "data scientist",
    )),
    (ProfessionCategory.HEALTHCARE, (
        "médico", "medico", "enfermeir", "fisioterapeuta", "dentista", "doctor",
        "nurse", "physician", "therapist",
    )),
    (ProfessionCategory.EDUCATION, ("professor", "educador", "pedagog", "teacher", "tutor")),
    (ProfessionCategory.FINANCE, (
        "contador", "financeir", "bancári", "bancari", "economista", "accountant",
        "banker", "financial",
    )),
    (ProfessionCategory.LEGAL, ("advogad", "juiz", "jurídic", "juridic", "lawyer", "attorney", "judge")),
    (ProfessionCategory.CREATIVE, (
        "designer", "artista", "produtor", "fotógraf", "fotograf", "jornalista",
        "artist", "producer", "photographer", "writer",
    )),
    (ProfessionCategory.TRADE, (
        "eletricista", "mecânic", "mecanic", "carpinteir", "motorista", "electrician",
        "mechanic", "carpenter", "driver",
    )),
    (ProfessionCategory.ENGINEERING, ("engenheir", "arquitet", "engineer", "architect")),
    (ProfessionCategory.MANAGEMENT, (
        "gerente", "diretor", "coordenador", "empresári", "manager", "director",
        "coordinator", "owner",
    )),
    (ProfessionCategory.SALES, ("vendedor", "representante", "comercial", "corretor", "sales", "broker")),
    (ProfessionCategory.SERVICE, ("atendente", "garçom", "garcom", "recepcionista", "attendant", "waiter",
                                  "receptionist")),
]

TECHNICAL_CATEGORIES = frozenset({
    ProfessionCategory.TECHNOLOGY,
    ProfessionCategory.ENGINEERING,
    ProfessionCategory.TRADE,
})


def classify_profession(title: str) -> ProfessionCategory:
    """Map a free-text job title onto a ProfessionCategory by keyword."""
    lowered = (title or "").strip().lower()
    for category, keywords in PROFESSION_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return ProfessionCategory.OTHER


def is_technical_profession(title: str) -> bool:
    return classify_profession(title) in TECHNICAL_CATEGORIES


# ── Value objects ──────────────────────────────────────────────────────────

_NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s'\-]+$")


@dataclass(frozen=True)
class VerificationInfo:
    """Who verified an element and when."""

    verified_at: datetime
    verified_by: str

    def to_dict(self) -> dict:
        return {"verified_at": _iso(self.verified_at), "verified_by": self.verified_by}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["VerificationInfo"]:
        if not data:
            return None
        return cls(verified_at=_parse_dt(data["verified_at"]), verified_by=data["verified_by"])


@dataclass(frozen=True)
class PersonaName:
    first_name: str
    last_name: str

    def __post_init__(self) -> None:
        for label, value in (("first name", self.first_name), ("last name", self.last_name)):
            if not value or not value.strip():
                raise ValueError(f"Persona {label} cannot be empty")
            if len(value.strip()) < 2:
                raise ValueError(f"Persona {label} must have at least 2 characters")
            if not _NAME_PATTERN.match(value):
                raise ValueError(f"Persona {label} contains invalid characters: {value!r}")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def initials(self) -> str:
        return f"{self.first_name[0]}{self.last_name[0]}".upper()

    def __str__(self) -> str:
        return self.full_name

    @classmethod
    def from_full_name(cls, full_name: str) -> "PersonaName":
        """Split 'First [Middle ...] Last'; everything after the first word is the last name."""
        parts = (full_name or "").split()
        if len(parts) < 2:
            raise ValueError("Full name must contain a first and a last name")
        return cls(parts[0], " ".join(parts[1:]))


@dataclass(frozen=True)
class VehicleRef:
    make: str
    model: str
    year: int
    version: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.make or not self.make.strip():
            raise ValueError("Vehicle make cannot be empty")
        if not self.model or not self.model.strip():
            raise ValueError("Vehicle model cannot be empty")
        max_year = utcnow().year + 1
        if not 1900 <= self.year <= max_year:
            raise ValueError(f"Vehicle year must be between 1900 and {max_year}, got {self.year}")

    @property
    def full_description(self) -> str:
        base = f"{self.make} {self.model}"
        if self.version:
            base += f" {self.version}"
        return f"{base} {self.year}"

    @property
    def short_description(self) -> str:
        return f"{self.make} {self.model}"

    def __str__(self) -> str:
        return self.full_description

    def is_same_make(self, other: "VehicleRef") -> bool:
        return self.make.lower() == other.make.lower()

    def matches(self, text: str) -> bool:
        """True when free text (e.g. a persona's preferred vehicle) names this make and model."""
        lowered = text.lower()
        return self.make.lower() in lowered and self.model.lower() in lowered

    @classmethod
    def from_string(cls, text: str) -> "VehicleRef":
        """Parse 'Make Model [Version ...] Year'."""
        parts = (text or "").split()
        if len(parts) < 3:
            raise ValueError('Vehicle must be formatted as at least "Make Model Year"')
        try:
            year = int(parts[-1])
        except ValueError as e:
            raise ValueError(f"Vehicle year must be a number, got {parts[-1]!r}") from e
        version = " ".join(parts[2:-1]) or None
        return cls(parts[0], parts[1], year, version)


# ── Elements ───────────────────────────────────────────────────────────────

class _Usage:
    """Usage bookkeeping shared by every element dataclass."""

    kind: ElementKind
    id: str
    usage_count: int
    last_used_at: Optional[datetime]

    def _check_usage(self) -> None:
        if self.usage_count < 0:
            raise ValueError(f"usage_count cannot be negative, got {self.usage_count}")
        self.last_used_at = _parse_dt(self.last_used_at)

    def is_recently_used(self, days: int, now: Optional[datetime] = None) -> bool:
        if self.last_used_at is None:
            return False
        now = now or utcnow()
        return self.last_used_at > now - timedelta(days=days)

    def _usage_dict(self) -> dict:
        return {
            "usage_count": self.usage_count,
            "last_used_at": _iso(self.last_used_at),
            "verification": self.verification.to_dict() if self.verification else None,
        }


@dataclass
class Persona(_Usage):
    id: str
    name: PersonaName
    profession: str
    location: str = ""
    preferred_vehicles: list[str] = field(default_factory=list)
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    verification: Optional[VerificationInfo] = None

    kind = ElementKind.PERSONA

    def __post_init__(self) -> None:
        if isinstance(self.name, str):
            self.name = PersonaName.from_full_name(self.name)
        if not self.profession or len(self.profession.strip()) < 3:
            raise ValueError("Profession must have at least 3 characters")
        vehicles = list(self.preferred_vehicles)
        self.preferred_vehicles = []
        for v in vehicles:
            self.add_preferred_vehicle(v)
        self._check_usage()

    @property
    def display_name(self) -> str:
        return self.name.full_name

    @property
    def profession_category(self) -> ProfessionCategory:
        return classify_profession(self.profession)

    def is_technical(self) -> bool:
        return is_technical_profession(self.profession)

    def add_preferred_vehicle(self, vehicle: str) -> None:
        vehicle = vehicle.strip()
        if vehicle and vehicle not in self.preferred_vehicles:
            self.preferred_vehicles.append(vehicle)

    def prefers(self, vehicle: VehicleRef) -> bool:
        return any(vehicle.matches(v) for v in self.preferred_vehicles)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.name.first_name,
            "last_name": self.name.last_name,
            "profession": self.profession,
            "location": self.location,
            "preferred_vehicles": list(self.preferred_vehicles),
            **self._usage_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Persona":
        return cls(
            id=data["id"],
            name=PersonaName(data["first_name"], data["last_name"]),
            profession=data["profession"],
            location=data.get("location", ""),
            preferred_vehicles=list(data.get("preferred_vehicles") or []),
            usage_count=int(data.get("usage_count", 0)),
            last_used_at=_parse_dt(data.get("last_used_at")),
            verification=VerificationInfo.from_dict(data.get("verification")),
        )


@dataclass
class Location(_Usage):
    id: str
    city: str
    region: str
    state_code: StateCode
    traffic_pattern: TrafficPattern = TrafficPattern.MODERATE
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    verification: Optional[VerificationInfo] = None

    kind = ElementKind.LOCATION

    def __post_init__(self) -> None:
        if not self.city or not self.city.strip():
            raise ValueError("Location city cannot be empty")
        self.state_code = StateCode(str(getattr(self.state_code, "value", self.state_code)).upper())
        self.traffic_pattern = TrafficPattern(self.traffic_pattern)
        self._check_usage()

    @property
    def full_name(self) -> str:
        return f"{self.city} - {self.state_code.value}"

    @property
    def display_name(self) -> str:
        return self.full_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "city": self.city,
            "region": self.region,
            "state_code": self.state_code.value,
            "traffic_pattern": self.traffic_pattern.value,
            **self._usage_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        return cls(
            id=data["id"],
            city=data["city"],
            region=data.get("region", ""),
            state_code=StateCode(data["state_code"]),
            traffic_pattern=TrafficPattern(data.get("traffic_pattern", "moderate")),
            usage_count=int(data.get("usage_count", 0)),
            last_used_at=_parse_dt(data.get("last_used_at")),
            verification=VerificationInfo.from_dict(data.get("verification")),
        )


@dataclass
class Discussion(_Usage):
    id: str
    title: str
    content: str
    tags: list[str] = field(default_factory=list)
    source_url: str = ""
    category: DiscussionCategory = DiscussionCategory.OTHER
    published_at: Optional[datetime] = None
    relevance_score: int = 0
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    verification: Optional[VerificationInfo] = None

    kind = ElementKind.DISCUSSION

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Discussion title cannot be empty")
        if self.relevance_score < 0:
            raise ValueError(f"relevance_score cannot be negative, got {self.relevance_score}")
        self.category = DiscussionCategory(self.category)
        self.published_at = _parse_dt(self.published_at)
        self.tags = [t.strip() for t in self.tags if t and t.strip()]
        self._check_usage()

    @property
    def display_name(self) -> str:
        return self.title

    def is_recent(self, days: int = 90, now: Optional[datetime] = None) -> bool:
        if self.published_at is None:
            return False
        now = now or utcnow()
        return self.published_at > now - timedelta(days=days)

    def matches_keywords(self, keywords: Iterable[str]) -> bool:
        """Case-insensitive substring match against title, content and tags."""
        title = self.title.lower()
        content = self.content.lower()
        tags = [t.lower() for t in self.tags]
        for keyword in keywords:
            k = keyword.strip().lower()
            if not k:
                continue
            if k in title or k in content or any(k in t for t in tags):
                return True
        return False

    def set_relevance_score(self, score: int) -> None:
        if score < 0:
            raise ValueError(f"relevance_score cannot be negative, got {score}")
        self.relevance_score = score

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "source_url": self.source_url,
            "category": self.category.value,
            "published_at": _iso(self.published_at),
            "relevance_score": self.relevance_score,
            **self._usage_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Discussion":
        return cls(
            id=data["id"],
            title=data["title"],
            content=data.get("content", ""),
            tags=list(data.get("tags") or []),
            source_url=data.get("source_url", ""),
            category=DiscussionCategory(data.get("category", "other")),
            published_at=_parse_dt(data.get("published_at")),
            relevance_score=int(data.get("relevance_score", 0)),
            usage_count=int(data.get("usage_count", 0)),
            last_used_at=_parse_dt(data.get("last_used_at")),
            verification=VerificationInfo.from_dict(data.get("verification")),
        )


def clamp_trust(score: float) -> float:
    return max(0.0, min(100.0, float(score)))


@dataclass
class ContentSource(_Usage):
    id: str
    name: str
    url: str
    source_type: SourceType = SourceType.OTHER
    trust_score: float = 50.0
    topics: list[str] = field(default_factory=list)
    is_active: bool = True
    last_crawled_at: Optional[datetime] = None
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    verification: Optional[VerificationInfo] = None

    kind = ElementKind.CONTENT_SOURCE

    def __setattr__(self, name, value):
        if name == "trust_score":
            value = clamp_trust(value)
        super().__setattr__(name, value)

    def __post_init__(self) -> None:
        self.source_type = SourceType(self.source_type)
        self.last_crawled_at = _parse_dt(self.last_crawled_at)
        self._check_usage()

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def weighted_trust_score(self) -> float:
        """Trust amplified by usage, at most 1.5x; usage never lowers it."""
        return self.trust_score * min(1 + self.usage_count / 100, 1.5)

    def set_trust_score(self, score: float) -> None:
        self.trust_score = score

    def needs_crawling(self, days: int = 7, now: Optional[datetime] = None) -> bool:
        if self.last_crawled_at is None:
            return True
        now = now or utcnow()
        return self.last_crawled_at <= now - timedelta(days=days)

    def mark_crawled(self, now: Optional[datetime] = None) -> None:
        self.last_crawled_at = now or utcnow()

    def is_relevant_for(self, topics: Iterable[str]) -> bool:
        mine = {t.lower() for t in self.topics}
        return any(t.lower() in mine for t in topics)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "source_type": self.source_type.value,
            "trust_score": self.trust_score,
            "topics": list(self.topics),
            "is_active": self.is_active,
            "last_crawled_at": _iso(self.last_crawled_at),
            **self._usage_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContentSource":
        return cls(
            id=data["id"],
            name=data["name"],
            url=data.get("url", ""),
            source_type=SourceType(data.get("source_type", "other")),
            trust_score=float(data.get("trust_score", 50.0)),
            topics=list(data.get("topics") or []),
            is_active=bool(data.get("is_active", True)),
            last_crawled_at=_parse_dt(data.get("last_crawled_at")),
            usage_count=int(data.get("usage_count", 0)),
            last_used_at=_parse_dt(data.get("last_used_at")),
            verification=VerificationInfo.from_dict(data.get("verification")),
        )


ELEMENT_TYPES = {
    ElementKind.PERSONA: Persona,
    ElementKind.LOCATION: Location,
    ElementKind.DISCUSSION: Discussion,
    ElementKind.CONTENT_SOURCE: ContentSource,
}


@dataclass
class CombinationRecord:
    """How often a persona has been paired with a location, and in which contexts."""

    persona_id: str
    location_id: str
    usage_count: int = 0
    compatibility_score: float = 1.0
    contexts: set[str] = field(default_factory=set)
    first_used_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.persona_id, self.location_id)

    def record_use(self, context: str, compatibility_score: Optional[float] = None,
                   now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.usage_count += 1
        if context:
            self.contexts.add(context)
        if compatibility_score is not None:
            self.compatibility_score = compatibility_score
        if self.first_used_at is None:
            self.first_used_at = now
        self.last_used_at = now

    def to_dict(self) -> dict:
        return {
            "persona_id": self.persona_id,
            "location_id": self.location_id,
            "usage_count": self.usage_count,
            "compatibility_score": self.compatibility_score,
            "contexts": sorted(self.contexts),
            "first_used_at": _iso(self.first_used_at),
            "last_used_at": _iso(self.last_used_at),
        }
