"""Data records exchanged between lodestone components, with their JSON forms."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional

SIGNAL_SCHEMA_VERSION = 1
FINGERPRINT_SCHEMA_VERSION = 1
RECOMMENDATION_SCHEMA_VERSION = 1

_ZERO_TIME = "0001-01-01T00:00:00Z"

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


class EffortLevel(str, Enum):
    """Rough size of the work a recommendation implies."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


class ROILevel(str, Enum):
    """Expected return on investment."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


class RiskLevel(str, Enum):
    """Risk of adopting the signalled project."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


def _format_time(value: Optional[datetime]) -> str:
    """Render a timestamp as RFC 3339 with trimmed fractional seconds."""
    if value is None:
        return _ZERO_TIME
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _parse_time(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; the zero time and absent values give None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {value!r}")
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {value!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone.utc if not delta else timezone(sign * delta)
    parsed = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )
    if parsed == datetime(1, 1, 1, tzinfo=timezone.utc):
        return None
    return parsed


def _str_list(value: Any) -> list[str]:
    return [str(item) for item in value or []]


@dataclass(kw_only=True)
class Signal:
    """A single external observation, such as a trending repository."""

    id: str
    source: str
    url: str
    title: str
    captured_at: Optional[datetime] = None
    summary: str = ""
    language: str = ""
    stars: int = 0
    topic_tags: list[str] = field(default_factory=list)
    maintenance_score: float = 0.0
    license: str = ""
    last_commit: Optional[datetime] = None
    schema_version: int = SIGNAL_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "schema_version": self.schema_version,
            "id": self.id,
            "source": self.source,
            "url": self.url,
            "title": self.title,
        }
        if self.summary:
            out["summary"] = self.summary
        out["captured_at"] = _format_time(self.captured_at)
        if self.language:
            out["language"] = self.language
        if self.stars:
            out["stars"] = self.stars
        if self.topic_tags:
            out["topic_tags"] = list(self.topic_tags)
        if self.maintenance_score:
            out["maintenance_score"] = self.maintenance_score
        if self.license:
            out["license"] = self.license
        out["last_commit"] = _format_time(self.last_commit)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Signal":
        return cls(
            schema_version=int(data.get("schema_version", 0)),
            id=str(data.get("id", "")),
            source=str(data.get("source", "")),
            url=str(data.get("url", "")),
            title=str(data.get("title", "")),
            summary=str(data.get("summary", "")),
            captured_at=_parse_time(data.get("captured_at")),
            language=str(data.get("language", "")),
            stars=int(data.get("stars", 0)),
            topic_tags=_str_list(data.get("topic_tags")),
            maintenance_score=float(data.get("maintenance_score", 0.0)),
            license=str(data.get("license", "")),
            last_commit=_parse_time(data.get("last_commit")),
        )


@dataclass(kw_only=True)
class Fingerprint:
    """A summary of the analysed repository."""

    generated_at: Optional[datetime] = None
    languages: list[str] = field(default_factory=list)
    frameworks: list[str] = field(default_factory=list)
    deps: dict[str, str] = field(default_factory=dict)
    loc_per_language: dict[str, int] = field(default_factory=dict)
    test_ratio: float = 0.0
    has_ci: bool = False
    ci_provider: str = ""
    mcp_servers: list[str] = field(default_factory=list)
    goals: list[str] = field(default_factory=list)
    tech_interests: list[str] = field(default_factory=list)
    schema_version: int = FINGERPRINT_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "schema_version": self.schema_version,
            "generated_at": _format_time(self.generated_at),
        }
        if self.languages:
            out["languages"] = list(self.languages)
        if self.frameworks:
            out["frameworks"] = list(self.frameworks)
        if self.deps:
            out["deps"] = dict(sorted(self.deps.items()))
        if self.loc_per_language:
            out["loc_per_language"] = dict(sorted(self.loc_per_language.items()))
        if self.test_ratio:
            out["test_ratio"] = self.test_ratio
        if self.has_ci:
            out["has_ci"] = True
        if self.ci_provider:
            out["ci_provider"] = self.ci_provider
        if self.mcp_servers:
            out["mcp_servers"] = list(self.mcp_servers)
        if self.goals:
            out["goals"] = list(self.goals)
        if self.tech_interests:
            out["tech_interests"] = list(self.tech_interests)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Fingerprint":
        return cls(
            schema_version=int(data.get("schema_version", 0)),
            generated_at=_parse_time(data.get("generated_at")),
            languages=_str_list(data.get("languages")),
            frameworks=_str_list(data.get("frameworks")),
            deps={str(k): str(v) for k, v in (data.get("deps") or {}).items()},
            loc_per_language={
                str(k): int(v) for k, v in (data.get("loc_per_language") or {}).items()
            },
            test_ratio=float(data.get("test_ratio", 0.0)),
            has_ci=bool(data.get("has_ci", False)),
            ci_provider=str(data.get("ci_provider", "")),
            mcp_servers=_str_list(data.get("mcp_servers")),
            goals=_str_list(data.get("goals")),
            tech_interests=_str_list(data.get("tech_interests")),
        )


@dataclass(kw_only=True)
class Recommendation:
    """A scored suggestion derived from one signal."""

    id: str
    signal_id: str
    compatibility: float
    effort: EffortLevel
    risk: RiskLevel
    roi: Optional[ROILevel] = None
    rationale: str = ""
    counter_evidence: str = ""
    suggested_next: list[str] = field(default_factory=list)
    schema_version: int = RECOMMENDATION_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "schema_version": self.schema_version,
            "id": self.id,
            "signal_id": self.signal_id,
            "compatibility": self.compatibility,
            "effort": EffortLevel(self.effort).value,
        }
        if self.roi is not None:
            out["roi"] = ROILevel(self.roi).value
        out["risk"] = RiskLevel(self.risk).value
        if self.rationale:
            out["rationale"] = self.rationale
        if self.counter_evidence:
            out["counter_evidence"] = self.counter_evidence
        if self.suggested_next:
            out["suggested_next"] = list(self.suggested_next)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recommendation":
        roi = data.get("roi")
        return cls(
            schema_version=int(data.get("schema_version", 0)),
            id=str(data.get("id", "")),
            signal_id=str(data.get("signal_id", "")),
            compatibility=float(data.get("compatibility", 0.0)),
            effort=EffortLevel(data.get("effort")),
            roi=ROILevel(roi) if roi else None,
            risk=RiskLevel(data.get("risk")),
            rationale=str(data.get("rationale", "")),
            counter_evidence=str(data.get("counter_evidence", "")),
            suggested_next=_str_list(data.get("suggested_next")),
        )


@dataclass(kw_only=True)
class WorkPackage:
    """A unit of planned work."""

    id: str
    type: str
    title: str
    depends_on: list[str] = field(default_factory=list)
    files_affected: list[str] = field(default_factory=list)
    expected_artifacts: list[str] = field(default_factory=list)
    executor: str = ""
    estimated_minutes: int = 0
    acceptance_criteria: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "type": self.type, "title": self.title}
        if self.depends_on:
            out["depends_on"] = list(self.depends_on)
        if self.files_affected:
            out["files_affected"] = list(self.files_affected)
        if self.expected_artifacts:
            out["expected_artifacts"] = list(self.expected_artifacts)
        if self.executor:
            out["executor"] = self.executor
        if self.estimated_minutes:
            out["estimated_minutes"] = self.estimated_minutes
        if self.acceptance_criteria:
            out["acceptance_criteria"] = list(self.acceptance_criteria)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkPackage":
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "")),
            title=str(data.get("title", "")),
            depends_on=_str_list(data.get("depends_on")),
            files_affected=_str_list(data.get("files_affected")),
            expected_artifacts=_str_list(data.get("expected_artifacts")),
            executor=str(data.get("executor", "")),
            estimated_minutes=int(data.get("estimated_minutes", 0)),
            acceptance_criteria=_str_list(data.get("acceptance_criteria")),
        )