"""Heuristic scoring of signals against a repository fingerprint."""

from __future__ import annotations

import hashlib
import json
import math
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from lodestone.schema import (
    RECOMMENDATION_SCHEMA_VERSION,
    EffortLevel,
    Fingerprint,
    Recommendation,
    RiskLevel,
    Signal,
)

LANGUAGE_WEIGHT = 1.5
FRAMEWORK_WEIGHT = 1.0
EFFORT_LOW_STAR_THRESHOLD = 100
RISK_POPULAR_STARS = 500
RISK_FRESH_DAYS = 90
RISK_STALE_DAYS = 180

_STRING_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)
_SHORT_NEG_EXPONENT = re.compile(r"e-0(\d)$")


def _lower_set(items: Iterable[str]) -> set[str]:
    return {key for key in (item.strip().lower() for item in items) if key}


def compatibility(sig: Signal, fp: Fingerprint) -> float:
    """Weighted overlap of the signal's tags and language with the repo's stack, in [0, 1]."""
    signal_set = _lower_set([*sig.topic_tags, sig.language])
    if not signal_set:
        return 0.0
    languages = _lower_set(fp.languages)
    frameworks = _lower_set(fp.frameworks)
    union = signal_set | languages | frameworks

    numerator = 0.0
    for elem in signal_set:
        if elem in languages:
            numerator += LANGUAGE_WEIGHT
        elif elem in frameworks:
            numerator += FRAMEWORK_WEIGHT
    return min(numerator / len(union), 1.0)


def effort(sig: Signal, compat: float) -> EffortLevel:
    """Estimate adoption effort from compatibility and popularity."""
    if compat <= 0:
        return EffortLevel.XL
    if sig.stars < EFFORT_LOW_STAR_THRESHOLD:
        return EffortLevel.S
    return EffortLevel.M


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def risk(sig: Signal, now: datetime) -> RiskLevel:
    """Classify adoption risk from licence, popularity and commit freshness."""
    has_license = sig.license != ""
    popular = sig.stars >= RISK_POPULAR_STARS

    fresh = stale = False
    if sig.last_commit is not None:
        elapsed = _as_utc(now) - _as_utc(sig.last_commit)
        days = int(elapsed.total_seconds() / 3600 / 24)
        fresh = 0 <= days < RISK_FRESH_DAYS
        stale = days > RISK_STALE_DAYS

    if popular and fresh and has_license:
        return RiskLevel.LOW
    if not has_license or stale:
        return RiskLevel.HIGH
    return RiskLevel.MED


def score(
    fp: Fingerprint, sigs: Iterable[Signal], now: Optional[datetime] = None
) -> list[Recommendation]:
    """Score every signal and return recommendations, best first.

    Ordering is by compatibility, then stars (both descending), then ID.
    """
    moment = now if now is not None else datetime.now(timezone.utc)
    canonical = _canonical_json(fp.to_dict()).encode("utf-8")

    ranked: list[tuple[Recommendation, int]] = []
    for sig in sigs:
        compat = compatibility(sig, fp)
        rec = Recommendation(
            schema_version=RECOMMENDATION_SCHEMA_VERSION,
            id=_recommendation_id(sig.id, canonical),
            signal_id=sig.id,
            compatibility=compat,
            effort=effort(sig, compat),
            risk=risk(sig, moment),
        )
        ranked.append((rec, sig.stars))

    ranked.sort(key=lambda pair: (-pair[0].compatibility, -pair[1], pair[0].id))
    return [rec for rec, _ in ranked]


def _recommendation_id(signal_id: str, canonical: bytes) -> str:
    digest = hashlib.sha256()
    digest.update(signal_id.encode("utf-8"))
    digest.update(b"|")
    digest.update(canonical)
    return "sha256:" + digest.hexdigest()


def _canonical_json(value: Any) -> str:
    """Compact JSON with stable key order, HTML-safe escaping and shortest floats."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(str(value), ensure_ascii=False).translate(_STRING_ESCAPES)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _encode_float(value)
    if isinstance(value, dict):
        items = ",".join(
            f"{_canonical_json(str(key))}:{_canonical_json(item)}" for key, item in value.items()
        )
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical_json(item) for item in value) + "]"
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


def _encode_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"unsupported float value: {value!r}")
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        return _SHORT_NEG_EXPONENT.sub(r"e-\1", repr(value))
    return format(Decimal(repr(value)).normalize(), "f")