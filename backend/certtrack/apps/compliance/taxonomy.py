"""
Course label analysis.

External and internal course labels look like

    SPPIVT T717 Machines and Machine Guarding - PARENT (OL)(13458)

and carry three useful facts: a taxonomy code (``T717``), delivery / role
tags (``PARENT``, ``IL``, ``OL``, ``OJT``) and a trailing LMS course id.
Every helper here is total: a label without the fact yields ``None`` (or
``STANDARD`` for the variant), never an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple

TCODE_RE = re.compile(r"\b([Tt]\d{3,}[A-Za-z]?)\b")
TRAILING_ID_RE = re.compile(r"\((\d+)\)\s*$")

VARIANT_TOKENS = ("PARENT", "IL", "OL", "OJT")
STANDARD_VARIANT = "STANDARD"

_VARIANT_RES = tuple(
    (token, re.compile(rf"\b{token}\b", re.IGNORECASE)) for token in VARIANT_TOKENS
)


@dataclass(frozen=True)
class Taxonomy:
    code: Optional[str]
    variant: str


def extract_tcode(label: Optional[str]) -> Optional[str]:
    if not isinstance(label, str) or not label:
        return None
    match = TCODE_RE.search(label)
    return match.group(1).upper() if match else None


def extract_variant(label: Optional[str]) -> str:
    if not isinstance(label, str) or not label:
        return STANDARD_VARIANT
    found = [token for token, pattern in _VARIANT_RES if pattern.search(label)]
    return "/".join(found) if found else STANDARD_VARIANT


def extract_taxonomy(label: Optional[str]) -> Taxonomy:
    return Taxonomy(code=extract_tcode(label), variant=extract_variant(label))


def extract_course_id(label: Optional[str]) -> Optional[str]:
    """Digits of a trailing parenthetical such as ``...(13458)``."""
    if not isinstance(label, str) or not label:
        return None
    match = TRAILING_ID_RE.search(label)
    return match.group(1) if match else None


def variant_rank(variant: str) -> int:
    """
    Display order used by the duplicate review screen:
    PARENT, IL only, IL+OL, OL only, OJT, STANDARD.
    """
    tokens = set(variant.split("/")) if variant else set()
    if "PARENT" in tokens:
        return 0
    if "IL" in tokens and "OL" in tokens:
        return 2
    if "IL" in tokens:
        return 1
    if "OL" in tokens:
        return 3
    if "OJT" in tokens:
        return 4
    return 5


def _tcode_number(code: str) -> int:
    digits = re.sub(r"\D", "", code)
    return int(digits) if digits else 0


# ---------------------------------------------------------------------------
# DUPLICATE COURSE BUCKETS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BucketEntry:
    course_id: str
    label: str
    variant: str
    usage_count: int
    action: str = "pending"
    merge_into: Optional[str] = None
    rename_to: Optional[str] = None


@dataclass(frozen=True)
class CourseBucket:
    code: str
    entries: Tuple[BucketEntry, ...] = field(default_factory=tuple)

    @property
    def total_usage(self) -> int:
        return sum(entry.usage_count for entry in self.entries)


def bucket_duplicate_courses(
    courses: Iterable[Tuple[str, str]],
    usage_counts: Optional[Mapping[str, int]] = None,
    decisions: Optional[Mapping[str, object]] = None,
) -> List[CourseBucket]:
    """
    Group (course_id, label) pairs by taxonomy code for duplicate review.

    Only codes shared by more than one course are returned. Buckets are
    ordered by the numeric part of the code; entries by variant rank, then
    descending usage, then course id. ``decisions`` maps course ids to any
    object with ``action`` / ``merge_into_course_id`` / ``rename_to``.
    """
    usage_counts = usage_counts or {}
    decisions = decisions or {}

    by_code: dict = {}
    for course_id, label in courses:
        taxonomy = extract_taxonomy(label)
        if taxonomy.code is None:
            continue
        decision = decisions.get(course_id)
        action = getattr(decision, "action", None) or "pending"
        by_code.setdefault(taxonomy.code, []).append(
            BucketEntry(
                course_id=course_id,
                label=label,
                variant=taxonomy.variant,
                usage_count=int(usage_counts.get(course_id, 0)),
                action=getattr(action, "value", action),
                merge_into=getattr(decision, "merge_into_course_id", None),
                rename_to=getattr(decision, "rename_to", None),
            )
        )

    buckets = []
    for code, entries in by_code.items():
        if len(entries) < 2:
            continue
        entries.sort(key=lambda e: (variant_rank(e.variant), -e.usage_count, e.course_id))
        buckets.append(CourseBucket(code=code, entries=tuple(entries)))

    buckets.sort(key=lambda b: (_tcode_number(b.code), b.code))
    return buckets
