"""Field normalization: raw registry strings to typed and canonical values.

Every parser here degrades to ``None`` on malformed input; nothing in this
module raises for bad data.
"""

import math
import re
from datetime import datetime, date
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import yaml

from .errors import FieldParseError
from .models import CleanedStudyRecord, StudyRecord
from ..utils.logging import get_logger

logger = get_logger(__name__)

_AGE_RE = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*(minute|hour|day|week|month|year)s?\s*$",
    re.IGNORECASE,
)
_ENROLLMENT_RE = re.compile(r"^\s*(\d[\d,]*)")
_DATE_FORMATS = ("%m/%d/%Y", "%B %d, %Y", "%B %Y", "%b %d, %Y", "%b %Y")


def parse_age_years(text: Optional[str]) -> Optional[float]:
    """Convert an eligibility age such as ``"18 Months"`` to whole years.

    Minute/Hour/Day/Week units collapse to 0. Months below 12 collapse to 0,
    otherwise they are floor-divided by 12. Years are taken as-is. Anything
    else, including ``"N/A"``, yields ``None`` (unknown), never 0.
    """
    if not text:
        return None
    match = _AGE_RE.match(str(text))
    if not match:
        return None
    magnitude = float(match.group(1))
    if not math.isfinite(magnitude):
        return None
    unit = match.group(2).lower()
    if unit in ("minute", "hour", "day", "week"):
        return 0.0
    if unit == "month":
        return 0.0 if magnitude < 12 else float(magnitude // 12)
    return magnitude


def format_age_years(value: Optional[float]) -> Optional[str]:
    """Render a derived age back to registry text; inverse of ``parse_age_years``."""
    if value is None:
        return None
    number = int(value) if float(value).is_integer() else value
    return f"{number} Years"


def _parse_date_strict(text: str) -> date:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise FieldParseError("date", text)


def parse_registry_date(text: Optional[str]) -> Optional[date]:
    """Parse a registry date (``MM/DD/YYYY`` or ``January 15, 2020`` style)."""
    if not text:
        return None
    text = " ".join(str(text).split())
    if not text:
        return None
    try:
        return _parse_date_strict(text)
    except FieldParseError:
        return None


def extract_year(date_obj: Optional[date]) -> Optional[int]:
    """Extract year from a date object."""
    return date_obj.year if date_obj else None


def parse_enrollment(text: Optional[str]) -> Optional[int]:
    """Take the leading integer token of an enrollment field (``"250 (Actual)"`` -> 250)."""
    if not text:
        return None
    match = _ENROLLMENT_RE.match(str(text))
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def parse_healthy_volunteers(text: Optional[str]) -> Optional[bool]:
    """Map the eligibility flag to True/False; unrecognized text yields ``None``."""
    if not text:
        return None
    value = str(text).strip().lower()
    if value in ("accepts healthy volunteers", "yes", "true"):
        return True
    if value in ("no", "false"):
        return False
    return None


def dedupe_preserving_order(values: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and repeats, keeping the first occurrence of each value."""
    seen = set()
    result: List[str] = []
    for value in values:
        if value is None:
            continue
        value = value.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def dedupe_countries(countries: Iterable[Optional[str]]) -> List[str]:
    """A study lists its country once per site; keep each country once."""
    return dedupe_preserving_order(countries)


class AliasRule:
    """Substring pattern mapped to a canonical label (case-insensitive)."""

    __slots__ = ("pattern", "label", "_needle")

    def __init__(self, pattern: str, label: str) -> None:
        if not pattern or not label:
            raise ValueError("alias rules need a non-empty pattern and label")
        self.pattern = pattern
        self.label = label
        self._needle = pattern.lower()

    def matches(self, value: str) -> bool:
        return self._needle in value.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AliasRule):
            return NotImplemented
        return (self.pattern, self.label) == (other.pattern, other.label)

    def __repr__(self) -> str:
        return f"AliasRule({self.pattern!r} -> {self.label!r})"


class AliasTable:
    """Ordered alias rules evaluated first-match-wins.

    A maintained lookup table: new aliases are added explicitly as data
    quality issues are found, nothing is inferred.
    """

    def __init__(self, rules: Sequence[Union[AliasRule, Tuple[str, str]]] = ()) -> None:
        self.rules: List[AliasRule] = [
            rule if isinstance(rule, AliasRule) else AliasRule(*rule) for rule in rules
        ]

    def __len__(self) -> int:
        return len(self.rules)

    def resolve(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        for rule in self.rules:
            if rule.matches(value):
                return rule.label
        return value

    def resolve_all(self, values: Iterable[Optional[str]]) -> List[str]:
        return dedupe_preserving_order(self.resolve(v) for v in values)

    @classmethod
    def from_yaml(cls, path: Path) -> "AliasTable":
        """Load rules from a YAML list of ``{pattern: ..., label: ...}`` mappings."""
        with open(path) as f:
            data = yaml.safe_load(f) or []
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of alias rules")
        rules = []
        for i, entry in enumerate(data):
            if not isinstance(entry, dict) or "pattern" not in entry or "label" not in entry:
                raise ValueError(f"{path}: rule {i} needs 'pattern' and 'label'")
            rules.append(AliasRule(str(entry["pattern"]), str(entry["label"])))
        logger.info(f"Loaded {len(rules)} alias rules from {path}")
        return cls(rules)


def normalize(
    record: StudyRecord,
    sponsor_aliases: Optional[AliasTable] = None,
    condition_aliases: Optional[AliasTable] = None,
) -> CleanedStudyRecord:
    """Derive typed and canonical columns for one raw study row.

    Topic membership starts as the row's own matched topic; the deduplicator
    merges memberships across rows sharing an id.
    """
    sponsor_aliases = sponsor_aliases or AliasTable()
    condition_aliases = condition_aliases or AliasTable()

    start_date = parse_registry_date(record.start_date_raw)
    membership = [record.matched_topic] if record.matched_topic else []
    return CleanedStudyRecord(
        **record.model_dump(),
        topic_membership=membership,
        topic_count=len(membership),
        start_date=start_date,
        completion_date=parse_registry_date(record.completion_date_raw),
        start_year=extract_year(start_date),
        minimum_age_years=parse_age_years(record.minimum_age_raw),
        maximum_age_years=parse_age_years(record.maximum_age_raw),
        enrollment_count=parse_enrollment(record.enrollment_count_raw),
        sponsor=sponsor_aliases.resolve(record.lead_sponsor_name),
        condition_labels=condition_aliases.resolve_all(record.conditions),
        countries=dedupe_countries(record.location_countries),
        healthy_volunteers=parse_healthy_volunteers(record.accepts_healthy_volunteers),
    )
