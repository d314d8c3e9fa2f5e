"""Core domain models for topics, registry studies and the cleaned dataset."""

from datetime import date
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Registry field name -> StudyRecord attribute. The registry caps a projection
# at 20 fields; this mapping is exactly that many.
API_FIELD_MAP: Dict[str, str] = {
    "NCTId": "id",
    "BriefTitle": "title",
    "BriefSummary": "summary",
    "Condition": "conditions",
    "StudyType": "study_type",
    "Phase": "phase",
    "Gender": "gender",
    "MinimumAge": "minimum_age_raw",
    "MaximumAge": "maximum_age_raw",
    "LeadSponsorName": "lead_sponsor_name",
    "EnrollmentCount": "enrollment_count_raw",
    "DesignInterventionModel": "intervention_model",
    "DesignPrimaryPurpose": "primary_purpose",
    "InterventionName": "intervention_names",
    "HealthyVolunteers": "accepts_healthy_volunteers",
    "LocationCountry": "location_countries",
    "StartDate": "start_date_raw",
    "CompletionDate": "completion_date_raw",
    "WhyStopped": "why_stopped",
    "RetractionPMID": "retraction_reference",
}

DEFAULT_FIELDS: List[str] = list(API_FIELD_MAP)

_LIST_ATTRS = {"conditions", "phase", "intervention_names", "location_countries"}


class DateRange(BaseModel):
    """Inclusive calendar date range."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    def contains_year(self, year: int) -> bool:
        return self.start.year <= year <= self.end.year


class TopicQuery(BaseModel):
    """One therapeutic area of interest and its keyword expression."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    search_terms: str = Field(..., min_length=1, description="Boolean expression over free-text keywords")
    date_range: DateRange
    study_type_filter: Literal["Interventional"] = "Interventional"

    @classmethod
    def from_terms(
        cls,
        name: str,
        terms: Sequence[str],
        date_range: DateRange,
        operator: str = "OR",
    ) -> "TopicQuery":
        """Build a topic by joining keywords with a single boolean operator.

        Multi-word keywords are quoted so the registry treats them as phrases.
        """
        operator = operator.strip().upper()
        if operator not in ("OR", "AND"):
            raise ValueError(f"operator must be OR or AND, got {operator!r}")
        cleaned = [t.strip() for t in terms if t and t.strip()]
        if not cleaned:
            raise ValueError(f"topic {name!r} has no search terms")
        quoted = [f'"{t}"' if " " in t and not t.startswith('"') else t for t in cleaned]
        return cls(name=name, search_terms=f" {operator} ".join(quoted), date_range=date_range)


class StudyRecord(BaseModel):
    """One registry entry as returned for the projected fields."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Registry identifier (NCT number)")
    title: Optional[str] = None
    summary: Optional[str] = None
    conditions: List[str] = Field(default_factory=list)
    study_type: Optional[str] = None
    phase: List[str] = Field(default_factory=list)
    gender: Optional[str] = None
    minimum_age_raw: Optional[str] = None
    maximum_age_raw: Optional[str] = None
    lead_sponsor_name: Optional[str] = None
    enrollment_count_raw: Optional[str] = None
    intervention_model: Optional[str] = None
    primary_purpose: Optional[str] = None
    intervention_names: List[str] = Field(default_factory=list)
    accepts_healthy_volunteers: Optional[str] = None
    location_countries: List[str] = Field(default_factory=list)
    start_date_raw: Optional[str] = None
    completion_date_raw: Optional[str] = None
    why_stopped: Optional[str] = None
    retraction_reference: Optional[str] = None

    # Topic whose query returned this row; one raw row per topic x study match
    matched_topic: Optional[str] = None

    @classmethod
    def from_api_fields(cls, payload: Dict[str, Any]) -> "StudyRecord":
        """Build a record from one element of the registry's ``StudyFields`` array.

        Every registry value arrives as a list; scalar attributes keep the
        first non-empty entry. Raises ``ValueError`` if the identifier is missing.
        """
        data: Dict[str, Any] = {}
        for api_name, attr in API_FIELD_MAP.items():
            value = payload.get(api_name)
            if value is None:
                continue
            values = value if isinstance(value, list) else [value]
            values = [str(v).strip() for v in values if v is not None and str(v).strip()]
            if attr in _LIST_ATTRS:
                data[attr] = values
            elif values:
                data[attr] = values[0]
        if not data.get("id"):
            raise ValueError(f"Study payload without NCTId (rank={payload.get('Rank')})")
        return cls(**data)


class CleanedStudyRecord(StudyRecord):
    """Study record with typed, canonical and topic-membership columns."""

    topic_membership: List[str] = Field(default_factory=list)
    topic_count: int = Field(0, ge=0)

    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    start_year: Optional[int] = None
    minimum_age_years: Optional[float] = Field(None, ge=0)
    maximum_age_years: Optional[float] = Field(None, ge=0)
    enrollment_count: Optional[int] = Field(None, ge=0)

    # Canonical columns
    sponsor: Optional[str] = None
    condition_labels: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    healthy_volunteers: Optional[bool] = None

    @field_validator("topic_membership")
    @classmethod
    def _sort_membership(cls, v: List[str]) -> List[str]:
        """Keep membership as a sorted set so serialization is deterministic."""
        return sorted(set(v))

    @model_validator(mode="after")
    def _check_topic_count(self) -> "CleanedStudyRecord":
        if self.topic_count != len(self.topic_membership):
            raise ValueError(
                f"topic_count={self.topic_count} does not match {len(self.topic_membership)} topics"
            )
        return self


class DuplicateGroup(BaseModel):
    """Audit entry for a study id returned by more than one topic query."""
    study_id: str
    topics: List[str]
    occurrences: int = Field(..., ge=2)
    conflicting_fields: List[str] = Field(default_factory=list)


class CleanedDataset(BaseModel):
    """Immutable cleaned dataset handed to downstream report generators."""
    model_config = ConfigDict(frozen=True)

    records: Tuple[CleanedStudyRecord, ...] = ()
    window_start: date
    window_end: date

    def __len__(self) -> int:
        return len(self.records)

    def ids(self) -> List[str]:
        return [r.id for r in self.records]

    def topic_counts(self) -> Dict[str, int]:
        """Number of studies per topic; multi-topic studies count once per topic."""
        counts: Dict[str, int] = {}
        for record in self.records:
            for topic in record.topic_membership:
                counts[topic] = counts.get(topic, 0) + 1
        return dict(sorted(counts.items()))

    def to_frame(self):
        """Return the records as a pandas DataFrame (one row per study)."""
        from ..io.export import records_to_frame
        return records_to_frame(self.records)
