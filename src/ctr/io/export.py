"""Tabular handoff of the cleaned dataset to chart and report generators."""

from pathlib import Path
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from ..core.models import CleanedDataset, CleanedStudyRecord
from ..utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_FORMATS = ("parquet", "csv")

# List-valued columns joined for CSV, which has no nested type.
_LIST_COLUMNS = (
    "conditions",
    "phase",
    "intervention_names",
    "location_countries",
    "topic_membership",
    "condition_labels",
    "countries",
)


def records_to_frame(records: Iterable[CleanedStudyRecord]) -> pd.DataFrame:
    """One row per study; dates become datetimes, absent numbers become nullable."""
    rows = [r.model_dump() for r in records]
    columns = list(CleanedStudyRecord.model_fields)
    df = pd.DataFrame(rows, columns=columns)
    for col in ("start_date", "completion_date"):
        df[col] = pd.to_datetime(df[col])
    for col in ("start_year", "enrollment_count", "topic_count"):
        df[col] = df[col].astype("Int64")
    for col in ("minimum_age_years", "maximum_age_years"):
        df[col] = df[col].astype("Float64")
    df["healthy_volunteers"] = df["healthy_volunteers"].astype("boolean")
    return df


def topic_membership_frame(dataset: CleanedDataset) -> pd.DataFrame:
    """Long format: one row per (study, topic) pair, for per-topic charts."""
    rows: List[Dict[str, object]] = [
        {"id": r.id, "topic": topic, "start_year": r.start_year, "topic_count": r.topic_count}
        for r in dataset.records
        for topic in r.topic_membership
    ]
    df = pd.DataFrame(rows, columns=["id", "topic", "start_year", "topic_count"])
    df["start_year"] = df["start_year"].astype("Int64")
    return df


def export_dataset(
    dataset: CleanedDataset,
    output_dir: Path,
    formats: Sequence[str] = SUPPORTED_FORMATS,
    stem: str = "clean_studies",
) -> List[Path]:
    unknown = [f for f in formats if f not in SUPPORTED_FORMATS]
    if unknown:
        raise ValueError(f"Unsupported export format(s): {', '.join(unknown)}")
    output_dir.mkdir(parents=True, exist_ok=True)
    df = records_to_frame(dataset.records)
    written: List[Path] = []
    if "parquet" in formats:
        path = output_dir / f"{stem}.parquet"
        df.to_parquet(path, index=False)
        written.append(path)
    if "csv" in formats:
        path = output_dir / f"{stem}.csv"
        flat = df.copy()
        for col in _LIST_COLUMNS:
            flat[col] = flat[col].map(lambda values: "; ".join(values))
        flat.to_csv(path, index=False)
        written.append(path)
    logger.info(f"Exported {len(df)} studies", extra={"paths": [str(p) for p in written]})
    return written
