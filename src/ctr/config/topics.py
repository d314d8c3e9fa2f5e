"""Static table of therapeutic areas searched by the report."""

from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.models import DateRange, TopicQuery
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOPIC_TERMS: Dict[str, List[str]] = {
    "Oncology": ["cancer", "tumor", "neoplasm", "carcinoma", "lymphoma", "leukemia", "melanoma"],
    "Cardiovascular": ["heart", "cardiac", "cardiovascular", "hypertension", "coronary", "stroke"],
    "Infectious Disease": ["infection", "virus", "viral", "bacterial", "HIV", "COVID-19", "hepatitis"],
    "Neurology": ["alzheimer", "parkinson", "epilepsy", "dementia", "multiple sclerosis", "migraine"],
    "Metabolic": ["diabetes", "obesity", "insulin", "metabolic syndrome"],
    "Mental Health": ["depression", "anxiety", "schizophrenia", "bipolar", "PTSD"],
    "Respiratory": ["asthma", "COPD", "pulmonary", "cystic fibrosis"],
}


def default_topics(date_range: DateRange) -> List[TopicQuery]:
    return [TopicQuery.from_terms(name, terms, date_range) for name, terms in DEFAULT_TOPIC_TERMS.items()]


def _topic_from_entry(entry: Dict[str, Any], date_range: DateRange) -> TopicQuery:
    if "name" not in entry:
        raise ValueError(f"topic entry without a name: {entry!r}")
    if entry.get("start") or entry.get("end"):
        date_range = DateRange(
            start=entry.get("start") or date_range.start,
            end=entry.get("end") or date_range.end,
        )
    if "expression" in entry:
        return TopicQuery(name=entry["name"], search_terms=entry["expression"], date_range=date_range)
    return TopicQuery.from_terms(
        entry["name"],
        entry.get("terms") or [],
        date_range,
        operator=entry.get("operator", "OR"),
    )


def load_topics(
    path: Optional[Path] = None,
    start: date = date(2010, 1, 1),
    end: date = date(2021, 12, 31),
) -> List[TopicQuery]:
    """Load topics from YAML, falling back to the built-in table.

    Each YAML entry has a ``name`` and either an ``expression`` (used
    verbatim) or a ``terms`` list joined with ``operator`` (OR by default).
    Optional ``start``/``end`` override the acquisition window per topic.
    """
    date_range = DateRange(start=start, end=end)
    if path is None:
        topics = default_topics(date_range)
    else:
        with open(path) as f:
            data = yaml.safe_load(f) or []
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of topics")
        topics = [_topic_from_entry(entry, date_range) for entry in data]
        logger.info(f"Loaded {len(topics)} topics from {path}")
    names = [t.name for t in topics]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate topic names: {', '.join(duplicates)}")
    return topics
