"""Merge studies matched by several topics and apply the acquisition window."""

from datetime import date
from typing import Dict, List, Set, Tuple

from ..core.models import CleanedStudyRecord, DuplicateGroup
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Fields that legitimately differ between rows of the same study.
_MEMBERSHIP_FIELDS = {"matched_topic", "topic_membership", "topic_count"}


class Deduplicator:
    """
    Collapse rows sharing a registry id into one record.

    Strategy:
    1. Group by ``id`` in first-seen order
    2. Union the topic memberships of the group
    3. Keep every other field from the first row encountered
    4. Drop studies whose start year falls outside the window

    Rows of one study are expected to be field-identical. When they are not,
    the first row still wins: disagreements are reported on the returned
    :class:`DuplicateGroup` entries and logged, never merged.
    """

    def __init__(self, window_start: date, window_end: date) -> None:
        if window_start > window_end:
            raise ValueError("window_start must not be after window_end")
        self.window_start = window_start
        self.window_end = window_end

    def in_window(self, record: CleanedStudyRecord) -> bool:
        """Studies without a parsed start date are kept."""
        if record.start_year is None:
            return True
        return self.window_start.year <= record.start_year <= self.window_end.year

    @staticmethod
    def _conflicting_fields(first: CleanedStudyRecord, other: CleanedStudyRecord) -> Set[str]:
        a = first.model_dump(exclude=_MEMBERSHIP_FIELDS)
        b = other.model_dump(exclude=_MEMBERSHIP_FIELDS)
        return {key for key in a if a[key] != b.get(key)}

    def deduplicate(
        self, records: List[CleanedStudyRecord]
    ) -> Tuple[List[CleanedStudyRecord], List[DuplicateGroup]]:
        logger.info(f"Starting deduplication of {len(records)} records")
        groups: Dict[str, List[CleanedStudyRecord]] = {}
        for record in records:
            groups.setdefault(record.id, []).append(record)

        merged: List[CleanedStudyRecord] = []
        duplicates: List[DuplicateGroup] = []
        for study_id, members in groups.items():
            first = members[0]
            topics: Set[str] = set()
            for member in members:
                topics.update(member.topic_membership)
            membership = sorted(topics)
            if len(members) > 1:
                conflicts: Set[str] = set()
                for other in members[1:]:
                    conflicts |= self._conflicting_fields(first, other)
                if conflicts:
                    logger.warning(
                        f"Rows for {study_id} disagree on {', '.join(sorted(conflicts))}; keeping the first",
                        extra={"study_id": study_id},
                    )
                duplicates.append(
                    DuplicateGroup(
                        study_id=study_id,
                        topics=membership,
                        occurrences=len(members),
                        conflicting_fields=sorted(conflicts),
                    )
                )
            merged.append(
                first.model_copy(update={"topic_membership": membership, "topic_count": len(membership)})
            )
        logger.info(f"Grouping: {len(records)} -> {len(merged)} unique studies, {len(duplicates)} multi-topic")

        kept = [r for r in merged if self.in_window(r)]
        logger.info(
            f"Window filter {self.window_start.year}-{self.window_end.year}: dropped {len(merged) - len(kept)} studies"
        )
        return kept, duplicates
