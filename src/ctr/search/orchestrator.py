"""Acquisition across all topics: plan, page through, tag with the matching topic."""

from typing import Callable, Dict, List, Optional, Sequence

from ..core.models import DEFAULT_FIELDS, StudyRecord, TopicQuery
from ..utils.logging import get_logger
from .client import ClinicalTrialsClient
from .query_builder import MAX_PAGE_SIZE, PagePlan, QueryPlanner

logger = get_logger(__name__)


class AcquisitionOrchestrator:
    """Fetch every topic's matches in turn, strictly sequentially.

    The result keeps one row per topic x study match; the same study id may
    appear under several topics. A ``RemoteServiceError`` from any topic
    propagates and ends the run.
    """

    def __init__(
        self,
        client: ClinicalTrialsClient,
        page_size: int = MAX_PAGE_SIZE,
        fields: Optional[Sequence[str]] = None,
    ) -> None:
        self.client = client
        self.planner = QueryPlanner(client, page_size=page_size)
        self.fields = list(fields or DEFAULT_FIELDS)
        self.topic_totals: Dict[str, int] = {}

    def acquire_topic(self, topic: TopicQuery) -> List[StudyRecord]:
        plan: PagePlan = self.planner.plan(topic)
        self.topic_totals[topic.name] = plan.total
        if not plan.pages:
            logger.info(f"No matches for topic {topic.name}")
            return []
        records = self.client.fetch_all(plan.expression, self.fields, plan.pages)
        if len(records) != plan.total:
            logger.warning(
                f"Topic {topic.name}: registry reported {plan.total} matches but returned {len(records)}",
                extra={"topic": topic.name},
            )
        return [r.model_copy(update={"matched_topic": topic.name}) for r in records]

    def acquire(
        self,
        topics: Sequence[TopicQuery],
        on_topic_done: Optional[Callable[[TopicQuery, int], None]] = None,
    ) -> List[StudyRecord]:
        names = [t.name for t in topics]
        if len(set(names)) != len(names):
            raise ValueError("Topic names must be unique")
        all_records: List[StudyRecord] = []
        for topic in topics:
            logger.info(f"Acquiring topic {topic.name}")
            records = self.acquire_topic(topic)
            all_records.extend(records)
            if on_topic_done:
                on_topic_done(topic, len(records))
        logger.info(
            f"Acquisition complete: {len(all_records)} topic matches across {len(topics)} topics",
            extra={"topic_totals": self.topic_totals},
        )
        return all_records
