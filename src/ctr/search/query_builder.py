"""Search expression building and rank-range page planning."""

from typing import List, NamedTuple, Protocol, Tuple

from ..core.models import TopicQuery
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Largest rank window the registry serves in one request.
MAX_PAGE_SIZE = 1000

PageRange = Tuple[int, int]


class CountingClient(Protocol):
    def count_matches(self, search_expression: str) -> int: ...


class PagePlan(NamedTuple):
    """Everything the paginator needs to fetch one topic."""
    topic: TopicQuery
    expression: str
    total: int
    pages: List[PageRange]


def build_search_expression(topic: TopicQuery) -> str:
    """Combine the study-type filter, date-range filter and keyword clause with AND.

    The keyword clause is parenthesised so its own OR/AND structure binds
    before the outer conjunction.
    """
    start = topic.date_range.start.strftime("%m/%d/%Y")
    end = topic.date_range.end.strftime("%m/%d/%Y")
    clauses = [
        f"AREA[StudyType]{topic.study_type_filter}",
        f"AREA[StartDate]RANGE[{start}, {end}]",
        f"({topic.search_terms})",
    ]
    return " AND ".join(clauses)


def plan_pages(total: int, page_size: int = MAX_PAGE_SIZE) -> List[PageRange]:
    """Partition the 1-based inclusive rank range ``[1, total]`` into pages.

    Pages are contiguous, ordered and at most ``page_size`` long; only the
    last may be shorter. ``total == 0`` yields no pages.
    """
    if total < 0:
        raise ValueError(f"total must be non-negative, got {total}")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
    return [
        (min_rank, min(min_rank + page_size - 1, total))
        for min_rank in range(1, total + 1, page_size)
    ]


class QueryPlanner:
    """Turn a topic into a search expression, a match count and page ranges."""

    def __init__(self, client: CountingClient, page_size: int = MAX_PAGE_SIZE) -> None:
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
        self.client = client
        self.page_size = page_size

    def plan(self, topic: TopicQuery) -> PagePlan:
        expression = build_search_expression(topic)
        total = self.client.count_matches(expression)
        pages = plan_pages(total, self.page_size)
        logger.info(
            f"Planned {len(pages)} pages for topic {topic.name}",
            extra={"topic": topic.name, "total": total, "pages": len(pages)},
        )
        return PagePlan(topic=topic, expression=expression, total=total, pages=pages)
