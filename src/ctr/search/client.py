"""ClinicalTrials.gov study-fields client with rank-range pagination and a fixed request delay."""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from ..config.settings import settings
from ..core.errors import RemoteServiceError
from ..core.models import StudyRecord
from ..utils.logging import get_logger
from ..utils.rate_limit import FixedDelayThrottle
from .query_builder import MAX_PAGE_SIZE, PageRange

logger = get_logger(__name__)

# The registry rejects projections with more fields than this.
MAX_FIELDS = 20


class ClinicalTrialsClient:
    """Sequential client for the registry's field-projection endpoint.

    Requests are never issued concurrently. Before every request after the
    client's first, the throttle sleeps ``delay`` seconds; there is no retry,
    so any failure surfaces as :class:`RemoteServiceError`.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        delay: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url or settings.api_base_url
        self.throttle = FixedDelayThrottle(
            settings.request_delay if delay is None else delay, sleep=sleep
        )
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(
            timeout=timeout or settings.request_timeout,
            headers={"User-Agent": settings.user_agent},
        )
        self._pages_fetched = 0

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def _get_envelope(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.throttle.wait()
        try:
            response = self.client.get(self.base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error: {e.response.status_code}")
            raise RemoteServiceError(
                "Registry returned a non-success status",
                url=str(e.request.url),
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Registry unreachable: {e}")
            raise RemoteServiceError(f"Registry unreachable: {e}", url=self.base_url) from e
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServiceError("Registry response is not valid JSON", url=str(response.url)) from e
        envelope = data.get("StudyFieldsResponse") if isinstance(data, dict) else None
        if not isinstance(envelope, dict):
            raise RemoteServiceError("Response has no StudyFieldsResponse envelope", url=str(response.url))
        return envelope

    @staticmethod
    def _total(envelope: Dict[str, Any]) -> int:
        try:
            total = int(envelope["NStudiesFound"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteServiceError("Envelope has no usable NStudiesFound count") from e
        if total < 0:
            raise RemoteServiceError(f"Envelope reports a negative match count: {total}")
        return total

    def count_matches(self, search_expression: str) -> int:
        """Return the number of studies matching ``search_expression``.

        Issues a single-record request projecting only the identifier.
        """
        envelope = self._get_envelope(
            {
                "expr": search_expression,
                "fields": "NCTId",
                "min_rnk": 1,
                "max_rnk": 1,
                "fmt": "json",
            }
        )
        total = self._total(envelope)
        logger.info("Counted matches", extra={"expression": search_expression, "total": total})
        return total

    def fetch_page(self, search_expression: str, fields: Sequence[str], page: PageRange) -> List[StudyRecord]:
        min_rank, max_rank = page
        envelope = self._get_envelope(
            {
                "expr": search_expression,
                "fields": ",".join(fields),
                "min_rnk": min_rank,
                "max_rnk": max_rank,
                "fmt": "json",
            }
        )
        items = envelope.get("StudyFields")
        if items is None and self._total(envelope) == 0:
            items = []
        if not isinstance(items, list):
            raise RemoteServiceError(f"Page {min_rank}-{max_rank} has no StudyFields array")
        try:
            return [StudyRecord.from_api_fields(item) for item in items]
        except (AttributeError, ValueError) as e:
            raise RemoteServiceError(f"Malformed study in page {min_rank}-{max_rank}: {e}") from e

    def fetch_all(
        self,
        search_expression: str,
        fields: Sequence[str],
        page_ranges: Sequence[PageRange],
        delay: Optional[float] = None,
    ) -> List[StudyRecord]:
        """Fetch every page in order and concatenate the records.

        Field-count mistakes are reported before any request is made. A
        failing page aborts the whole acquisition; there is no skip-and-continue.
        """
        fields = list(fields)
        if not fields:
            raise ValueError("At least one field must be requested")
        if len(fields) > MAX_FIELDS:
            raise ValueError(f"The registry serves at most {MAX_FIELDS} fields per request, got {len(fields)}")
        for min_rank, max_rank in page_ranges:
            if min_rank < 1 or max_rank < min_rank or max_rank - min_rank + 1 > MAX_PAGE_SIZE:
                raise ValueError(f"Invalid rank range {min_rank}-{max_rank}")
        if delay is not None:
            if delay < 0:
                raise ValueError(f"delay must be non-negative, got {delay}")
            self.throttle.delay = delay

        records: List[StudyRecord] = []
        logger.info(
            "Starting registry fetch",
            extra={"expression": search_expression, "pages": len(page_ranges), "fields": len(fields)},
        )
        for index, page in enumerate(page_ranges, 1):
            page_records = self.fetch_page(search_expression, fields, page)
            records.extend(page_records)
            self._pages_fetched += 1
            logger.info(
                f"Fetched page {index}/{len(page_ranges)}",
                extra={"min_rank": page[0], "max_rank": page[1], "records": len(records)},
            )
        logger.info("Fetch completed", extra={"total_records": len(records), "pages_fetched": self._pages_fetched})
        return records

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
