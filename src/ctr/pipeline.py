"""Stage wiring: acquire -> cache raw -> normalize -> deduplicate -> cache clean.

Each stage consumes the fully materialized output of the previous one. The
clean cache short-circuits the whole run and the raw cache short-circuits
acquisition, so the network phase runs at most once per cache directory.
"""

from typing import List, Optional, Sequence, Tuple

from .config.aliases import load_alias_tables
from .config.settings import Settings, settings as default_settings
from .config.topics import load_topics
from .core.models import CleanedDataset, DuplicateGroup, StudyRecord, TopicQuery
from .core.normalization import AliasTable, normalize
from .dedup.deduplicator import Deduplicator
from .io.cache import DatasetCache
from .search.client import ClinicalTrialsClient
from .search.orchestrator import AcquisitionOrchestrator
from .utils.logging import get_logger

logger = get_logger(__name__)


def resolve_topics(settings: Settings) -> List[TopicQuery]:
    return load_topics(settings.topics_file, start=settings.window_start, end=settings.window_end)


def acquire_raw(
    topics: Sequence[TopicQuery],
    client: ClinicalTrialsClient,
    settings: Settings = default_settings,
) -> List[StudyRecord]:
    orchestrator = AcquisitionOrchestrator(client, page_size=settings.page_size)
    return orchestrator.acquire(topics)


def clean_records(
    raw: Sequence[StudyRecord],
    settings: Settings = default_settings,
    sponsor_aliases: Optional[AliasTable] = None,
    condition_aliases: Optional[AliasTable] = None,
) -> Tuple[CleanedDataset, List[DuplicateGroup]]:
    if sponsor_aliases is None or condition_aliases is None:
        default_sponsors, default_conditions = load_alias_tables(
            settings.sponsor_aliases_file, settings.condition_aliases_file
        )
        if sponsor_aliases is None:
            sponsor_aliases = default_sponsors
        if condition_aliases is None:
            condition_aliases = default_conditions
    normalized = [normalize(r, sponsor_aliases, condition_aliases) for r in raw]
    deduplicator = Deduplicator(settings.window_start, settings.window_end)
    records, duplicates = deduplicator.deduplicate(normalized)
    dataset = CleanedDataset(
        records=tuple(records),
        window_start=settings.window_start,
        window_end=settings.window_end,
    )
    return dataset, duplicates


def run_pipeline(
    settings: Settings = default_settings,
    topics: Optional[Sequence[TopicQuery]] = None,
    client: Optional[ClinicalTrialsClient] = None,
    cache: Optional[DatasetCache] = None,
    refresh: bool = False,
) -> CleanedDataset:
    """Produce the cleaned dataset, reusing whichever cache stage is valid.

    ``refresh`` discards both caches first. A failed acquisition raises
    before anything is written.
    """
    cache = cache or DatasetCache(settings.cache_dir)
    if refresh:
        cache.clear()

    dataset = cache.load_clean()
    if dataset is not None:
        if (dataset.window_start, dataset.window_end) == (settings.window_start, settings.window_end):
            logger.info("Using cached clean dataset")
            return dataset
        logger.info("Cached clean dataset was built for another window; re-cleaning")

    raw = cache.load_raw(settings.window_start, settings.window_end)
    if raw is None:
        topic_list = list(topics) if topics is not None else resolve_topics(settings)
        owns_client = client is None
        client = client or ClinicalTrialsClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            delay=settings.request_delay,
        )
        try:
            raw = acquire_raw(topic_list, client, settings)
        finally:
            if owns_client:
                client.close()
        cache.save_raw(raw, settings.window_start, settings.window_end)

    dataset, duplicates = clean_records(raw, settings)
    cache.save_clean(dataset)
    logger.info(
        f"Pipeline complete: {len(raw)} raw rows -> {len(dataset)} studies",
        extra={"multi_topic_studies": len(duplicates)},
    )
    return dataset
