"""Flat-file cache for the raw and cleaned datasets."""

import json
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from ..core.models import CleanedDataset, CleanedStudyRecord, StudyRecord
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DatasetCache:
    """
    JSON Lines cache so the network phase runs at most once.

    ``raw_studies.jsonl`` holds one row per topic x study match before
    normalization; ``clean_studies.jsonl`` one row per unique study after
    deduplication. Each file starts with a header line carrying the row count.
    Files are replaced whole and atomically, and a file that is missing or
    fails to parse is treated as absent.
    """

    RAW_FILENAME = "raw_studies.jsonl"
    CLEAN_FILENAME = "clean_studies.jsonl"

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.raw_path = self.cache_dir / self.RAW_FILENAME
        self.clean_path = self.cache_dir / self.CLEAN_FILENAME

    def _atomic_write(self, path: Path, header: Dict[str, Any], rows: Iterable[BaseModel]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(json.dumps(header, sort_keys=True) + "\n")
                for row in rows:
                    f.write(row.model_dump_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _read_lines(self, path: Path) -> List[str]:
        with open(path, encoding="utf-8") as f:
            return [line for line in f.read().splitlines() if line.strip()]

    @staticmethod
    def _parse_header(lines: List[str], kind: str) -> Dict[str, Any]:
        if not lines:
            raise ValueError("empty cache file")
        header = json.loads(lines[0])
        if not isinstance(header, dict):
            raise ValueError(f"header is not a JSON object: {lines[0][:40]!r}")
        if header.get("kind") != kind:
            raise ValueError(f"expected a {kind} cache, found {header.get('kind')!r}")
        if header.get("count") != len(lines) - 1:
            raise ValueError(f"header announces {header.get('count')} rows, file has {len(lines) - 1}")
        return header

    def save_raw(
        self,
        records: List[StudyRecord],
        window_start: Optional[date] = None,
        window_end: Optional[date] = None,
    ) -> Path:
        """Write the raw rows; the window is the one their topic queries used."""
        header: Dict[str, Any] = {"kind": "raw", "count": len(records)}
        if window_start is not None and window_end is not None:
            header["window_start"] = window_start.isoformat()
            header["window_end"] = window_end.isoformat()
        self._atomic_write(self.raw_path, header, records)
        logger.info(f"Cached {len(records)} raw rows to {self.raw_path}")
        return self.raw_path

    def load_raw(
        self,
        window_start: Optional[date] = None,
        window_end: Optional[date] = None,
    ) -> Optional[List[StudyRecord]]:
        """Return the cached raw rows, or None when absent or unreadable.

        When a window is given, rows fetched for a window that does not
        contain it are a miss too, since the missing years were never queried.
        """
        if not self.raw_path.exists():
            logger.info(f"Cache miss: {self.raw_path.name} not found")
            return None
        try:
            lines = self._read_lines(self.raw_path)
            header = self._parse_header(lines, "raw")
            records = [StudyRecord.model_validate_json(line) for line in lines[1:]]
            if window_start is not None and window_end is not None:
                cached_start = date.fromisoformat(header["window_start"])
                cached_end = date.fromisoformat(header["window_end"])
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable raw cache {self.raw_path}: {e}")
            return None
        if window_start is not None and window_end is not None:
            if window_start < cached_start or window_end > cached_end:
                logger.info(
                    f"Raw cache covers {cached_start} to {cached_end}, "
                    f"not {window_start} to {window_end}; treating as a miss"
                )
                return None
        logger.info(f"Loaded {len(records)} raw rows from cache")
        return records

    def save_clean(self, dataset: CleanedDataset) -> Path:
        header = {
            "kind": "clean",
            "count": len(dataset.records),
            "window_start": dataset.window_start.isoformat(),
            "window_end": dataset.window_end.isoformat(),
        }
        self._atomic_write(self.clean_path, header, dataset.records)
        logger.info(f"Cached {len(dataset.records)} clean rows to {self.clean_path}")
        return self.clean_path

    def load_clean(self) -> Optional[CleanedDataset]:
        if not self.clean_path.exists():
            logger.info(f"Cache miss: {self.clean_path.name} not found")
            return None
        try:
            lines = self._read_lines(self.clean_path)
            header = self._parse_header(lines, "clean")
            records = tuple(CleanedStudyRecord.model_validate_json(line) for line in lines[1:])
            dataset = CleanedDataset(
                records=records,
                window_start=date.fromisoformat(header["window_start"]),
                window_end=date.fromisoformat(header["window_end"]),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable clean cache {self.clean_path}: {e}")
            return None
        logger.info(f"Loaded {len(dataset)} clean rows from cache")
        return dataset

    def has_clean(self) -> bool:
        return self.load_clean() is not None

    def clear(self) -> None:
        for path in (self.raw_path, self.clean_path):
            if path.exists():
                path.unlink()
                logger.info(f"Removed {path}")
