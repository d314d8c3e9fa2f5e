"""Unit tests for the JSON Lines dataset cache."""

import json
from datetime import date

import pytest

from ctr.core.models import CleanedDataset, CleanedStudyRecord, StudyRecord
from ctr.io.cache import DatasetCache


@pytest.fixture
def cache(tmp_path) -> DatasetCache:
    return DatasetCache(tmp_path / "cache")


@pytest.fixture
def raw_records():
    return [
        StudyRecord(id="NCT1", title="First", conditions=["Asthma"], matched_topic="Respiratory"),
        StudyRecord(id="NCT2", title="Second", start_date_raw="March 2014", matched_topic="Respiratory"),
    ]


@pytest.fixture
def dataset() -> CleanedDataset:
    record = CleanedStudyRecord(
        id="NCT1",
        title="First",
        topic_membership=["Respiratory", "Infectious Disease"],
        topic_count=2,
        start_date=date(2014, 3, 1),
        start_year=2014,
        enrollment_count=120,
        minimum_age_years=18.0,
        countries=["Canada", "France"],
    )
    return CleanedDataset(records=(record,), window_start=date(2010, 1, 1), window_end=date(2021, 12, 31))


class TestRawCache:
    def test_roundtrip(self, cache, raw_records) -> None:
        cache.save_raw(raw_records)
        assert cache.load_raw() == raw_records

    def test_missing_is_absent(self, cache) -> None:
        assert cache.load_raw() is None

    def test_header_line(self, cache, raw_records) -> None:
        path = cache.save_raw(raw_records)
        header = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
        assert header == {"kind": "raw", "count": 2}

    def test_truncated_file_is_absent(self, cache, raw_records) -> None:
        """Test a header announcing more rows than present invalidates the file."""
        path = cache.save_raw(raw_records)
        lines = path.read_text(encoding="utf-8").splitlines()
        path.write_text("\n".join(lines[:-1]) + "\n", encoding="utf-8")
        assert cache.load_raw() is None

    def test_corrupt_row_is_absent(self, cache, raw_records) -> None:
        path = cache.save_raw(raw_records)
        with open(path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
        assert cache.load_raw() is None

    @pytest.mark.parametrize("header", ["[1, 2]", "5", '"raw"', "null"])
    def test_non_object_header_is_absent(self, cache, header) -> None:
        cache.raw_path.write_text(header + "\n", encoding="utf-8")
        assert cache.load_raw() is None

    def test_undecodable_file_is_absent(self, cache) -> None:
        cache.raw_path.write_bytes(b"\xff\xfe garbage\n")
        assert cache.load_raw() is None

    def test_window_recorded_in_header(self, cache, raw_records) -> None:
        path = cache.save_raw(raw_records, date(2010, 1, 1), date(2021, 12, 31))
        header = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
        assert header["window_start"] == "2010-01-01"
        assert header["window_end"] == "2021-12-31"

    def test_contained_window_hits(self, cache, raw_records) -> None:
        cache.save_raw(raw_records, date(2010, 1, 1), date(2021, 12, 31))
        assert cache.load_raw(date(2012, 1, 1), date(2018, 12, 31)) == raw_records

    def test_wider_window_misses(self, cache, raw_records) -> None:
        """Test rows fetched for a narrower window do not stand in for a wider one."""
        cache.save_raw(raw_records, date(2010, 1, 1), date(2021, 12, 31))
        assert cache.load_raw(date(2010, 1, 1), date(2024, 12, 31)) is None
        assert cache.load_raw(date(2005, 1, 1), date(2021, 12, 31)) is None

    def test_window_unknown_misses(self, cache, raw_records) -> None:
        cache.save_raw(raw_records)
        assert cache.load_raw(date(2010, 1, 1), date(2021, 12, 31)) is None
        assert cache.load_raw() == raw_records

    def test_clean_file_is_not_a_raw_cache(self, cache, dataset) -> None:
        cache.save_clean(dataset)
        cache.clean_path.replace(cache.raw_path)
        assert cache.load_raw() is None


class TestCleanCache:
    def test_roundtrip(self, cache, dataset) -> None:
        cache.save_clean(dataset)
        loaded = cache.load_clean()
        assert loaded == dataset
        assert loaded.records[0].topic_membership == ["Infectious Disease", "Respiratory"]
        assert cache.has_clean()

    def test_window_in_header(self, cache, dataset) -> None:
        path = cache.save_clean(dataset)
        header = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
        assert header["window_start"] == "2010-01-01"
        assert header["window_end"] == "2021-12-31"
        assert header["count"] == 1

    def test_saving_twice_is_byte_identical(self, cache, dataset) -> None:
        first = cache.save_clean(dataset).read_bytes()
        second = cache.save_clean(dataset).read_bytes()
        assert first == second

    def test_empty_file_is_absent(self, cache) -> None:
        cache.clean_path.write_text("", encoding="utf-8")
        assert cache.load_clean() is None
        assert not cache.has_clean()

    def test_undecodable_file_is_absent(self, cache) -> None:
        cache.clean_path.write_bytes(b"\xff\xfe garbage\n")
        assert cache.load_clean() is None

    def test_non_object_header_is_absent(self, cache) -> None:
        cache.clean_path.write_text("[1, 2]\n", encoding="utf-8")
        assert cache.load_clean() is None


class TestAtomicWrite:
    def test_failed_write_keeps_previous_file(self, cache, raw_records) -> None:
        path = cache.save_raw(raw_records)
        before = path.read_bytes()

        with pytest.raises(AttributeError):
            cache.save_raw([raw_records[0], object()])

        assert path.read_bytes() == before
        assert [p.name for p in cache.cache_dir.iterdir()] == [DatasetCache.RAW_FILENAME]

    def test_clear(self, cache, raw_records, dataset) -> None:
        cache.save_raw(raw_records)
        cache.save_clean(dataset)
        cache.clear()
        assert cache.load_raw() is None
        assert cache.load_clean() is None
