"""Unit tests for multi-topic acquisition."""

from datetime import date

import httpx
import pytest
import respx

from ctr.core.errors import RemoteServiceError
from ctr.core.models import DateRange, TopicQuery
from ctr.search.client import ClinicalTrialsClient
from ctr.search.orchestrator import AcquisitionOrchestrator

WINDOW = DateRange(start=date(2010, 1, 1), end=date(2021, 12, 31))


def topic(name: str, term: str) -> TopicQuery:
    return TopicQuery.from_terms(name, [term], WINDOW)


@pytest.fixture
def client(registry_url, sleeps):
    with ClinicalTrialsClient(base_url=registry_url, delay=1.0, sleep=sleeps.append) as c:
        yield c


@respx.mock
def test_rows_tagged_with_topic(client, study, fake_registry) -> None:
    registry = fake_registry({
        "asthma": [study("NCT1"), study("NCT2")],
        "diabetes": [study("NCT2"), study("NCT3"), study("NCT4")],
    })
    respx.get(host="registry.test").mock(side_effect=registry)

    orchestrator = AcquisitionOrchestrator(client, page_size=2)
    done = []
    rows = orchestrator.acquire(
        [topic("Respiratory", "asthma"), topic("Metabolic", "diabetes")],
        on_topic_done=lambda t, n: done.append((t.name, n)),
    )

    assert [(r.id, r.matched_topic) for r in rows] == [
        ("NCT1", "Respiratory"),
        ("NCT2", "Respiratory"),
        ("NCT2", "Metabolic"),
        ("NCT3", "Metabolic"),
        ("NCT4", "Metabolic"),
    ]
    assert done == [("Respiratory", 2), ("Metabolic", 3)]
    assert orchestrator.topic_totals == {"Respiratory": 2, "Metabolic": 3}
    # count + 1 page, then count + 2 pages
    assert len(registry.requests) == 5


@respx.mock
def test_topic_without_matches_fetches_no_pages(client, fake_registry) -> None:
    registry = fake_registry({})
    respx.get(host="registry.test").mock(side_effect=registry)

    rows = AcquisitionOrchestrator(client).acquire([topic("Rare", "xyzzy")])

    assert rows == []
    assert len(registry.requests) == 1


@respx.mock
def test_failure_propagates(client, study, fake_registry) -> None:
    """Test an error on the second topic aborts the whole acquisition."""
    registry = fake_registry({"asthma": [study("NCT1")]})

    def flaky(request):
        if len(registry.requests) >= 2:
            return httpx.Response(500)
        return registry(request)

    respx.get(host="registry.test").mock(side_effect=flaky)

    with pytest.raises(RemoteServiceError) as excinfo:
        AcquisitionOrchestrator(client).acquire([topic("A", "asthma"), topic("B", "asthma")])
    assert excinfo.value.status_code == 500


def test_duplicate_topic_names_rejected(client) -> None:
    with pytest.raises(ValueError):
        AcquisitionOrchestrator(client).acquire([topic("A", "x"), topic("A", "y")])
