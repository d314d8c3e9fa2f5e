"""Shared fixtures: a fake registry endpoint for respx and study payload builders."""

from typing import Any, Callable, Dict, List

import httpx
import pytest
import respx

REGISTRY_URL = "https://registry.test/api/query/study_fields"


def make_study(nct_id: str, **fields: Any) -> Dict[str, Any]:
    """Build one registry StudyFields element; every value is a list like the API's."""
    payload: Dict[str, Any] = {
        "NCTId": [nct_id],
        "BriefTitle": [f"Study {nct_id}"],
        "Condition": ["Condition A"],
        "StudyType": ["Interventional"],
        "Phase": ["Phase 2"],
        "Gender": ["All"],
        "MinimumAge": ["18 Years"],
        "MaximumAge": ["65 Years"],
        "LeadSponsorName": ["Pfizer"],
        "EnrollmentCount": ["100"],
        "LocationCountry": ["United States"],
        "StartDate": ["January 2015"],
        "CompletionDate": ["December 2017"],
    }
    for key, value in fields.items():
        payload[key] = value if isinstance(value, list) else [value]
    return payload


class FakeRegistry:
    """respx side effect serving rank windows over per-clause study lists.

    A request's ``expr`` is matched against each key wrapped in parentheses,
    which is how the planner embeds a topic's keyword clause.
    """

    def __init__(self, studies_by_clause: Dict[str, List[Dict[str, Any]]]) -> None:
        self.studies_by_clause = studies_by_clause
        self.requests: List[Dict[str, str]] = []

    def studies_for(self, expr: str) -> List[Dict[str, Any]]:
        for clause, studies in self.studies_by_clause.items():
            if f"({clause})" in expr:
                return studies
        return []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.requests.append(params)
        studies = self.studies_for(params["expr"])
        lo, hi = int(params["min_rnk"]), int(params["max_rnk"])
        fields = params["fields"].split(",")
        page = []
        for offset, study in enumerate(studies[lo - 1 : hi]):
            item = {"Rank": lo + offset}
            item.update({f: study.get(f, []) for f in fields})
            page.append(item)
        body = {
            "StudyFieldsResponse": {
                "Expression": params["expr"],
                "NStudiesFound": len(studies),
                "MinRank": lo,
                "MaxRank": hi,
                "NStudiesReturned": len(page),
                "StudyFields": page,
            }
        }
        return httpx.Response(200, json=body)


@pytest.fixture(autouse=True)
def _isolate_global_respx_router():
    """Roll back routes added to respx's global router so they cannot leak between tests."""
    respx.mock.snapshot()
    yield
    respx.mock.rollback()


@pytest.fixture
def registry_url() -> str:
    return REGISTRY_URL


@pytest.fixture
def study() -> Callable[..., Dict[str, Any]]:
    return make_study


@pytest.fixture
def fake_registry() -> Callable[[Dict[str, List[Dict[str, Any]]]], FakeRegistry]:
    return FakeRegistry


@pytest.fixture
def sleeps() -> List[float]:
    """Recorder passed as the client's sleep function."""
    return []


@pytest.fixture
def settings_factory(tmp_path) -> Callable[..., Any]:
    from ctr.config.settings import Settings

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "api_base_url": REGISTRY_URL,
            "request_delay": 0.0,
            "cache_dir": tmp_path / "cache",
            "output_dir": tmp_path / "output",
        }
        values.update(overrides)
        return Settings(**values)

    return _make
