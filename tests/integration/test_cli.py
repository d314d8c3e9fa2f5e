"""Integration tests for the command-line interface."""

import httpx
import pytest
import respx
from typer.testing import CliRunner

from ctr.cli import main as cli
from ctr.io.cache import DatasetCache

pytestmark = pytest.mark.integration

runner = CliRunner()


@pytest.fixture
def cli_settings(tmp_path, monkeypatch, settings_factory):
    topics_file = tmp_path / "topics.yaml"
    topics_file.write_text(
        "- {name: Respiratory, terms: [asthma]}\n- {name: Metabolic, terms: [diabetes]}\n",
        encoding="utf-8",
    )
    settings = settings_factory(topics_file=topics_file)
    monkeypatch.setattr(cli, "settings", settings)
    return settings


@pytest.fixture
def registry(study, fake_registry):
    return fake_registry({
        "asthma": [study("NCT1"), study("NCT2")],
        "diabetes": [study("NCT2"), study("NCT3", StartDate="June 2023")],
    })


def test_version() -> None:
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert "Clinical Trials Report" in result.stdout


def test_topics_lists_configured_topics(cli_settings) -> None:
    result = runner.invoke(cli.app, ["topics"])
    assert result.exit_code == 0
    assert "Respiratory" in result.stdout
    assert "Metabolic" in result.stdout


@respx.mock
def test_fetch_clean_validate(cli_settings, registry) -> None:
    respx.get(host="registry.test").mock(side_effect=registry)

    result = runner.invoke(cli.app, ["fetch", "--delay", "0"])
    assert result.exit_code == 0, result.stdout
    cache = DatasetCache(cli_settings.cache_dir)
    assert len(cache.load_raw()) == 4

    result = runner.invoke(cli.app, ["clean"])
    assert result.exit_code == 0, result.stdout
    assert cache.load_clean().ids() == ["NCT1", "NCT2"]

    result = runner.invoke(cli.app, ["validate"])
    assert result.exit_code == 0, result.stdout
    assert "Validation passed" in result.stdout


@respx.mock
def test_fetch_keeps_existing_raw_cache(cli_settings, registry) -> None:
    route = respx.get(host="registry.test").mock(side_effect=registry)
    runner.invoke(cli.app, ["fetch", "--delay", "0"])
    calls = route.call_count

    result = runner.invoke(cli.app, ["fetch", "--delay", "0"])

    assert result.exit_code == 0
    assert route.call_count == calls


@respx.mock
def test_run_exports(cli_settings, registry, tmp_path) -> None:
    respx.get(host="registry.test").mock(side_effect=registry)
    out = tmp_path / "exports"

    result = runner.invoke(cli.app, ["run", "--output", str(out), "--formats", "csv"])

    assert result.exit_code == 0, result.stdout
    assert (out / "clean_studies.csv").exists()
    assert not (out / "clean_studies.parquet").exists()


@respx.mock
def test_registry_error_exits_nonzero(cli_settings) -> None:
    respx.get(host="registry.test").mock(return_value=httpx.Response(503))

    result = runner.invoke(cli.app, ["fetch", "--delay", "0"])

    assert result.exit_code == 1
    assert "Registry error" in result.stdout
    assert not DatasetCache(cli_settings.cache_dir).raw_path.exists()


def test_clean_without_raw_cache(cli_settings) -> None:
    result = runner.invoke(cli.app, ["clean"])
    assert result.exit_code == 1


def test_validate_without_clean_cache(cli_settings) -> None:
    result = runner.invoke(cli.app, ["validate"])
    assert result.exit_code == 1
