"""Data validation for the cleaned clinical-trials dataset.

This module provides a `DataValidator` class that checks the invariants
downstream report generators rely on: unique study ids, start years inside
the acquisition window, consistent topic membership counts, and the
completeness of the typed columns. Results are presented via rich console
messages and aggregated into a summary report.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.models import CleanedDataset
from ..utils.logging import get_logger


console = Console()
logger = get_logger(__name__)

_COMPLETENESS_FIELDS = (
    "start_date",
    "completion_date",
    "minimum_age_years",
    "maximum_age_years",
    "enrollment_count",
    "sponsor",
)


class DataValidator:
    """
    Validate cleaned dataset quality and integrity.

    Validators accumulate errors, warnings, and info messages and can
    summarise results after performing checks. If `strict` is enabled,
    warnings are treated as errors when determining overall success.
    """

    def __init__(self, strict: bool = False, output: Optional[Console] = None) -> None:
        self.strict = strict
        self.console = output or console
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.info: List[str] = []

    def validate_unique_ids(self, dataset: CleanedDataset) -> bool:
        self.console.print("\n[cyan]Validating study ids...[/cyan]")
        counts = Counter(r.id for r in dataset.records)
        repeated = [study_id for study_id, n in counts.items() if n > 1]
        for study_id in repeated[:5]:
            self.errors.append(f"Study {study_id} appears {counts[study_id]} times")
        if repeated:
            self.console.print(f"[red]✗ {len(repeated)} repeated ids[/red]")
            return False
        self.console.print(f"[green]✓ All {len(dataset)} ids unique[/green]")
        return True

    def validate_window(self, dataset: CleanedDataset) -> bool:
        self.console.print("\n[cyan]Validating start years...[/cyan]")
        first, last = dataset.window_start.year, dataset.window_end.year
        outside = [r for r in dataset.records if r.start_year is not None and not first <= r.start_year <= last]
        missing = sum(1 for r in dataset.records if r.start_year is None)
        for record in outside[:5]:
            self.errors.append(f"Start year {record.start_year} outside {first}-{last}: {record.id}")
        self.console.print(f"  Missing start year: {missing}")
        if missing:
            self.info.append(f"{missing} studies have no parsable start date")
        if outside:
            self.console.print(f"[red]✗ {len(outside)} studies outside the window[/red]")
            return False
        self.console.print("[green]✓ Start years inside the window[/green]")
        return True

    def validate_membership(self, dataset: CleanedDataset) -> bool:
        self.console.print("\n[cyan]Validating topic membership...[/cyan]")
        orphans = [r.id for r in dataset.records if not r.topic_membership]
        for study_id in orphans[:5]:
            self.warnings.append(f"Study {study_id} has no topic membership")
        if orphans:
            self.console.print(f"[yellow]⚠ {len(orphans)} studies without a topic[/yellow]")
            return not self.strict
        multi = sum(1 for r in dataset.records if r.topic_count > 1)
        self.info.append(f"{multi} studies belong to more than one topic")
        self.console.print("[green]✓ Every study belongs to a topic[/green]")
        return True

    def validate_completeness(self, dataset: CleanedDataset, min_ratio: float = 0.5) -> bool:
        self.console.print("\n[cyan]Validating completeness...[/cyan]")
        total = len(dataset)
        if total == 0:
            self.warnings.append("Dataset is empty")
            self.console.print("[yellow]⚠ Dataset is empty[/yellow]")
            return not self.strict
        ok = True
        for field in _COMPLETENESS_FIELDS:
            present = sum(1 for r in dataset.records if getattr(r, field) is not None)
            ratio = present / total
            self.console.print(f"  {field}: {present}/{total} ({ratio:.0%})")
            if ratio < min_ratio:
                self.warnings.append(f"Only {ratio:.0%} of studies have {field}")
                ok = False
        return ok or not self.strict

    def print_summary(self) -> None:
        table = Table(title="Validation Summary")
        table.add_column("Level", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Errors", f"[red]{len(self.errors)}[/red]")
        table.add_row("Warnings", f"[yellow]{len(self.warnings)}[/yellow]")
        table.add_row("Info", str(len(self.info)))
        self.console.print(table)
        messages = [f"[red]ERROR[/red] {m}" for m in self.errors]
        messages += [f"[yellow]WARN[/yellow] {m}" for m in self.warnings]
        messages += [f"INFO {m}" for m in self.info]
        if messages:
            self.console.print(Panel("\n".join(messages), title="Details"))

    def summary(self) -> Dict[str, List[str]]:
        return {"errors": list(self.errors), "warnings": list(self.warnings), "info": list(self.info)}


def validate_dataset(dataset: CleanedDataset, strict: bool = False, output: Optional[Console] = None) -> bool:
    """Run every check on a cleaned dataset and print a summary."""
    validator = DataValidator(strict=strict, output=output)
    results = [
        validator.validate_unique_ids(dataset),
        validator.validate_window(dataset),
        validator.validate_membership(dataset),
        validator.validate_completeness(dataset),
    ]
    validator.print_summary()
    passed = all(results) and not validator.errors
    logger.info("Validation finished", extra={"passed": passed, **{k: len(v) for k, v in validator.summary().items()}})
    return passed
