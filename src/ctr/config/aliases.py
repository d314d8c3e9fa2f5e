"""Built-in sponsor and condition alias tables.

Rules are (pattern, canonical label) pairs matched as case-insensitive
substrings, first match wins. Order matters: list sub-brands before the
broader parent names they would otherwise fall through to.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from ..core.normalization import AliasTable

DEFAULT_SPONSOR_ALIASES: List[Tuple[str, str]] = [
    ("Hoffmann-La Roche", "Roche"),
    ("Genentech", "Roche"),
    ("Chugai", "Roche"),
    ("Janssen", "Johnson & Johnson"),
    ("Johnson & Johnson", "Johnson & Johnson"),
    ("ViiV Healthcare", "GSK"),
    ("GlaxoSmithKline", "GSK"),
    ("GSK", "GSK"),
    ("Merck Sharp & Dohme", "Merck Sharp & Dohme"),
    ("Merck KGaA", "Merck KGaA"),
    ("EMD Serono", "Merck KGaA"),
    ("MedImmune", "AstraZeneca"),
    ("AstraZeneca", "AstraZeneca"),
    ("Genzyme", "Sanofi"),
    ("Sanofi", "Sanofi"),
    ("Sandoz", "Novartis"),
    ("Novartis", "Novartis"),
    ("Celgene", "Bristol-Myers Squibb"),
    ("Bristol-Myers Squibb", "Bristol-Myers Squibb"),
    ("Eli Lilly", "Eli Lilly and Company"),
    ("Allergan", "AbbVie"),
    ("AbbVie", "AbbVie"),
    ("Shire", "Takeda"),
    ("Takeda", "Takeda"),
    ("Boehringer Ingelheim", "Boehringer Ingelheim"),
    ("Bayer", "Bayer"),
    ("Pfizer", "Pfizer"),
    ("Wyeth", "Pfizer"),
    ("Gilead", "Gilead Sciences"),
    ("Novo Nordisk", "Novo Nordisk"),
    ("National Cancer Institute", "National Cancer Institute (NCI)"),
]

DEFAULT_CONDITION_ALIASES: List[Tuple[str, str]] = [
    ("covid", "COVID-19"),
    ("sars-cov-2", "COVID-19"),
    ("2019-ncov", "COVID-19"),
    ("coronavirus disease 2019", "COVID-19"),
    ("breast neoplasm", "Breast Cancer"),
    ("breast cancer", "Breast Cancer"),
    ("breast carcinoma", "Breast Cancer"),
    ("non-small cell lung", "Non-Small Cell Lung Cancer"),
    ("nsclc", "Non-Small Cell Lung Cancer"),
    ("prostate cancer", "Prostate Cancer"),
    ("prostatic neoplasm", "Prostate Cancer"),
    ("diabetes mellitus, type 2", "Type 2 Diabetes"),
    ("type 2 diabetes", "Type 2 Diabetes"),
    ("t2dm", "Type 2 Diabetes"),
    ("diabetes mellitus, type 1", "Type 1 Diabetes"),
    ("type 1 diabetes", "Type 1 Diabetes"),
    ("alzheimer", "Alzheimer Disease"),
    ("parkinson", "Parkinson Disease"),
    ("hiv infection", "HIV Infections"),
    ("hiv-1", "HIV Infections"),
    ("major depressive disorder", "Depression"),
    ("depressive disorder", "Depression"),
    ("hypertension", "Hypertension"),
    ("heart failure", "Heart Failure"),
]


def load_alias_tables(
    sponsor_path: Optional[Path] = None,
    condition_path: Optional[Path] = None,
) -> Tuple[AliasTable, AliasTable]:
    """Return (sponsor, condition) tables, from YAML where a path is given."""
    sponsors = (
        AliasTable.from_yaml(sponsor_path)
        if sponsor_path
        else AliasTable(DEFAULT_SPONSOR_ALIASES)
    )
    conditions = (
        AliasTable.from_yaml(condition_path)
        if condition_path
        else AliasTable(DEFAULT_CONDITION_ALIASES)
    )
    return sponsors, conditions
