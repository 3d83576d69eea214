"""Component classification: tenant name table first, ordered heuristics second."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ph_payroll.calculators.helpers import looks_like_deduction, norm_header
from ph_payroll.calculators.types import ComponentCategory

logger = logging.getLogger(__name__)

# Order matters: the first matching rule wins.
FALLBACK_RULES: tuple[tuple[re.Pattern[str], ComponentCategory], ...] = (
    (re.compile(r"^BASIC\s*PAY$", re.IGNORECASE), ComponentCategory.BASIC_PAY_RELATED),
    (re.compile(r"DEMINIMIS|DE\s*MINIMIS", re.IGNORECASE), ComponentCategory.NON_TAXABLE_DE_MINIMIS),
    (
        re.compile(r"NON[- ]?TAXABLE\s*(ALLOWANCE|EARNING)", re.IGNORECASE),
        ComponentCategory.NON_TAXABLE_EARNING,
    ),
    (re.compile(r"13TH\s*MONTH|OTHER\s*BENEFIT", re.IGNORECASE), ComponentCategory.OTHER_BENEFITS),
    (
        re.compile(r"ALLOWANCE|OT\s*PAY|OVERTIME|NIGHT\s*DIFF|HOLIDAY\s*PAY|REST\s*DAY", re.IGNORECASE),
        ComponentCategory.BASIC_PAY_RELATED,
    ),
    (re.compile(r"ABSENCE|LATES?|TARDIN", re.IGNORECASE), ComponentCategory.BASIC_PAY_RELATED),
)


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one component name."""

    category: ComponentCategory | None
    source: str  # "table", "heuristic" or "unmatched"


class ComponentClassifier:
    """Resolves a component name to its semantic category.

    Resolution order:
    1. Explicit category on the input, if any
    2. Tenant name -> category table (normalized names)
    3. Ordered regex fallback rules
    4. Deduction-like names
    Unmatched names resolve to None; callers decide how to treat them.
    """

    def __init__(self, table: dict[str, ComponentCategory] | None = None):
        self._table = {
            norm_header(name): ComponentCategory(category)
            for name, category in (table or {}).items()
        }

    def classify(
        self, name: str, explicit: ComponentCategory | str | None = None
    ) -> Classification:
        parsed = ComponentCategory.parse(explicit)
        if parsed is not None:
            return Classification(parsed, "table")

        header = norm_header(name)
        if header in self._table:
            return Classification(self._table[header], "table")

        for pattern, category in FALLBACK_RULES:
            if pattern.search(header):
                logger.debug("Component %r classified heuristically as %s", name, category.value)
                return Classification(category, "heuristic")

        if looks_like_deduction(header):
            return Classification(ComponentCategory.DEDUCTION, "heuristic")

        return Classification(None, "unmatched")

    def category_of(self, name: str) -> ComponentCategory | None:
        return self.classify(name).category
