"""
Price Book
Versioned reference prices used to complete and total a budget.

The bundled book (data/quebec_2025.yaml) holds Quebec 2025 benchmark
ranges per finish tier, the default labour share and the tax rates.
Callers can load another book from YAML and pass it to the completion
and totals functions.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from .normalizer import normalize_key

logger = logging.getLogger(__name__)

DEFAULT_PRICE_BOOK_PATH = Path(__file__).parent / "data" / "quebec_2025.yaml"

QUALITY_TIERS = ("economique", "standard", "haut-de-gamme")
DEFAULT_TIER = "standard"

PriceRange = Tuple[float, float]


@dataclass
class PriceBook:
    """Benchmark ranges and rates for one region/year."""
    version: str
    region: str
    currency: str
    required_categories: List[str]
    per_sqft: Dict[str, Dict[str, PriceRange]]
    fixed: Dict[str, Dict[str, PriceRange]]
    labor_share: float = 0.42
    contingency_rate: float = 0.05
    federal_tax_rate: float = 0.05
    provincial_tax_rate: float = 0.09975
    acceptable_labor_ratio: PriceRange = (0.35, 0.50)
    source_path: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not 0 <= self.labor_share < 1:
            raise ValueError(f"labor_share must be in [0, 1), got {self.labor_share}")
        low, high = self.acceptable_labor_ratio
        if low > high:
            raise ValueError(f"acceptable_labor_ratio is inverted: {self.acceptable_labor_ratio}")

    def benchmark(self, category: str, tier: str) -> Tuple[str, Optional[PriceRange]]:
        """
        Look up the benchmark for a category and tier.

        Returns:
            ("per_sqft" | "fixed", (min, max)) or ("none", None) when the
            book has no benchmark for the category.
        """
        tier = resolve_tier(tier)
        for kind, table in (("per_sqft", self.per_sqft), ("fixed", self.fixed)):
            ranges = _lookup(table, category)
            if ranges:
                return kind, ranges.get(tier) or ranges.get(DEFAULT_TIER)
        return "none", None


def _lookup(table: Dict[str, Dict[str, PriceRange]], category: str) -> Optional[Dict[str, PriceRange]]:
    key = normalize_key(category)
    for name, ranges in table.items():
        if normalize_key(name) == key:
            return ranges
    return None


def midpoint(price_range: PriceRange) -> float:
    low, high = price_range
    return (float(low) + float(high)) / 2


def resolve_tier(tier: Optional[str]) -> str:
    """Map a quality label to a known tier, falling back to standard."""
    key = normalize_key(tier).replace(" ", "-").replace("_", "-")
    aliases = {
        "economique": "economique",
        "economy": "economique",
        "budget": "economique",
        "standard": "standard",
        "haut-de-gamme": "haut-de-gamme",
        "haut-gamme": "haut-de-gamme",
        "premium": "haut-de-gamme",
        "luxe": "haut-de-gamme",
    }
    resolved = aliases.get(key)
    if resolved is None:
        if key:
            logger.warning(f"Unknown quality tier '{tier}', using {DEFAULT_TIER}")
        return DEFAULT_TIER
    return resolved


def _ranges(raw: Dict) -> Dict[str, Dict[str, PriceRange]]:
    table = {}
    for category, tiers in (raw or {}).items():
        table[str(category)] = {
            str(tier): (float(bounds[0]), float(bounds[1]))
            for tier, bounds in (tiers or {}).items()
        }
    return table


def load_price_book(path: Optional[str] = None) -> PriceBook:
    """
    Load a price book from YAML.

    Args:
        path: YAML file path. Defaults to the bundled Quebec 2025 book.

    Returns:
        PriceBook

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required sections are missing
    """
    book_path = Path(path) if path else DEFAULT_PRICE_BOOK_PATH
    if not book_path.exists():
        raise FileNotFoundError(f"Price book not found: {book_path}")

    with open(book_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not raw.get("required_categories"):
        raise ValueError(f"Price book {book_path} has no required_categories")

    ratio = raw.get("acceptable_labor_ratio") or [0.35, 0.50]
    book = PriceBook(
        version=str(raw.get("version", "")),
        region=str(raw.get("region", "")),
        currency=str(raw.get("currency", "CAD")),
        required_categories=[str(c) for c in raw["required_categories"]],
        per_sqft=_ranges(raw.get("per_sqft")),
        fixed=_ranges(raw.get("fixed")),
        labor_share=float(raw.get("labor_share", 0.42)),
        contingency_rate=float(raw.get("contingency_rate", 0.05)),
        federal_tax_rate=float(raw.get("federal_tax_rate", 0.05)),
        provincial_tax_rate=float(raw.get("provincial_tax_rate", 0.09975)),
        acceptable_labor_ratio=(float(ratio[0]), float(ratio[1])),
        source_path=str(book_path),
    )
    logger.debug(f"Loaded price book {book.region} {book.version} from {book_path}")
    return book


_default_book: Optional[PriceBook] = None


def default_price_book() -> PriceBook:
    """Get the bundled price book (loaded once)."""
    global _default_book
    if _default_book is None:
        _default_book = load_price_book()
    return _default_book
