"""
Material-Choice Filter
Keeps only the client's chosen material in each trade category.

The AI often prices several options for the same trade (asphalt shingles
and a metal roof, for instance). Once the client has picked one, the
other options move to alternative_items: still shown, never totalled.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .completion import ESTIMATE_SOURCE
from .models import CostCategory, LineItem, MaterialChoices
from .normalizer import normalize_key

logger = logging.getLogger(__name__)

# Items naming labour or installation apply whatever material is chosen
GENERIC_TERMS = ("main", "oeuvre", "installation", "pose", "travail", "labour")


@dataclass(frozen=True)
class MaterialFilter:
    """Choice key plus {material id: keywords} for one trade."""
    choice_key: str
    keywords: Dict[str, Tuple[str, ...]]
    aliases: Dict[str, str]

    def resolve(self, choice: Optional[str]) -> Optional[str]:
        """Map a client material id to a keyword-table id."""
        key = normalize_key(choice)
        if key in self.keywords:
            return key
        return self.aliases.get(key)

    @property
    def all_keywords(self) -> Tuple[str, ...]:
        return tuple(kw for words in self.keywords.values() for kw in words)


# ============================================================================
# Keyword tables (accent-free, matched against normalized descriptions)
# ============================================================================

ROOFING = MaterialFilter(
    choice_key="roofingType",
    keywords={
        "bardeau-asphalte": ("bardeau", "asphalte", "shingle"),
        "bardeau-architectural": ("bardeau", "architectural", "shingle"),
        "metal": ("metal", "tole", "acier", "steel"),
        "elastomere": ("elastomere", "membrane", "bitume"),
        "tpo-epdm": ("tpo", "epdm", "membrane", "caoutchouc"),
    },
    aliases={},
)

SIDING = MaterialFilter(
    choice_key="exteriorSiding",
    keywords={
        "vinyl": ("vinyl", "vinyle", "pvc"),
        "fibre-ciment": ("fibre", "ciment", "hardie", "canexel"),
        "bois": ("bois", "cedre", "wood", "declin"),
        "brique": ("brique", "brick", "maconnerie"),
        "pierre": ("pierre", "stone", "cultured"),
        "aluminium": ("aluminium", "aluminum", "alu"),
        "stucco": ("stucco", "acrylique", "crepi"),
    },
    aliases={"vinyle": "vinyl", "canexel": "fibre-ciment"},
)

FLOORING = MaterialFilter(
    choice_key="flooringType",
    keywords={
        "bois-franc": ("bois franc", "hardwood", "chene", "erable", "merisier", "noyer"),
        "bois-ingenierie": ("ingenierie", "engineered", "flottant"),
        "ceramique": ("ceramique", "carrelage", "porcelaine", "tuile"),
        "vinyle-luxe": ("vinyle", "vinyl", "lvp", "lvt", "luxury"),
        "lamine": ("lamine", "stratifie", "laminate"),
        "beton-poli": ("beton", "poli", "epoxy"),
    },
    aliases={"flottant-stratifie": "lamine", "stratifie": "lamine"},
)

CABINETS = MaterialFilter(
    choice_key="cabinetType",
    keywords={
        "melamine": ("melamine", "thermoplastique", "entree de gamme"),
        "semi-custom": ("semi-custom", "semi custom", "polyester", "laque"),
        "custom": ("custom", "sur mesure", "bois massif", "haut de gamme"),
        "ikea": ("ikea", "pret a assembler", "rta"),
    },
    aliases={
        "thermoplastique": "melamine",
        "polyester": "semi-custom",
        "laque": "semi-custom",
        "bois-massif": "custom",
        "sur-mesure-haut-gamme": "custom",
    },
)

COUNTERTOPS = MaterialFilter(
    choice_key="countertopType",
    keywords={
        "stratifie": ("stratifie", "laminate", "formica"),
        "quartz": ("quartz",),
        "granit": ("granit",),
        "marbre": ("marbre", "marble"),
        "bois-boucher": ("bloc de boucher", "bois boucher", "butcher"),
        "beton": ("beton", "concrete"),
        "dekton": ("dekton", "ultracompact"),
    },
    aliases={},
)

HEATING = MaterialFilter(
    choice_key="heatingType",
    keywords={
        "thermopompe-centrale": ("thermopompe", "centrale", "central", "heat pump", "air climatise"),
        "thermopompe-murale": ("murale", "mini-split", "minisplit", "wall mount"),
        "plinthes": ("plinthe", "electrique", "baseboard", "convecteur"),
        "plancher-radiant": ("radiant", "plancher chauffant", "floor heating", "hydronic"),
        "gaz": ("gaz", "gas", "fournaise", "furnace"),
        "bi-energie": ("bi-energie", "bienergie", "mazout"),
        "geothermie": ("geothermie", "geothermal", "ground source"),
    },
    aliases={"plancher-radiant-hydro": "plancher-radiant"},
)

WINDOWS = MaterialFilter(
    choice_key="windowType",
    keywords={
        "pvc-standard": ("pvc", "vinyl", "double vitrage", "standard"),
        "pvc-triple": ("triple", "triple vitrage", "energy star"),
        "hybride": ("hybride", "hybrid", "alu", "aluminium"),
        "bois": ("bois", "wood", "massif"),
        "aluminium": ("aluminium", "aluminum", "commercial"),
    },
    aliases={"pvc-alu": "hybride"},
)

INSULATION = MaterialFilter(
    choice_key="insulationType",
    keywords={
        "laine-verre": ("laine", "verre", "fiberglass", "batt", "r-24", "r-20"),
        "laine-roche": ("roche", "rockwool", "roxul", "mineral"),
        "cellulose": ("cellulose", "soufflee", "blown"),
        "polyurethane": ("polyurethane", "spray foam", "gicle", "mousse"),
        "polystyrene": ("polystyrene", "styrofoam", "eps", "xps", "rigid"),
    },
    aliases={
        "laine-standard": "laine-verre",
        "laine-haute-densite": "laine-roche",
        "panneau-rigide": "polystyrene",
    },
)

# Normalized category name -> trade filter
MATERIAL_FILTERS: Dict[str, MaterialFilter] = {
    "toiture": ROOFING,
    "revetement exterieur": SIDING,
    "revetements de sol": FLOORING,
    "finition interieure": FLOORING,
    "travaux ebenisterie": CABINETS,
    "cuisine": CABINETS,
    "comptoirs": COUNTERTOPS,
    "comptoir": COUNTERTOPS,
    "chauffage et ventilation": HEATING,
    "chauffage/cvac": HEATING,
    "fenetres et portes": WINDOWS,
    "fenetres et portes exterieures": WINDOWS,
    "isolation et pare-vapeur": INSULATION,
    "isolation et pare-air": INSULATION,
    "isolation": INSULATION,
}


def _matches(description: str, keywords: Tuple[str, ...]) -> bool:
    return any(kw in description for kw in keywords)


def partition_items(
    items: List[LineItem],
    trade: MaterialFilter,
    selected: str
) -> Tuple[List[LineItem], List[LineItem]]:
    """
    Split items into (active, alternatives) for a selected material id.

    Active: matches the selected keywords, names generic labour, or
    matches no candidate at all. Alternative: matches another candidate.
    """
    selected_keywords = trade.keywords[selected]
    candidate_keywords = trade.all_keywords
    active, alternatives = [], []

    for item in items:
        description = normalize_key(item.description)
        if _matches(description, selected_keywords) or _matches(description, GENERIC_TERMS):
            active.append(item)
        elif _matches(description, candidate_keywords):
            alternatives.append(replace(item, is_alternative=True))
        else:
            active.append(item)
    return active, alternatives


def filter_category(category: CostCategory, choices: MaterialChoices) -> CostCategory:
    """Apply the client's choice to one category (unchanged when not applicable)."""
    trade = MATERIAL_FILTERS.get(normalize_key(category.name))
    if trade is None:
        return category

    choice = choices.get(trade.choice_key)
    if not choice:
        return category

    selected = trade.resolve(choice)
    if selected is None:
        logger.warning(f"Unknown {trade.choice_key} '{choice}' for {category.name}, keeping all items")
        return category

    # Benchmark estimates carry no material to choose between
    if category.items and all(item.source == ESTIMATE_SOURCE for item in category.items):
        return category

    active, alternatives = partition_items(category.items, trade, selected)
    active_total = sum(item.total for item in active)
    materials = active_total if active_total > 0 else category.materials_subtotal

    logger.info(
        f"{category.name}: kept {len(active)} item(s) for {trade.choice_key}={choice}, "
        f"{len(alternatives)} moved to alternatives"
    )
    return replace(
        category,
        items=active,
        alternative_items=list(category.alternative_items) + alternatives,
        materials_subtotal=materials,
        category_total=materials + category.labor_subtotal,
    )


def filter_by_material_choices(
    categories: List[CostCategory],
    choices: Optional[MaterialChoices]
) -> List[CostCategory]:
    """
    Apply material choices to every category.

    Args:
        categories: Completed categories
        choices: {trade key: material id}; None or empty leaves the list as-is

    Returns:
        New list of categories
    """
    if not choices:
        return list(categories)
    return [filter_category(category, choices) for category in categories]
