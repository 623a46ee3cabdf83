"""
Budget Data Model
Typed records for categories, line items and page extractions.

The AI vision service answers with French-keyed JSON ("nom", "quantite",
"sous_total_materiaux", ...). These records parse that shape once, at the
edge, so the merge/completion/filter/totals code never touches raw dicts.
Each record also serializes back to the same French-keyed shape so it can
travel through the workflow state and into the raw analysis output.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Confidence(Enum):
    """Extraction confidence attached to a line item."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Parse French ("haute/moyenne/basse") or English labels, default medium."""
        if isinstance(value, Confidence):
            return value
        label = str(value or "").strip().lower()
        return _CONFIDENCE_ALIASES.get(label, cls.MEDIUM)

    @property
    def french(self) -> str:
        return _CONFIDENCE_FRENCH[self]


_CONFIDENCE_ALIASES = {
    "high": Confidence.HIGH,
    "haute": Confidence.HIGH,
    "elevee": Confidence.HIGH,
    "élevée": Confidence.HIGH,
    "medium": Confidence.MEDIUM,
    "moyenne": Confidence.MEDIUM,
    "low": Confidence.LOW,
    "basse": Confidence.LOW,
    "faible": Confidence.LOW,
}

_CONFIDENCE_FRENCH = {
    Confidence.HIGH: "haute",
    Confidence.MEDIUM: "moyenne",
    Confidence.LOW: "basse",
}

# Trade key -> selected material id (e.g. {"roofingType": "metal"})
MaterialChoices = Dict[str, str]


def to_number(value: Any) -> float:
    """
    Coerce a loosely-typed AI value to a finite float.

    Handles numbers, numeric strings ("1 800,50", "$1,800"), None and
    garbage. Anything unparseable becomes 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace("$", "").replace(" ", "").replace(" ", "")
        # "1800,50" is a decimal comma, "1,800" a thousands separator
        if "," in text and "." not in text and len(text.rsplit(",", 1)[1]) != 3:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _first(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first present, non-None value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _text_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v) for v in values if v is not None and str(v).strip()]


# ============================================================================
# Line items and categories
# ============================================================================

@dataclass
class LineItem:
    """One priced quantity within a category."""
    description: str
    quantity: float = 0.0
    unit: str = ""
    unit_price: float = 0.0
    total: float = 0.0
    source: str = ""
    confidence: Confidence = Confidence.MEDIUM
    is_alternative: bool = False
    dimension: str = ""

    def __post_init__(self):
        if self.total < 0:
            self.total = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        """Build from an AI item dict (French or English keys)."""
        quantity = to_number(_first(data, "quantite", "quantity"))
        unit_price = to_number(_first(data, "prix_unitaire", "unit_price", "unitPrice"))
        total = to_number(_first(data, "total", "cost"))
        if not total and quantity and unit_price:
            total = quantity * unit_price

        return cls(
            description=str(_first(data, "description", "name") or ""),
            quantity=quantity,
            unit=str(_first(data, "unite", "unit") or ""),
            unit_price=unit_price,
            total=max(total, 0.0),
            source=str(data.get("source") or ""),
            confidence=Confidence.parse(_first(data, "confiance", "confidence")),
            is_alternative=bool(_first(data, "isAlternative", "is_alternative")),
            dimension=str(data.get("dimension") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "description": self.description,
            "quantite": self.quantity,
            "unite": self.unit,
            "dimension": self.dimension,
            "prix_unitaire": self.unit_price,
            "total": self.total,
            "source": self.source,
            "confiance": self.confidence.french,
        }
        if self.is_alternative:
            data["isAlternative"] = True
        return data


@dataclass
class CostCategory:
    """
    A named cost bucket (e.g. "Fondation", "Électricité").

    After recalculation category_total == materials_subtotal + labor_subtotal.
    """
    name: str
    items: List[LineItem] = field(default_factory=list)
    alternative_items: List[LineItem] = field(default_factory=list)
    materials_subtotal: float = 0.0
    labor_hours: float = 0.0
    labor_rate: float = 0.0
    labor_subtotal: float = 0.0
    category_total: float = 0.0

    @property
    def items_total(self) -> float:
        return sum(item.total for item in self.items)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostCategory":
        """Build from an AI category dict (French or English keys)."""
        items = [
            LineItem.from_dict(it) for it in (data.get("items") or [])
            if isinstance(it, dict)
        ]
        alternatives = [
            LineItem.from_dict(it) for it in (_first(data, "alternatives", "alternativeItems") or [])
            if isinstance(it, dict)
        ]
        for alt in alternatives:
            alt.is_alternative = True

        return cls(
            name=str(_first(data, "nom", "name") or "Autre"),
            items=items,
            alternative_items=alternatives,
            materials_subtotal=to_number(_first(data, "sous_total_materiaux", "materialsSubtotal")),
            labor_hours=to_number(_first(data, "heures_main_oeuvre", "laborHours")),
            labor_rate=to_number(_first(data, "taux_horaire_CCQ", "laborRate")),
            labor_subtotal=to_number(_first(data, "sous_total_main_oeuvre", "laborSubtotal")),
            category_total=to_number(_first(data, "sous_total_categorie", "categoryTotal")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "nom": self.name,
            "items": [item.to_dict() for item in self.items],
            "sous_total_materiaux": self.materials_subtotal,
            "heures_main_oeuvre": self.labor_hours,
            "taux_horaire_CCQ": self.labor_rate,
            "sous_total_main_oeuvre": self.labor_subtotal,
            "sous_total_categorie": self.category_total,
        }
        if self.alternative_items:
            data["alternatives"] = [item.to_dict() for item in self.alternative_items]
        return data


# ============================================================================
# Page extraction
# ============================================================================

@dataclass
class PageExtraction:
    """One AI-vision analysis result for a single plan page or batch."""
    project_type_hint: Optional[str] = None
    new_floor_area_hint: float = 0.0
    floor_count_hint: float = 0.0
    categories: List[CostCategory] = field(default_factory=list)
    missing_elements: List[str] = field(default_factory=list)
    ambiguities: List[str] = field(default_factory=list)
    inconsistencies: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageExtraction":
        """
        Build from a parsed AI response.

        Accepts both the wrapped form {"extraction": {...}} and the bare
        extraction object.
        """
        extraction = data.get("extraction") if isinstance(data.get("extraction"), dict) else data

        categories = [
            CostCategory.from_dict(cat) for cat in (extraction.get("categories") or [])
            if isinstance(cat, dict)
        ]
        project_type = _first(extraction, "type_projet", "projectType")

        return cls(
            project_type_hint=str(project_type) if project_type else None,
            new_floor_area_hint=to_number(_first(extraction, "superficie_nouvelle_pi2", "newSquareFootage")),
            floor_count_hint=to_number(_first(extraction, "nombre_etages", "numberOfFloors")),
            categories=categories,
            missing_elements=_text_list(extraction.get("elements_manquants")),
            ambiguities=_text_list(extraction.get("ambiguites")),
            inconsistencies=_text_list(extraction.get("incoherences")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type_projet": self.project_type_hint,
            "superficie_nouvelle_pi2": self.new_floor_area_hint,
            "nombre_etages": self.floor_count_hint,
            "categories": [cat.to_dict() for cat in self.categories],
            "elements_manquants": list(self.missing_elements),
            "ambiguites": list(self.ambiguities),
            "incoherences": list(self.inconsistencies),
        }


# ============================================================================
# Totals
# ============================================================================

@dataclass
class ProjectTotals:
    """Project-wide totals, always derived from a category list."""
    total_materials: float
    total_labor: float
    subtotal_before_tax: float
    contingency_amount: float
    subtotal_with_contingency: float
    federal_tax: float
    provincial_tax: float
    grand_total: float
    labor_to_material_ratio: Optional[float]
    ratio_within_acceptable_band: Optional[bool]

    def to_dict(self) -> Dict[str, Any]:
        """French-keyed totals, as consumed by the budget screens."""
        return {
            "total_materiaux": self.total_materials,
            "total_main_oeuvre": self.total_labor,
            "sous_total_avant_taxes": self.subtotal_before_tax,
            "contingence_5_pourcent": self.contingency_amount,
            "sous_total_avec_contingence": self.subtotal_with_contingency,
            "tps_5_pourcent": self.federal_tax,
            "tvq_9_975_pourcent": self.provincial_tax,
            "total_ttc": self.grand_total,
            "ratio_main_oeuvre_materiaux": self.labor_to_material_ratio,
            "ratio_acceptable": self.ratio_within_acceptable_band,
        }


# ============================================================================
# Client context
# ============================================================================

@dataclass
class ClientContext:
    """Optional client-provided context accompanying an analysis run."""
    project_type: Optional[str] = None
    square_footage: float = 0.0
    number_of_floors: float = 0.0
    has_garage: bool = False
    garage_foundation_type: Optional[str] = None
    foundation_sqft: float = 0.0
    floor_sqft_details: List[float] = field(default_factory=list)
    bathroom_count: int = 1
    additional_notes: Optional[str] = None
    material_choices: MaterialChoices = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClientContext":
        data = data or {}
        choices = data.get("materialChoices") or data.get("material_choices") or {}
        bathrooms = int(to_number(_first(data, "bathroomCount", "bathroom_count")) or 1)
        return cls(
            project_type=_first(data, "projectType", "project_type"),
            square_footage=to_number(_first(data, "squareFootage", "square_footage")),
            number_of_floors=to_number(_first(data, "numberOfFloors", "number_of_floors")),
            has_garage=bool(_first(data, "hasGarage", "has_garage")),
            garage_foundation_type=_first(data, "garageFoundationType", "garage_foundation_type"),
            foundation_sqft=to_number(_first(data, "foundationSqft", "foundation_sqft")),
            floor_sqft_details=[
                to_number(v) for v in (_first(data, "floorSqftDetails", "floor_sqft_details") or [])
            ],
            bathroom_count=max(bathrooms, 1),
            additional_notes=_first(data, "additionalNotes", "additional_notes"),
            material_choices={str(k): str(v) for k, v in choices.items() if v},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectType": self.project_type,
            "squareFootage": self.square_footage,
            "numberOfFloors": self.number_of_floors,
            "hasGarage": self.has_garage,
            "garageFoundationType": self.garage_foundation_type,
            "foundationSqft": self.foundation_sqft,
            "floorSqftDetails": list(self.floor_sqft_details),
            "bathroomCount": self.bathroom_count,
            "additionalNotes": self.additional_notes,
            "materialChoices": dict(self.material_choices),
        }

    @property
    def is_extension(self) -> bool:
        return "agrandissement" in (self.project_type or "").lower()

    @property
    def is_garage(self) -> bool:
        return "garage" in (self.project_type or "").lower()
