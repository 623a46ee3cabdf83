"""
Budget Output Formatting
Builds the budget payload consumed by the application and writes reports.

Two shapes leave the pipeline:
- the raw analysis: French-keyed, as the vision model would have
  answered for the whole project (extraction / totaux / validation)
- the budget payload: display-ready categories with budgets, items,
  warnings and summary fields
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models import CostCategory, LineItem, ProjectTotals
from .pricing import resolve_tier

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_TYPE = "CONSTRUCTION_NEUVE"
CONTINGENCY_CATEGORY = "Budget imprévu (5%)"
TAXES_CATEGORY = "Taxes"

SITE_REMINDERS = [
    "🏗️ PRÉPARATION DU SITE: Vérifier les coûts d'excavation, nivellement, et accès chantier",
    "🚧 PERMIS ET INSPECTIONS: Frais de permis de construction et inspections municipales à prévoir",
    "📋 SERVICES PUBLICS: Confirmer les raccordements (eau, égout, électricité, gaz) et frais associés",
]

TIE_IN_REMINDERS = [
    "🔗 JUMELAGE STRUCTUREL: Travaux de connexion à la structure existante (linteaux, ancrages, renfort fondation)",
    "⚡ RACCORDEMENT ÉLECTRIQUE: Extension du panneau existant et mise aux normes possiblement requise",
    "🔌 RACCORDEMENT PLOMBERIE: Connexion aux systèmes existants (eau, drainage, chauffage)",
    "🏠 IMPERMÉABILISATION: Joint d'étanchéité entre nouvelle et ancienne construction critique",
    "🎨 HARMONISATION: Travaux de finition pour raccorder les matériaux extérieurs existants",
    "🔥 COUPE-FEU: Vérifier les exigences de séparation coupe-feu entre garage et habitation",
]

# Project types attached to an existing building
TIE_IN_MARKERS = ("AGRANDISSEMENT", "GARAGE", "JUMELÉ", "JUMELE", "ANNEXE")

# Totals entries that are not currency
RATIO_KEYS = ("ratio_main_oeuvre_materiaux", "ratio_acceptable")


def money(value: Optional[float]) -> float:
    """Round a currency amount to cents."""
    return round(float(value or 0.0), 2)


def format_quantity(value: float) -> str:
    """Quantity as display text: 120.0 -> "120", 12.5 -> "12.5"."""
    if not value:
        return ""
    return f"{value:g}"


def display_project_type(project_type: Optional[str]) -> str:
    """CONSTRUCTION_NEUVE -> Construction neuve"""
    text = (project_type or "Construction neuve").replace("_", " ", 1).lower()
    return text[:1].upper() + text[1:]


def needs_tie_in_reminders(project_type: Optional[str]) -> bool:
    upper = (project_type or "").upper()
    return any(marker in upper for marker in TIE_IN_MARKERS)


def ratio_alert(totals: ProjectTotals, band: Tuple[float, float] = (0.35, 0.50)) -> Optional[str]:
    if totals.ratio_within_acceptable_band is not False:
        return None
    low, high = band
    return (
        f"📊 Ratio main-d'œuvre/matériaux de {totals.labor_to_material_ratio:.0%} "
        f"hors de la plage acceptable ({low:.0%}-{high:.0%})"
    )


def project_summary(
    mode: str,
    project_type: Optional[str],
    floor_area: float,
    floor_count: float,
    plans_analyzed: int,
    has_client_notes: bool = False
) -> str:
    """One-line French summary of the analysis."""
    scope = (
        f"{display_project_type(project_type)} de {format_quantity(floor_area) or '0'} pi² "
        f"sur {format_quantity(floor_count) or '1'} étage(s)"
    )
    if mode == "merge":
        return f"Analyse fusionnée de {plans_analyzed} plan(s) - {scope}"
    if mode == "manual":
        return f"Estimation sans plans - {scope}"
    notes = " (avec spécifications client)" if has_client_notes else ""
    return f"Analyse de {plans_analyzed} plan(s) - {scope}{notes}"


# ============================================================================
# Raw analysis (French keys)
# ============================================================================

def build_raw_analysis(
    categories: List[CostCategory],
    totals: ProjectTotals,
    project_type: Optional[str] = None,
    floor_area: float = 0.0,
    floor_count: float = 1,
    plans_analyzed: int = 0,
    missing_elements: Optional[List[str]] = None,
    ambiguities: Optional[List[str]] = None,
    inconsistencies: Optional[List[str]] = None,
    alerts: Optional[List[str]] = None,
    recommendations: Optional[List[str]] = None,
    summary: str = "",
    acceptable_band: Tuple[float, float] = (0.35, 0.50)
) -> Dict[str, Any]:
    """Merged, completed and totalled analysis in the model's own JSON shape."""
    all_alerts = list(alerts or [])
    ratio_message = ratio_alert(totals, acceptable_band)
    if ratio_message:
        all_alerts.append(ratio_message)

    return {
        "extraction": {
            "type_projet": project_type,
            "superficie_nouvelle_pi2": floor_area,
            "nombre_etages": floor_count,
            "plans_analyses": plans_analyzed,
            "categories": [cat.to_dict() for cat in categories],
            "elements_manquants": list(missing_elements or []),
            "ambiguites": list(ambiguities or []),
            "incoherences": list(inconsistencies or []),
        },
        "totaux": totals.to_dict(),
        "validation": {
            "surfaces_completes": floor_area > 0,
            "ratio_main_oeuvre_materiaux": totals.labor_to_material_ratio,
            "ratio_acceptable": totals.ratio_within_acceptable_band,
            "alertes": all_alerts,
        },
        "recommandations": list(recommendations or []),
        "resume_projet": summary,
    }


# ============================================================================
# Budget payload (display contract)
# ============================================================================

def _format_item(item: LineItem) -> Dict[str, Any]:
    return {
        "name": f"{item.description} ({item.source or 'N/A'})",
        "cost": money(item.total),
        "quantity": format_quantity(item.quantity),
        "unit": item.unit,
    }


def _format_category(category: CostCategory) -> Dict[str, Any]:
    formatted = {
        "name": category.name,
        "budget": money(category.category_total),
        "description": f"{len(category.items)} items - Main-d'œuvre: {category.labor_hours:g}h",
        "items": [_format_item(item) for item in category.items],
    }
    if category.alternative_items:
        formatted["alternatives"] = [_format_item(item) for item in category.alternative_items]
    return formatted


def build_budget_payload(raw: Dict[str, Any], quality: Optional[str]) -> Dict[str, Any]:
    """
    Turn a raw analysis into the display payload.

    Categories are followed by the contingency and taxes
    pseudo-categories. Currency values are rounded to cents.
    """
    extraction = raw.get("extraction") or {}
    totaux = raw.get("totaux") or {}
    validation = raw.get("validation") or {}

    categories = [
        _format_category(CostCategory.from_dict(cat))
        for cat in extraction.get("categories") or []
    ]

    contingency = money(totaux.get("contingence_5_pourcent"))
    if contingency:
        categories.append({
            "name": CONTINGENCY_CATEGORY,
            "budget": contingency,
            "description": "Budget imprévu",
            "items": [{"name": "Budget imprévu 5%", "cost": contingency, "quantity": "1", "unit": "forfait"}],
        })

    federal = money(totaux.get("tps_5_pourcent"))
    provincial = money(totaux.get("tvq_9_975_pourcent"))
    if federal or provincial:
        categories.append({
            "name": TAXES_CATEGORY,
            "budget": money(federal + provincial),
            "description": "TPS 5% + TVQ 9.975%",
            "items": [
                {"name": "TPS (5%)", "cost": federal, "quantity": "1", "unit": "taxe"},
                {"name": "TVQ (9.975%)", "cost": provincial, "quantity": "1", "unit": "taxe"},
            ],
        })

    warnings = (
        [f"⚠️ Élément manquant: {e}" for e in extraction.get("elements_manquants") or []]
        + [f"❓ Ambiguïté: {e}" for e in extraction.get("ambiguites") or []]
        + [f"⚡ Incohérence: {e}" for e in extraction.get("incoherences") or []]
        + list(validation.get("alertes") or [])
        + SITE_REMINDERS
    )
    project_type = extraction.get("type_projet")
    if needs_tie_in_reminders(project_type):
        warnings.extend(TIE_IN_REMINDERS)

    floor_area = extraction.get("superficie_nouvelle_pi2") or 0
    return {
        "projectType": project_type or DEFAULT_PROJECT_TYPE,
        "projectSummary": raw.get("resume_projet") or (
            f"Projet de {format_quantity(floor_area) or '0'} pi² - "
            f"{format_quantity(extraction.get('nombre_etages') or 1)} étage(s)"
        ),
        "estimatedTotal": money(totaux.get("total_ttc") or totaux.get("sous_total_avant_taxes")),
        "newSquareFootage": floor_area,
        "plansAnalyzed": extraction.get("plans_analyses") or 0,
        "finishQuality": resolve_tier(quality),
        "categories": categories,
        "recommendations": list(raw.get("recommandations") or []),
        "warnings": warnings,
        "validation": {
            "surfacesCompletes": validation.get("surfaces_completes"),
            "ratioMainOeuvre": validation.get("ratio_main_oeuvre_materiaux"),
            "ratioAcceptable": validation.get("ratio_acceptable"),
        },
        "totauxDetails": {
            key: value if key in RATIO_KEYS else money(value)
            for key, value in totaux.items()
        },
    }


# ============================================================================
# Report files
# ============================================================================

def _write_csv(payload: Dict[str, Any], csv_path: Path) -> None:
    fieldnames = ['Category', 'Item', 'Quantity', 'Unit', 'Cost', 'Alternative']
    with open(csv_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for category in payload.get("categories", []):
            rows = [(item, False) for item in category.get("items", [])]
            rows += [(item, True) for item in category.get("alternatives", [])]
            for item, is_alternative in rows:
                writer.writerow({
                    'Category': category.get("name", ""),
                    'Item': item.get("name", ""),
                    'Quantity': item.get("quantity", ""),
                    'Unit': item.get("unit", ""),
                    'Cost': item.get("cost", 0),
                    'Alternative': 'Yes' if is_alternative else 'No',
                })


def write_report(
    payload: Dict[str, Any],
    output_dir: str,
    stem: str = "budget",
    raw_analysis: Optional[Dict[str, Any]] = None
) -> Dict[str, str]:
    """
    Write the budget as JSON (payload plus raw analysis) and CSV.

    Returns:
        {"json": path, "csv": path}
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    json_path = out / f"{stem}_budget.json"
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(
            {"success": True, "data": payload, "rawAnalysis": raw_analysis},
            f, indent=2, ensure_ascii=False
        )

    csv_path = out / f"{stem}_budget.csv"
    _write_csv(payload, csv_path)

    logger.info(f"Report saved: {json_path}")
    return {"json": str(json_path), "csv": str(csv_path)}
