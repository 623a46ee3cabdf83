"""
Tests for budget output formatting and prompts
"""

import csv
import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from estimator.models import ClientContext, CostCategory, LineItem
from estimator.output_format import (
    SITE_REMINDERS,
    TIE_IN_REMINDERS,
    build_budget_payload,
    build_raw_analysis,
    display_project_type,
    format_quantity,
    project_summary,
    write_report,
)
from estimator.prompts import (
    build_manual_prompt,
    build_page_prompt,
    garage_foundation_section,
    MONOLITHIC_SLAB,
)
from estimator.totals import compute_project_totals


@pytest.fixture
def categories():
    return [
        CostCategory(
            "Toiture",
            items=[LineItem("Tôle métal", quantity=20, unit="carré", total=11000.456, source="Page 1")],
            alternative_items=[LineItem("Bardeaux d'asphalte", quantity=20, unit="carré", total=6000, is_alternative=True)],
            materials_subtotal=11000.456,
            labor_hours=64,
            labor_subtotal=5000,
            category_total=16000.456,
        ),
    ]


@pytest.fixture
def raw(categories):
    return build_raw_analysis(
        categories,
        compute_project_totals(categories),
        project_type="AGRANDISSEMENT",
        floor_area=400,
        floor_count=1,
        plans_analyzed=3,
        missing_elements=["Coupe de mur"],
        ambiguities=["Pente du toit"],
        recommendations=["Valider la charpente"],
        summary="Agrandissement de 400 pi²",
    )


class TestRawAnalysis:
    """Tests for the French-keyed analysis."""

    def test_sections(self, raw):
        assert set(raw) == {"extraction", "totaux", "validation", "recommandations", "resume_projet"}
        assert raw["extraction"]["plans_analyses"] == 3
        assert raw["validation"]["surfaces_completes"] is True

    def test_ratio_alert(self, raw):
        """5000 / 11000 is inside the band, so no ratio alert."""
        assert raw["validation"]["ratio_acceptable"] is True
        assert raw["validation"]["alertes"] == []

    def test_ratio_alert_outside_band(self):
        cats = [CostCategory("Électricité", materials_subtotal=1000, labor_subtotal=900, category_total=1900)]
        raw = build_raw_analysis(cats, compute_project_totals(cats))
        assert len(raw["validation"]["alertes"]) == 1
        assert "90%" in raw["validation"]["alertes"][0]


class TestBudgetPayload:
    """Tests for the display payload."""

    def test_categories_and_pseudo_categories(self, raw):
        payload = build_budget_payload(raw, "standard")
        names = [cat["name"] for cat in payload["categories"]]
        assert names == ["Toiture", "Budget imprévu (5%)", "Taxes"]

    def test_currency_rounded(self, raw):
        payload = build_budget_payload(raw, "standard")
        roof = payload["categories"][0]
        assert roof["budget"] == 16000.46
        assert roof["items"][0]["cost"] == 11000.46
        assert roof["items"][0]["name"] == "Tôle métal (Page 1)"
        assert roof["items"][0]["quantity"] == "20"
        assert roof["description"] == "1 items - Main-d'œuvre: 64h"

    def test_alternatives_listed(self, raw):
        roof = build_budget_payload(raw, "standard")["categories"][0]
        assert [alt["name"] for alt in roof["alternatives"]] == ["Bardeaux d'asphalte (N/A)"]

    def test_taxes(self, raw):
        taxes = build_budget_payload(raw, "standard")["categories"][-1]
        assert [item["name"] for item in taxes["items"]] == ["TPS (5%)", "TVQ (9.975%)"]

    def test_warnings(self, raw):
        warnings = build_budget_payload(raw, "standard")["warnings"]
        assert "⚠️ Élément manquant: Coupe de mur" in warnings
        assert "❓ Ambiguïté: Pente du toit" in warnings
        for reminder in SITE_REMINDERS + TIE_IN_REMINDERS:
            assert reminder in warnings

    def test_no_tie_in_for_new_build(self, categories):
        raw = build_raw_analysis(categories, compute_project_totals(categories), project_type="CONSTRUCTION_NEUVE")
        warnings = build_budget_payload(raw, "standard")["warnings"]
        assert not any(reminder in warnings for reminder in TIE_IN_REMINDERS)

    def test_summary_fields(self, raw):
        payload = build_budget_payload(raw, "premium")
        assert payload["projectType"] == "AGRANDISSEMENT"
        assert payload["projectSummary"] == "Agrandissement de 400 pi²"
        assert payload["newSquareFootage"] == 400
        assert payload["plansAnalyzed"] == 3
        assert payload["finishQuality"] == "haut-de-gamme"
        assert payload["estimatedTotal"] == payload["totauxDetails"]["total_ttc"]

    def test_totals_details_carry_ratio(self, raw):
        """Ratio fields are passed through, not rounded as money."""
        details = build_budget_payload(raw, "standard")["totauxDetails"]
        assert details["ratio_main_oeuvre_materiaux"] == pytest.approx(5000 / 11000.456)
        assert details["ratio_main_oeuvre_materiaux"] != round(5000 / 11000.456, 2)
        assert details["ratio_acceptable"] is True
        assert details["total_materiaux"] == 11000.46

    def test_default_project_type(self):
        raw = build_raw_analysis([], compute_project_totals([]))
        payload = build_budget_payload(raw, None)
        assert payload["projectType"] == "CONSTRUCTION_NEUVE"
        assert payload["categories"] == []


class TestHelpers:
    def test_format_quantity(self):
        assert format_quantity(120.0) == "120"
        assert format_quantity(12.5) == "12.5"
        assert format_quantity(0) == ""

    def test_display_project_type(self):
        assert display_project_type("CONSTRUCTION_NEUVE") == "Construction neuve"
        assert display_project_type(None) == "Construction neuve"

    def test_project_summary(self):
        assert project_summary("merge", "CONSTRUCTION_NEUVE", 1200, 2, 4) == (
            "Analyse fusionnée de 4 plan(s) - Construction neuve de 1200 pi² sur 2 étage(s)"
        )
        assert project_summary("plan", None, 0, 0, 1, has_client_notes=True).endswith("(avec spécifications client)")


class TestWriteReport:
    def test_json_and_csv(self, raw, tmp_path):
        payload = build_budget_payload(raw, "standard")
        paths = write_report(payload, str(tmp_path / "out"), stem="maison")
        assert Path(paths["json"]).name == "maison_budget.json"

        with open(paths["csv"], newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        roof_rows = [row for row in rows if row["Category"] == "Toiture"]
        assert [row["Alternative"] for row in roof_rows] == ["No", "Yes"]


class TestPrompts:
    """Tests for the prompt builders."""

    def test_page_prompt(self):
        context = ClientContext.from_dict({
            "projectType": "Maison neuve",
            "squareFootage": 1500,
            "materialChoices": {"roofingType": "metal"},
        })
        prompt = build_page_prompt(2, 5, "standard", context)
        assert "PAGE 2/5" in prompt
        assert "Tôle / Métal" in prompt
        assert '"source": "Page 2"' in prompt

    def test_extension_instruction(self):
        context = ClientContext.from_dict({"projectType": "Agrandissement", "squareFootage": 400})
        assert "AGRANDISSEMENT" in build_page_prompt(1, 1, "standard", context)

    def test_monolithic_slab(self):
        context = ClientContext.from_dict({
            "projectType": "Garage détaché",
            "garageFoundationType": MONOLITHIC_SLAB,
            "foundationSqft": 600,
        })
        section = garage_foundation_section(context)
        assert "DALLE MONOLITHIQUE" in section
        assert "15,000$ à 18,000$" in section

    def test_manual_prompt_defaults(self):
        prompt = build_manual_prompt("economique")
        assert "SUPERFICIE TOTALE: 1,500 pi²" in prompt
        assert "SALLES DE BAIN: 1" in prompt
