"""
Tests for the analysis workflow

Runs the LangGraph workflow end to end in merge, plan and manual modes.
Vision calls go to an in-process fake provider.
"""

import json
import logging
import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agent import run_analysis_workflow, stream_analysis_workflow, get_workflow_visualization
from agent.nodes.analyze_plans import AI_FAILURE_ERROR, UNREADABLE_PLANS_ERROR
from agent.state import get_state_summary
from estimator.config import AnalyzerConfig
from estimator.plan_analyzer import INCOMPLETE_PROJECT_TYPE, PlanAnalyzer
from estimator.plan_images import PlanImage
from estimator.vision_providers import (
    ProviderError,
    ProviderResponse,
    TransientProviderError,
    VisionProvider,
)


class FakeProvider(VisionProvider):
    """Returns scripted answers; exceptions in the script are raised."""

    PROVIDER_NAME = "fake"
    DEFAULT_MODEL = "fake-vision"

    def __init__(self, script):
        super().__init__(api_key="test")
        self.script = list(script)
        self.calls = []

    def complete(self, prompt, system=None, image=None, max_tokens=None):
        self.calls.append({"prompt": prompt, "system": system, "image": image, "max_tokens": max_tokens})
        answer = self.script.pop(0) if self.script else ProviderError("script exhausted", 400)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, dict):
            answer = json.dumps(answer, ensure_ascii=False)
        return ProviderResponse(text=answer, tokens_used=100)


def fake_loader(reference, max_bytes, dpi):
    """One page per reference; references starting with 'missing' are skipped."""
    if reference.startswith("missing"):
        return [None]
    return [PlanImage(b"\x89PNG fake", "image/png", reference)]


def make_analyzer(script):
    provider = FakeProvider(script)
    analyzer = PlanAnalyzer(provider, AnalyzerConfig(backoff_scale=0), image_loader=fake_loader)
    return analyzer, provider


def page_answer(description, total, page):
    return {
        "extraction": {
            "type_projet": "CONSTRUCTION_NEUVE",
            "superficie_nouvelle_pi2": 1200,
            "nombre_etages": 1,
            "categories": [{
                "nom": "Fondation",
                "items": [{
                    "description": description,
                    "quantite": 120,
                    "unite": "pi lin",
                    "prix_unitaire": 15,
                    "total": total,
                    "source": f"Page {page}",
                    "confiance": "haute",
                }],
            }],
            "elements_manquants": [],
            "ambiguites": [],
            "incoherences": [],
        },
        "validation": {"alertes": []},
        "recommandations": [],
    }


@pytest.fixture
def semelle_batches():
    """Two pages that both show the same footing."""
    return [
        page_answer("Semelles", 1800, 1),
        page_answer("Semelles (Page 2)", 1800, 2),
    ]


def _category(state, name):
    return next(cat for cat in state["categories"] if cat["nom"] == name)


class TestMergeMode:
    """Tests for merging batch results analyzed elsewhere."""

    def test_footing_scenario(self, semelle_batches):
        state = run_analysis_workflow(
            mode="merge",
            batch_results=semelle_batches,
            total_images=2,
            quality="standard",
            enable_checkpoints=False
        )

        assert state["success"] is True
        assert len(state["categories"]) == 12
        assert len(state["synthesized_categories"]) == 11

        foundation = _category(state, "Fondation")
        assert len(foundation["items"]) == 1
        assert foundation["items"][0]["total"] == 1800
        assert foundation["sous_total_categorie"] == pytest.approx(1800)
        assert foundation["sous_total_main_oeuvre"] == pytest.approx(1800 * 0.42)

        synthesized = sum(
            cat["sous_total_categorie"] for cat in state["categories"]
            if cat["nom"] in state["synthesized_categories"]
        )
        expected = (1800 + synthesized) * 1.05 * 1.14975
        assert state["totals"]["grand_total"] == pytest.approx(expected)
        assert state["budget"]["estimatedTotal"] == pytest.approx(expected, abs=0.01)

    def test_budget_payload(self, semelle_batches):
        state = run_analysis_workflow(mode="merge", batch_results=semelle_batches, enable_checkpoints=False)
        budget = state["budget"]

        names = [cat["name"] for cat in budget["categories"]]
        assert names[-2:] == ["Budget imprévu (5%)", "Taxes"]
        assert budget["estimatedTotal"] == round(state["totals"]["grand_total"], 2)
        assert budget["newSquareFootage"] == 1200
        assert budget["plansAnalyzed"] == 2
        assert budget["projectType"] == "CONSTRUCTION_NEUVE"
        assert any("2 lot(s)" in r for r in budget["recommendations"])

    def test_material_choice_from_context(self):
        roof_batch = {
            "categories": [{
                "nom": "Toiture",
                "items": [
                    {"description": "Bardeaux d'asphalte", "total": 6000},
                    {"description": "Tôle métal", "total": 11000},
                ],
                "sous_total_materiaux": 17000,
                "sous_total_main_oeuvre": 7000,
            }],
        }
        state = run_analysis_workflow(
            mode="merge",
            batch_results=[roof_batch],
            client_context={"squareFootage": 1000, "materialChoices": {"roofingType": "metal"}},
            enable_checkpoints=False
        )
        roof = _category(state, "Toiture")
        assert [i["description"] for i in roof["items"]] == ["Tôle métal"]
        assert [i["description"] for i in roof["alternatives"]] == ["Bardeaux d'asphalte"]
        assert roof["sous_total_materiaux"] == 11000
        assert roof["sous_total_categorie"] == 18000

    def test_client_area_used_when_plans_have_none(self):
        state = run_analysis_workflow(
            mode="merge",
            batch_results=[{"categories": []}],
            client_context={"squareFootage": 1000},
            enable_checkpoints=False
        )
        roof = _category(state, "Toiture")
        assert roof["sous_total_categorie"] == pytest.approx(25 * 1000)

    def test_sum_override(self, semelle_batches):
        for batch in semelle_batches:
            batch["extraction"]["categories"][0]["sous_total_materiaux"] = 1800
        state = run_analysis_workflow(
            mode="merge",
            batch_results=semelle_batches,
            policy_overrides={"Fondation": "sum"},
            enable_checkpoints=False
        )
        assert _category(state, "Fondation")["sous_total_materiaux"] == 3600

    def test_no_batches(self):
        state = run_analysis_workflow(mode="merge", batch_results=[], enable_checkpoints=False)
        assert state["success"] is False
        assert state["error"]
        assert state["categories"] == []

    def test_reports_written(self, semelle_batches, tmp_path):
        state = run_analysis_workflow(
            mode="merge",
            batch_results=semelle_batches,
            output_path=str(tmp_path),
            enable_checkpoints=False
        )
        paths = state["report_paths"]
        assert Path(paths["json"]).exists()
        assert Path(paths["csv"]).exists()
        with open(paths["json"], encoding="utf-8") as f:
            report = json.load(f)
        assert report["success"] is True
        assert report["data"]["estimatedTotal"] == state["budget"]["estimatedTotal"]


class TestPlanMode:
    """Tests for analyzing plan pages with the vision model."""

    def test_two_pages(self):
        analyzer, provider = make_analyzer([
            page_answer("Semelles", 1800, 1),
            page_answer("Semelles (Page 2)", 1800, 2),
        ])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["plan-1.png", "plan-2.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is True
        assert state["pages_total"] == 2
        assert len(state["page_extractions"]) == 2
        assert state["tokens_used"] == 200
        assert len(_category(state, "Fondation")["items"]) == 1
        assert len(provider.calls) == 2
        assert provider.calls[0]["image"].reference == "plan-1.png"
        assert provider.calls[0]["system"]

    def test_transient_error_retried(self):
        analyzer, provider = make_analyzer([
            TransientProviderError("overloaded", 529),
            page_answer("Semelles", 1800, 1),
        ])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["plan-1.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is True
        assert state["pages_failed"] == 0
        assert len(provider.calls) == 2

    def test_skipped_page_does_not_fail_run(self):
        analyzer, _ = make_analyzer([page_answer("Semelles", 1800, 1)])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["missing-plan.png", "plan-2.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is True
        assert state["pages_skipped"] == 1
        assert state["budget"]["plansAnalyzed"] == 2

    def test_unrepairable_page_counts_as_failed(self):
        analyzer, _ = make_analyzer([
            "Désolé, le plan est illisible.",
            page_answer("Semelles", 1800, 2),
        ])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["plan-1.png", "plan-2.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is True
        assert state["pages_failed"] == 1

    def test_all_pages_skipped(self):
        analyzer, provider = make_analyzer([])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["missing-1.png", "missing-2.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is False
        assert state["error"] == UNREADABLE_PLANS_ERROR
        assert state["categories"] == []
        assert provider.calls == []

    def test_all_calls_fail(self):
        analyzer, _ = make_analyzer([
            ProviderError("bad request", 400),
            ProviderError("bad request", 400),
        ])
        state = run_analysis_workflow(
            mode="plan",
            image_references=["plan-1.png", "plan-2.png"],
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is False
        assert state["error"] == AI_FAILURE_ERROR
        assert state["pages_failed"] == 2


class TestManualMode:
    """Tests for estimating without plans."""

    def test_manual_estimate(self):
        answer = {
            "extraction": {
                "type_projet": "GARAGE_DETACHE",
                "superficie_nouvelle_pi2": 600,
                "nombre_etages": 1,
                "categories": [{
                    "nom": "Fondation",
                    "items": [{"description": "Dalle monolithique", "total": 18000}],
                    "sous_total_materiaux": 18000,
                    "sous_total_main_oeuvre": 9000,
                    "sous_total_categorie": 27000,
                }],
            },
            "recommandations": ["Valider le type de sol"],
            "resume_projet": "Garage détaché de 600 pi²",
        }
        analyzer, provider = make_analyzer([answer])
        state = run_analysis_workflow(
            mode="manual",
            client_context={"projectType": "garage", "squareFootage": 600},
            analyzer=analyzer,
            enable_checkpoints=False
        )
        assert state["success"] is True
        assert _category(state, "Fondation")["sous_total_categorie"] == 27000
        assert len(state["categories"]) == 12
        assert state["budget"]["projectSummary"] == "Garage détaché de 600 pi²"
        assert state["budget"]["plansAnalyzed"] == 0
        assert provider.calls[0]["image"] is None
        assert provider.calls[0]["max_tokens"] == 8192

    def test_unrepairable_answer_falls_back(self):
        analyzer, _ = make_analyzer(["pas du JSON"])
        state = run_analysis_workflow(mode="manual", analyzer=analyzer, enable_checkpoints=False)
        assert state["success"] is True
        assert state["budget"]["projectType"] == INCOMPLETE_PROJECT_TYPE

    def test_call_failure(self):
        analyzer, _ = make_analyzer([ProviderError("unauthorized", 401)])
        state = run_analysis_workflow(mode="manual", analyzer=analyzer, enable_checkpoints=False)
        assert state["success"] is False
        assert state["error"] == AI_FAILURE_ERROR


class TestWorkflow:
    """Tests for routing, streaming and checkpointing."""

    def test_invalid_mode(self):
        state = run_analysis_workflow(mode="fax", enable_checkpoints=False)
        assert state["success"] is False
        assert "Mode" in state["error"]

    def test_stream_node_order(self, semelle_batches):
        nodes = [name for name, _ in stream_analysis_workflow(mode="merge", batch_results=semelle_batches)]
        assert nodes == [
            "collect_batches",
            "merge_pages",
            "complete_categories",
            "filter_materials",
            "recalculate_totals",
            "build_payload",
        ]

    def test_checkpointed_run(self, semelle_batches):
        state = run_analysis_workflow(mode="merge", batch_results=semelle_batches, enable_checkpoints=True)
        assert state["success"] is True

    def test_visualization(self):
        assert "merge_pages" in get_workflow_visualization()

    def test_state_summary(self, semelle_batches):
        state = run_analysis_workflow(mode="merge", batch_results=semelle_batches, enable_checkpoints=False)
        summary = get_state_summary(state)
        assert summary["mode"] == "merge"
        assert summary["pages_ok"] == 2
        assert summary["categories"] == 12
        assert summary["grand_total"] == state["totals"]["grand_total"]
        assert summary["success"] is True

    def test_completion_logs_summary(self, semelle_batches, caplog):
        with caplog.at_level(logging.INFO, logger="agent.graph"):
            run_analysis_workflow(mode="merge", batch_results=semelle_batches, enable_checkpoints=False)
        assert any("Workflow completed" in r.message and "'categories': 12" in r.message for r in caplog.records)
