"""
Plan Analyzer
Runs the vision model over plan pages and turns answers into PageExtractions.

Pages are processed one at a time. Transient failures (rate limit,
overload, server errors, empty answers) are retried with a linear
backoff; a page that still fails is skipped instead of aborting the run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from .config import AnalyzerConfig
from .json_repair import safe_parse_json, unwrap_extraction
from .models import ClientContext, PageExtraction
from .plan_images import PlanImage, load_plan_images
from .prompts import SYSTEM_PROMPT, build_manual_prompt, build_page_prompt
from .vision_providers import (
    EmptyResponseError,
    ProviderError,
    ProviderResponse,
    TransientProviderError,
    VisionProvider,
)

logger = logging.getLogger(__name__)

# Seconds per attempt number
RATE_LIMIT_BACKOFF = 1.2
TRANSIENT_BACKOFF = 0.35
EMPTY_RESPONSE_BACKOFF = 0.25

INCOMPLETE_PROJECT_TYPE = "ANALYSE_INCOMPLETE"

ImageLoader = Callable[[str, int, int], List[Optional[PlanImage]]]


def incomplete_analysis_payload() -> Dict[str, Any]:
    """Structurally valid result used when the model answer cannot be repaired."""
    return {
        "extraction": {
            "type_projet": INCOMPLETE_PROJECT_TYPE,
            "superficie_nouvelle_pi2": 0,
            "nombre_etages": 1,
            "categories": [],
            "elements_manquants": ["L'analyse a été interrompue - veuillez réessayer"],
            "ambiguites": [],
            "incoherences": [],
        },
        "recommandations": ["Veuillez relancer l'analyse - la réponse a été tronquée"],
        "resume_projet": "Analyse incomplète",
    }


@dataclass
class PlanRun:
    """Outcome of analyzing a set of plan references."""
    extractions: List[PageExtraction] = field(default_factory=list)
    pages_total: int = 0
    pages_skipped: int = 0   # unfetchable or over the byte cap
    pages_failed: int = 0    # AI call or JSON failed
    tokens_used: int = 0
    alerts: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    summaries: List[str] = field(default_factory=list)

    @property
    def all_skipped(self) -> bool:
        return self.pages_total > 0 and self.pages_skipped == self.pages_total


def linear_backoff(scale: float = 1.0) -> Callable[[RetryCallState], float]:
    """
    Wait strategy: 1.2 s x attempt after HTTP 429, 0.25 s x attempt after
    an empty answer, 0.35 s x attempt otherwise.
    """
    def wait(retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number
        if isinstance(error, ProviderError) and error.status_code == 429:
            step = RATE_LIMIT_BACKOFF
        elif isinstance(error, EmptyResponseError):
            step = EMPTY_RESPONSE_BACKOFF
        else:
            step = TRANSIENT_BACKOFF
        return step * attempt * scale
    return wait


class PlanAnalyzer:
    """
    Extracts budget categories from plan pages using a VisionProvider.

    The provider is injected so tests (and other models) can stand in for
    the real API.
    """

    def __init__(
        self,
        provider: VisionProvider,
        config: Optional[AnalyzerConfig] = None,
        image_loader: ImageLoader = load_plan_images
    ):
        self.provider = provider
        self.config = config or AnalyzerConfig()
        self.image_loader = image_loader
        logger.info(
            f"PlanAnalyzer initialized with provider: {provider.PROVIDER_NAME}, model: {provider.model}"
        )

    def call_with_retry(
        self,
        prompt: str,
        image: Optional[PlanImage] = None,
        max_tokens: Optional[int] = None,
        label: str = "request"
    ) -> ProviderResponse:
        """
        Call the provider, retrying transient failures.

        Raises:
            ProviderError: After the last attempt, or at once for permanent errors
        """
        attempts = self.config.max_attempts
        retryer = Retrying(
            stop=stop_after_attempt(attempts),
            wait=linear_backoff(self.config.backoff_scale),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=lambda retry_state: logger.warning(
                f"{label}: vision call failed ({retry_state.outcome.exception()}), "
                f"retrying (attempt {retry_state.attempt_number}/{attempts})..."
            ),
            reraise=True,
        )
        return retryer(
            self.provider.complete,
            prompt,
            system=SYSTEM_PROMPT,
            image=image,
            max_tokens=max_tokens or self.config.max_tokens,
        )

    def _parse_response(self, text: str, label: str) -> Optional[Dict[str, Any]]:
        parsed = safe_parse_json(text)
        if parsed is None:
            logger.warning(f"{label}: response is not repairable JSON")
        return parsed

    def analyze_page(
        self,
        image: PlanImage,
        page_number: int,
        total_pages: int,
        quality: Optional[str] = "standard",
        context: Optional[ClientContext] = None,
        run: Optional[PlanRun] = None
    ) -> Optional[PageExtraction]:
        """
        Analyze one page.

        Returns:
            PageExtraction, or None when the call failed or the answer had
            no usable categories list
        """
        label = f"Page {page_number}/{total_pages}"
        prompt = build_page_prompt(page_number, total_pages, quality, context)

        try:
            response = self.call_with_retry(prompt, image=image, label=label)
        except ProviderError as e:
            logger.error(f"{label}: vision call failed: {e}")
            return None

        if run is not None:
            run.tokens_used += response.tokens_used

        parsed = self._parse_response(response.text, label)
        if parsed is None:
            return None

        extraction = unwrap_extraction(parsed)
        if not isinstance(extraction.get("categories"), list):
            logger.warning(f"{label}: no categories list in response")
            return None

        if run is not None:
            validation = parsed.get("validation") or {}
            run.alerts.extend(str(a) for a in (validation.get("alertes") or []))
            run.recommendations.extend(str(r) for r in (parsed.get("recommandations") or []))
            if parsed.get("resume_projet"):
                run.summaries.append(str(parsed["resume_projet"]))

        page = PageExtraction.from_dict(extraction)
        logger.info(f"{label}: {len(page.categories)} categories extracted")
        return page

    def analyze_plans(
        self,
        references: List[str],
        quality: Optional[str] = "standard",
        context: Optional[ClientContext] = None
    ) -> PlanRun:
        """
        Analyze every page behind the plan references, sequentially.

        Args:
            references: URLs, image paths or PDF paths
            quality: Finish tier
            context: Optional client context

        Returns:
            PlanRun with extractions and skip/failure counts
        """
        run = PlanRun()

        pages: List[Optional[PlanImage]] = []
        for reference in references:
            pages.extend(
                self.image_loader(reference, self.config.max_image_bytes, self.config.pdf_dpi)
            )
        run.pages_total = len(pages)

        for index, image in enumerate(pages, start=1):
            if image is None:
                run.pages_skipped += 1
                logger.warning(f"Skipping page {index}/{run.pages_total} (fetch failed or too large)")
                continue

            logger.info(f"Processing page {index}/{run.pages_total}: {image.label}")
            page = self.analyze_page(image, index, run.pages_total, quality, context, run)
            if page is None:
                run.pages_failed += 1
            else:
                run.extractions.append(page)

        logger.info(
            f"Analyzed {run.pages_total} page(s): {len(run.extractions)} ok, "
            f"{run.pages_skipped} skipped, {run.pages_failed} failed, {run.tokens_used:,} tokens"
        )
        return run

    def analyze_manual(
        self,
        quality: Optional[str] = "standard",
        context: Optional[ClientContext] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Estimate from the client context alone (no plans).

        Returns:
            Parsed model JSON, the incomplete-analysis payload when the
            answer cannot be repaired, or None when the call itself failed
        """
        prompt = build_manual_prompt(quality, context)
        try:
            response = self.call_with_retry(
                prompt,
                max_tokens=self.config.manual_max_tokens,
                label="Manual estimate"
            )
        except ProviderError as e:
            logger.error(f"Manual estimate: vision call failed: {e}")
            return None

        parsed = self._parse_response(response.text, "Manual estimate")
        if parsed is None:
            logger.warning("Manual estimate: falling back to incomplete-analysis payload")
            return incomplete_analysis_payload()
        return parsed
