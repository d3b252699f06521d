"""
classification/hybrid.py

Hybrid intent classifier: rule pass first, then the AI service for keywords
the rules cannot settle, one resilient call per batch.

Fallback is batch-level. When the AI call for a batch fails after retries,
every keyword in that batch keeps its rule result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from app.domain.keyword_import import (
    ClassificationResult,
    ClassificationSource,
    normalize_keyword,
)
from classification.adapter import BaseIntentAdapter
from classification.rules import RuleBasedIntentClassifier, RuleDecision
from classification.validator import validate_intent_response
from monitoring.metrics import MetricsCollector
from resilience.errors import ExternalErrorKind, OperationCancelledError
from resilience.executor import ResilienceExecutor

logger = logging.getLogger(__name__)

DEFAULT_AI_BATCH_SIZE = 50


@dataclass
class HybridClassificationStats:
    rule_count: int = 0
    ai_count: int = 0
    ai_batches: int = 0
    fallback_batches: int = 0


@dataclass(frozen=True)
class HybridClassification:
    """
    Results keyed by normalized keyword, plus how they were obtained.
    """

    results: dict[str, ClassificationResult]
    stats: HybridClassificationStats = field(default_factory=HybridClassificationStats)

    def get(self, keyword: str) -> ClassificationResult | None:
        return self.results.get(normalize_keyword(keyword))


class HybridIntentClassifier:
    def __init__(
        self,
        *,
        rule_classifier: RuleBasedIntentClassifier,
        adapter: BaseIntentAdapter | None,
        executor: ResilienceExecutor,
        metrics: MetricsCollector | None = None,
        batch_size: int = DEFAULT_AI_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._rules = rule_classifier
        self._adapter = adapter
        self._executor = executor
        self._metrics = metrics
        self._batch_size = batch_size

    def classify(
        self,
        keywords: Iterable[str],
        *,
        should_cancel: Callable[[], bool] | None = None,
    ) -> HybridClassification:
        """
        Classify every distinct keyword exactly once.

        Raises OperationCancelledError when ``should_cancel`` reports True
        between AI batches or retry attempts.
        """

        unique: dict[str, str] = {}
        for keyword in keywords:
            normalized = normalize_keyword(keyword)
            if normalized and normalized not in unique:
                unique[normalized] = keyword.strip()

        decisions = {normalized: self._rules.evaluate(normalized) for normalized in unique}
        results: dict[str, ClassificationResult] = {}
        pending: list[str] = []
        for normalized, decision in decisions.items():
            if decision.needs_ai and self._adapter is not None:
                pending.append(normalized)
            else:
                results[normalized] = decision.result

        stats = HybridClassificationStats()
        for start in range(0, len(pending), self._batch_size):
            if should_cancel is not None and should_cancel():
                raise OperationCancelledError("Classification cancelled between AI batches.")

            batch = pending[start : start + self._batch_size]
            stats.ai_batches += 1
            batch_results = self._classify_batch(
                batch,
                [unique[normalized] for normalized in batch],
                decisions,
                stats,
                should_cancel,
            )
            results.update(batch_results)

        for result in results.values():
            if result.source == ClassificationSource.AI:
                stats.ai_count += 1
            else:
                stats.rule_count += 1

        logger.info(
            "Classified keywords=%d rule=%d ai=%d ai_batches=%d fallback_batches=%d",
            len(results),
            stats.rule_count,
            stats.ai_count,
            stats.ai_batches,
            stats.fallback_batches,
        )
        return HybridClassification(results=results, stats=stats)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _classify_batch(
        self,
        batch: list[str],
        originals: list[str],
        decisions: dict[str, RuleDecision],
        stats: HybridClassificationStats,
        should_cancel: Callable[[], bool] | None,
    ) -> dict[str, ClassificationResult]:
        def rule_results(_kind: ExternalErrorKind | None = None) -> dict[str, ClassificationResult]:
            return {normalized: decisions[normalized].result for normalized in batch}

        def call_ai() -> dict[str, ClassificationResult]:
            raw = self._call_adapter(originals)
            return self._merge_ai_items(batch, validate_intent_response(raw), decisions)

        outcome = self._executor.with_fallback(call_ai, rule_results, should_cancel=should_cancel)

        if outcome.used_fallback:
            stats.fallback_batches += 1
            logger.warning(
                "AI batch degraded to rules size=%d kind=%s reason=%s",
                len(batch),
                outcome.error_type.value if outcome.error_type else "unknown",
                outcome.fallback_reason,
            )
        if not outcome.success or outcome.data is None:
            logger.error("AI batch and rule fallback both failed size=%d", len(batch))
            return rule_results()
        return outcome.data

    def _call_adapter(self, keywords: list[str]) -> str:
        adapter = self._adapter
        if adapter is None:
            raise RuntimeError("AI batch requested but no intent adapter is configured.")
        if self._metrics is None:
            return adapter.classify_keywords(keywords)
        return self._metrics.measure_external_call(
            adapter.service_name,
            "classify_keywords",
            lambda: adapter.classify_keywords(keywords),
        )

    @staticmethod
    def _merge_ai_items(
        batch: list[str],
        items: dict,
        decisions: dict[str, RuleDecision],
    ) -> dict[str, ClassificationResult]:
        merged: dict[str, ClassificationResult] = {}
        for normalized in batch:
            item = items.get(normalized)
            if item is None:
                # Keyword missing from the AI response keeps its rule result.
                merged[normalized] = decisions[normalized].result
                continue
            merged[normalized] = ClassificationResult(
                intent=item.intent,
                confidence=item.confidence,
                reason=item.reason or "AI classification",
                source=ClassificationSource.AI,
            )
        return merged
