"""
tests/test_hybrid_classifier.py

Pytest unit tests for the hybrid (rules + AI) intent classifier, the AI
output validator and the mock adapter. No network access.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

import pytest

from app.domain.keyword_import import ClassificationSource, IntentCategory
from classification.adapter import BaseIntentAdapter, MockIntentAdapter
from classification.hybrid import HybridIntentClassifier
from classification.rules import RuleBasedIntentClassifier
from classification.validator import IntentOutputValidationError, validate_intent_response
from monitoring.logger import StructuredLogger
from monitoring.metrics import MetricsCollector
from resilience.errors import ExternalErrorKind, ExternalServiceError, OperationCancelledError
from resilience.executor import ResilienceExecutor, RetryConfig


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedAdapter(BaseIntentAdapter):
    """Returns queued responses; an Exception in the queue is raised instead."""

    def __init__(self, responses: list[object]) -> None:
        self._responses = list(responses)
        self.calls: list[list[str]] = []

    def classify_keywords(self, keywords: Sequence[str]) -> str:
        self.calls.append(list(keywords))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(keywords)
        return str(response)


def _customer_response(keywords: Sequence[str]) -> str:
    return json.dumps(
        {
            "classifications": [
                {"keyword": k, "intent": "branded_customer", "confidence": 0.8, "reason": "Employer name"}
                for k in keywords
            ]
        },
        ensure_ascii=False,
    )


def _classifier(adapter: BaseIntentAdapter | None, *, batch_size: int = 50, metrics=None) -> HybridIntentClassifier:
    return HybridIntentClassifier(
        rule_classifier=RuleBasedIntentClassifier(),
        adapter=adapter,
        executor=ResilienceExecutor(RetryConfig(max_retries=2), sleep=lambda _: None),
        metrics=metrics,
        batch_size=batch_size,
    )


# Keywords the rule engine cannot settle on its own.
AMBIGUOUS = ["グリーン歯科", "さくら病院", "ケアマネ"]


# ---------------------------------------------------------------------------
# Hybrid classification
# ---------------------------------------------------------------------------


class TestHybridIntentClassifier:
    def test_rule_settled_keywords_skip_ai(self) -> None:
        adapter = ScriptedAdapter([])
        outcome = _classifier(adapter).classify(["看護師 求人", "Indeed"])

        assert adapter.calls == []
        assert outcome.get("看護師 求人").intent == IntentCategory.TRANSACTIONAL
        assert outcome.get("indeed").source == ClassificationSource.RULE
        assert outcome.stats.rule_count == 2

    def test_ai_results_used_for_ambiguous_keywords(self) -> None:
        adapter = ScriptedAdapter([_customer_response])
        outcome = _classifier(adapter).classify(["看護師 求人", *AMBIGUOUS])

        assert adapter.calls == [AMBIGUOUS]
        for keyword in AMBIGUOUS:
            result = outcome.get(keyword)
            assert result.source == ClassificationSource.AI
            assert result.intent == IntentCategory.BRANDED_CUSTOMER
            assert result.confidence == pytest.approx(0.8)
        assert outcome.stats.ai_count == 3
        assert outcome.stats.fallback_batches == 0

    def test_batch_failure_degrades_whole_batch_to_rules(self) -> None:
        error = ExternalServiceError(ExternalErrorKind.TIMEOUT, "timed out")
        adapter = ScriptedAdapter([error, error, error])
        outcome = _classifier(adapter).classify(AMBIGUOUS)

        assert len(adapter.calls) == 3
        assert outcome.stats.fallback_batches == 1
        assert set(outcome.results) == {"グリーン歯科", "さくら病院", "ケアマネ"}
        for result in outcome.results.values():
            assert result.source == ClassificationSource.RULE
            assert 0.0 <= result.confidence <= 1.0

    def test_invalid_ai_output_falls_back_without_retry(self) -> None:
        adapter = ScriptedAdapter(["not json at all"])
        outcome = _classifier(adapter).classify(AMBIGUOUS)

        assert len(adapter.calls) == 1
        assert outcome.stats.fallback_batches == 1
        assert outcome.get("グリーン歯科").intent == IntentCategory.BRANDED_AMBIGUOUS

    def test_keywords_missing_from_ai_response_keep_rule_result(self) -> None:
        partial = json.dumps(
            [{"keyword": "ケアマネ", "intent": "informational", "confidence": 0.7, "reason": "Job title"}],
            ensure_ascii=False,
        )
        outcome = _classifier(ScriptedAdapter([partial])).classify(AMBIGUOUS)

        assert outcome.get("ケアマネ").source == ClassificationSource.AI
        assert outcome.get("さくら病院").source == ClassificationSource.RULE

    def test_batches_are_sized_and_failures_are_isolated(self) -> None:
        keywords = [f"テスト{index}クリニック" for index in range(5)]
        adapter = ScriptedAdapter(
            [
                _customer_response,
                ExternalServiceError(ExternalErrorKind.API_ERROR, "bad request"),
                _customer_response,
            ]
        )
        outcome = _classifier(adapter, batch_size=2).classify(keywords)

        assert [len(call) for call in adapter.calls] == [2, 2, 1]
        assert outcome.stats.ai_batches == 3
        assert outcome.stats.fallback_batches == 1
        assert outcome.stats.ai_count == 3
        assert outcome.stats.rule_count == 2

    def test_duplicates_are_classified_once(self) -> None:
        adapter = ScriptedAdapter([_customer_response])
        outcome = _classifier(adapter).classify(["ケアマネ", "  ケアマネ ", "ケアマネ"])

        assert adapter.calls == [["ケアマネ"]]
        assert len(outcome.results) == 1

    def test_cancellation_between_batches(self) -> None:
        adapter = ScriptedAdapter([_customer_response, _customer_response])
        with pytest.raises(OperationCancelledError):
            _classifier(adapter, batch_size=1).classify(AMBIGUOUS[:2], should_cancel=lambda: len(adapter.calls) >= 1)
        assert len(adapter.calls) == 1

    def test_without_adapter_everything_is_rule_based(self) -> None:
        outcome = _classifier(None).classify(AMBIGUOUS)
        assert outcome.stats.ai_batches == 0
        assert all(result.source == ClassificationSource.RULE for result in outcome.results.values())

    def test_adapter_call_without_adapter_raises_runtime_error(self) -> None:
        with pytest.raises(RuntimeError, match="no intent adapter"):
            _classifier(None)._call_adapter(["ケアマネ"])

    def test_external_calls_are_measured(self) -> None:
        metrics = MetricsCollector(StructuredLogger(environment="test"))
        _classifier(MockIntentAdapter(), metrics=metrics).classify(AMBIGUOUS)

        names = {metric.name for metric in metrics.snapshot()}
        assert "external.intent_ai.classify_keywords.duration" in names
        assert "external.intent_ai.classify_keywords.success" in names


# ---------------------------------------------------------------------------
# AI output validation
# ---------------------------------------------------------------------------


class TestValidateIntentResponse:
    def test_accepts_fenced_wrapped_array(self) -> None:
        raw = '```json\n{"classifications": [{"keyword": "Foo Bar", "intent": "b2b", "confidence": 1}]}\n```'
        items = validate_intent_response(raw)
        assert set(items) == {"foo bar"}
        assert items["foo bar"].intent == "b2b"

    def test_accepts_keyword_map(self) -> None:
        raw = '{"ケアマネ": {"intent": "informational", "confidence": 0.4, "reason": "job title"}}'
        items = validate_intent_response(raw)
        assert items["ケアマネ"].confidence == pytest.approx(0.4)

    def test_rejects_unknown_intent(self) -> None:
        raw = '[{"keyword": "x", "intent": "navigational", "confidence": 0.5}]'
        with pytest.raises(IntentOutputValidationError) as exc_info:
            validate_intent_response(raw)
        assert exc_info.value.stage == "schema"
        assert exc_info.value.kind is ExternalErrorKind.API_ERROR
        assert exc_info.value.retryable is False

    def test_rejects_out_of_range_confidence(self) -> None:
        with pytest.raises(IntentOutputValidationError):
            validate_intent_response('[{"keyword": "x", "intent": "b2b", "confidence": 1.5}]')

    def test_rejects_invalid_json(self) -> None:
        with pytest.raises(IntentOutputValidationError) as exc_info:
            validate_intent_response("{not json")
        assert exc_info.value.stage == "json_parse"

    def test_mock_adapter_output_is_valid(self) -> None:
        adapter = MockIntentAdapter()
        items = validate_intent_response(adapter.classify_keywords(["a", "b"]))
        assert set(items) == {"a", "b"}
        assert adapter.calls == [["a", "b"]]
