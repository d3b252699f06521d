"""
app/container.py

Process-wide component wiring. Every client and collaborator is built once
here and passed into the components that use it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import (
    ImportSettings,
    IntentClassifierSettings,
    MetricsSettings,
    ObservabilitySettings,
    RetrySettings,
    get_import_settings,
    get_intent_classifier_settings,
    get_metrics_settings,
    get_observability_settings,
    get_retry_settings,
)
from app.normalization.row_normalizer import RowNormalizer
from app.services.import_orchestrator_service import ImportOrchestratorService
from app.services.keyword_import_service import KeywordImportService
from classification.adapter import BaseIntentAdapter, MockIntentAdapter, OpenAIIntentAdapter
from classification.hybrid import HybridIntentClassifier
from classification.rules import RuleBasedIntentClassifier
from monitoring.error_tracking import BaseErrorTracker, build_error_tracker
from monitoring.logger import StructuredLogger
from monitoring.metrics import MetricsCollector
from resilience.executor import ResilienceExecutor, RetryConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceContainer:
    error_tracker: BaseErrorTracker
    structured_logger: StructuredLogger
    metrics: MetricsCollector
    classifier: HybridIntentClassifier
    import_service: KeywordImportService
    orchestrator: ImportOrchestratorService
    metrics_flush_interval_seconds: int = 60


def build_intent_adapter(settings: IntentClassifierSettings) -> BaseIntentAdapter:
    if settings.adapter == "mock":
        logger.info("Intent classification: mock adapter")
        return MockIntentAdapter()
    logger.info("Intent classification: OpenAI adapter model=%s", settings.model)
    return OpenAIIntentAdapter(
        model=settings.model,
        max_tokens=settings.max_tokens,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


def build_container(
    *,
    import_settings: ImportSettings | None = None,
    retry_settings: RetrySettings | None = None,
    classifier_settings: IntentClassifierSettings | None = None,
    metrics_settings: MetricsSettings | None = None,
    observability_settings: ObservabilitySettings | None = None,
    adapter: BaseIntentAdapter | None = None,
    error_tracker: BaseErrorTracker | None = None,
    session_factory=None,
) -> ServiceContainer:
    import_settings = import_settings or get_import_settings()
    retry_settings = retry_settings or get_retry_settings()
    classifier_settings = classifier_settings or get_intent_classifier_settings()
    metrics_settings = metrics_settings or get_metrics_settings()
    observability = observability_settings or get_observability_settings()

    tracker = error_tracker or build_error_tracker(
        sentry_dsn=observability.sentry_dsn,
        environment=observability.environment,
        release=observability.app_version,
    )
    structured_logger = StructuredLogger(
        environment=observability.environment,
        version=observability.app_version,
        error_tracker=tracker,
    )
    metrics = MetricsCollector(structured_logger, max_buffer_size=metrics_settings.max_buffer_size)

    executor = ResilienceExecutor(
        RetryConfig(
            max_retries=retry_settings.max_retries,
            initial_delay_ms=retry_settings.initial_delay_ms,
            max_delay_ms=retry_settings.max_delay_ms,
            backoff_multiplier=retry_settings.backoff_multiplier,
        )
    )
    classifier = HybridIntentClassifier(
        rule_classifier=RuleBasedIntentClassifier(media_brand_terms=classifier_settings.media_brand_terms),
        adapter=adapter or build_intent_adapter(classifier_settings),
        executor=executor,
        metrics=metrics,
        batch_size=import_settings.ai_batch_size,
    )
    import_service = KeywordImportService(
        normalizer=RowNormalizer(max_error_messages=import_settings.max_error_messages),
        classifier=classifier,
        chunk_size=import_settings.upsert_chunk_size,
        max_error_messages=import_settings.max_error_messages,
        metrics=metrics,
        structured_logger=structured_logger,
    )
    orchestrator = ImportOrchestratorService(
        import_service=import_service,
        session_factory=session_factory,
        error_tracker=tracker,
        metrics=metrics,
    )

    return ServiceContainer(
        error_tracker=tracker,
        structured_logger=structured_logger,
        metrics=metrics,
        classifier=classifier,
        import_service=import_service,
        orchestrator=orchestrator,
        metrics_flush_interval_seconds=metrics_settings.flush_interval_seconds,
    )
