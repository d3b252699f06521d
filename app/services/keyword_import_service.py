"""
app/services/keyword_import_service.py

Import pipeline for keyword and traffic files.

    parse -> classify -> upsert -> associate -> finalize

Keyword files reuse stored classifications first: verified keywords and
keywords with a known intent skip classification. The rest go through the
hybrid classifier. Every keyword is upserted on its normalized form, and
verified rows keep their stored intent. When a target media is given, a
second pass links the written keywords to it.

Traffic files resolve each domain to a registered media and upsert on
(media, period).

Malformed lines and failed chunks degrade to partial success; only
file-level problems (missing required column, too little data) abort.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from app.domain.keyword_import import (
    ClassificationResult,
    ImportPreview,
    ImportSummary,
    ImportType,
    RowRecord,
    StoredClassification,
    TrafficRecord,
    empty_intent_summary,
)
from app.errors import AppError, UnsupportedImportTypeError
from app.normalization.row_normalizer import RowNormalizer, normalize_domain
from app.services.batch_upsert_coordinator import (
    KEYWORDS_TARGET,
    MEDIA_KEYWORDS_TARGET,
    TRAFFIC_TARGET,
    BatchUpsertCoordinator,
    UpsertProgress,
    UpsertWriter,
    chunked,
    deduplicate_rows,
)
from classification.hybrid import HybridIntentClassifier
from classification.rules import classify_query_type
from db.models.import_job import ImportStep
from monitoring.logger import StructuredLogger
from monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_BATCH_SIZE = 500
DEFAULT_PREVIEW_ROWS = 50


class ImportDatastore(UpsertWriter, Protocol):
    def media_exists(self, media_id: uuid.UUID) -> bool:
        ...

    def media_ids_by_domain(self, domains: Sequence[str]) -> dict[str, uuid.UUID]:
        ...

    def lookup_classifications(self, normalized_keywords: Sequence[str]) -> dict[str, StoredClassification]:
        ...


class ImportProgressReporter(Protocol):
    """
    Receives step and progress observations for one running import.

    ``success_count + error_count`` is always the processed row count.
    """

    def step(self, step: str, *, total_rows: int | None = None) -> None:
        ...

    def progress(
        self,
        *,
        step: str,
        success_count: int,
        error_count: int,
        errors: list[str],
    ) -> None:
        ...

    def is_cancelled(self) -> bool:
        ...


@dataclass(frozen=True)
class ImportRequest:
    content: bytes
    import_type: str
    file_name: str | None = None
    media_id: uuid.UUID | None = None


class KeywordImportService:
    """
    Runs one import end to end against a caller-supplied datastore.

    The caller owns the transaction: nothing here commits.
    """

    def __init__(
        self,
        *,
        normalizer: RowNormalizer,
        classifier: HybridIntentClassifier,
        chunk_size: int = 100,
        lookup_batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
        max_error_messages: int = 5,
        metrics: MetricsCollector | None = None,
        structured_logger: StructuredLogger | None = None,
    ) -> None:
        self._normalizer = normalizer
        self._classifier = classifier
        self._chunk_size = max(1, chunk_size)
        self._lookup_batch_size = max(1, lookup_batch_size)
        self._max_error_messages = max(1, max_error_messages)
        self._metrics = metrics
        self._structured_logger = structured_logger

    def run(
        self,
        request: ImportRequest,
        *,
        datastore: ImportDatastore,
        reporter: ImportProgressReporter | None = None,
    ) -> ImportSummary:
        started = time.perf_counter()
        if request.import_type == ImportType.KEYWORDS:
            summary = self._import_keywords(request, datastore=datastore, reporter=reporter)
        elif request.import_type == ImportType.TRAFFIC:
            summary = self._import_traffic(request, datastore=datastore, reporter=reporter)
        else:
            raise UnsupportedImportTypeError(f"Unsupported import type: {request.import_type}")

        duration_ms = (time.perf_counter() - started) * 1000
        self._record_completion(request, summary, duration_ms)
        return summary

    def preview(
        self,
        request: ImportRequest,
        *,
        datastore: ImportDatastore,
        max_rows: int = DEFAULT_PREVIEW_ROWS,
    ) -> ImportPreview:
        """
        Parse ``request`` without classifying or writing anything.

        For keyword files the first URL's domain is matched against the
        registered media so the caller can confirm the import target.
        """

        parsed = self._normalizer.normalize(request.content, request.import_type)

        detected_domain: str | None = None
        detected_media_id: uuid.UUID | None = None
        if request.import_type == ImportType.KEYWORDS:
            first_url = next((record.url for record in parsed.records if record.url), None)
            detected_domain = normalize_domain(first_url) if first_url else None
            if detected_domain:
                detected_media_id = datastore.media_ids_by_domain([detected_domain]).get(detected_domain)

        logger.info(
            "Import preview type=%s file=%s rows=%d errors=%d domain=%s media=%s",
            request.import_type,
            request.file_name,
            len(parsed.records),
            parsed.error_count,
            detected_domain,
            detected_media_id,
        )
        return ImportPreview(
            import_type=request.import_type,
            total_rows=parsed.total_lines,
            valid_rows=len(parsed.records),
            error_count=parsed.error_count,
            errors=self._cap(list(parsed.errors)),
            columns=list(parsed.columns),
            encoding=parsed.encoding,
            delimiter=parsed.delimiter,
            preview_rows=[asdict(record) for record in parsed.records[: max(0, max_rows)]],
            detected_domain=detected_domain or None,
            detected_media_id=detected_media_id,
        )

    # ------------------------------------------------------------------
    # Keyword files
    # ------------------------------------------------------------------

    def _import_keywords(
        self,
        request: ImportRequest,
        *,
        datastore: ImportDatastore,
        reporter: ImportProgressReporter | None,
    ) -> ImportSummary:
        self._step(reporter, ImportStep.PARSE)
        parsed = self._normalizer.normalize(request.content, ImportType.KEYWORDS)
        records: list[RowRecord] = list(parsed.records)

        if request.media_id is not None and not datastore.media_exists(request.media_id):
            raise AppError("E-DATA-001", details={"media_id": str(request.media_id)})

        unique_records, duplicate_count = self._dedupe_records(records)
        total_rows = len(unique_records) + parsed.error_count
        self._step(reporter, ImportStep.CLASSIFY, total_rows=total_rows)
        self._progress(reporter, ImportStep.CLASSIFY, 0, parsed.error_count, parsed.errors)

        stored = self._lookup_existing(datastore, [record.normalized_keyword for record in unique_records])
        results: dict[str, ClassificationResult] = {
            normalized: item.to_result() for normalized, item in stored.items()
        }
        verified_count = sum(1 for item in stored.values() if item.is_verified)

        classification = self._classifier.classify(
            [record.keyword for record in unique_records if record.normalized_keyword not in results],
            should_cancel=self._cancel_check(reporter),
        )
        results.update(classification.results)

        classified_at = datetime.now(timezone.utc)
        keyword_rows: list[dict[str, Any]] = []
        intent_summary = empty_intent_summary()
        for record in unique_records:
            result = results[record.normalized_keyword]
            intent_summary[result.intent] += 1
            keyword_rows.append(
                {
                    "keyword": record.keyword,
                    "keyword_normalized": record.normalized_keyword,
                    "intent": result.intent,
                    "intent_confidence": result.confidence,
                    "intent_reason": result.reason,
                    "intent_updated_at": classified_at,
                    "classification_source": result.source,
                    "query_type": classify_query_type(record.keyword),
                    "max_monthly_search_volume": record.search_volume,
                    "max_cpc": record.cpc,
                }
            )

        self._step(reporter, ImportStep.UPSERT)
        coordinator = self._coordinator(datastore)
        outcome = coordinator.upsert_rows(
            KEYWORDS_TARGET,
            keyword_rows,
            category_of=lambda row: row["intent"],
            progress=self._chunk_progress(reporter, ImportStep.UPSERT, parsed.error_count, parsed.errors),
            should_cancel=self._cancel_check(reporter),
            deduplicate=False,
        )

        if request.media_id is not None and outcome.success_count:
            self._step(reporter, ImportStep.ASSOCIATE)
            coordinator.associate(
                MEDIA_KEYWORDS_TARGET,
                [self._link_row(record, request) for record in unique_records],
                lookup_table=KEYWORDS_TARGET.table,
                lookup_column="keyword_normalized",
                reference_field="keyword_normalized",
                id_field="keyword_id",
                should_cancel=self._cancel_check(reporter),
            )

        self._step(reporter, ImportStep.FINALIZE)
        written_intent_summary = empty_intent_summary()
        for intent, count in outcome.category_counts.items():
            written_intent_summary[intent] = written_intent_summary.get(intent, 0) + count

        return ImportSummary(
            success_count=outcome.success_count,
            error_count=parsed.error_count + outcome.error_count,
            total_keywords=len(unique_records),
            intent_summary=intent_summary,
            errors=self._cap([*parsed.errors, *outcome.errors]),
            duplicate_count=duplicate_count,
            ai_classified_count=classification.stats.ai_count,
            fallback_batch_count=classification.stats.fallback_batches,
            reused_count=len(stored),
            verified_skipped_count=verified_count,
            written_intent_summary=written_intent_summary,
        )

    def _lookup_existing(
        self,
        datastore: ImportDatastore,
        normalized_keywords: list[str],
    ) -> dict[str, StoredClassification]:
        """
        Fetch reusable stored classifications in batches.

        Verified rows and rows with a known intent are reused as is. A failed
        lookup batch only means its keywords get classified again.
        """

        reusable: dict[str, StoredClassification] = {}
        for batch in chunked(normalized_keywords, self._lookup_batch_size):
            try:
                found = datastore.lookup_classifications(list(batch))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Stored classification lookup failed size=%d error=%s", len(batch), exc)
                continue
            for normalized, stored in found.items():
                if stored.is_reusable:
                    reusable[normalized] = stored

        logger.info(
            "Stored classifications reused=%d verified=%d pending=%d",
            len(reusable),
            sum(1 for stored in reusable.values() if stored.is_verified),
            len(normalized_keywords) - len(reusable),
        )
        return reusable

    @staticmethod
    def _dedupe_records(records: list[RowRecord]) -> tuple[list[RowRecord], int]:
        by_keyword: dict[str, RowRecord] = {}
        for record in records:
            by_keyword[record.normalized_keyword] = record
        return list(by_keyword.values()), len(records) - len(by_keyword)

    @staticmethod
    def _link_row(record: RowRecord, request: ImportRequest) -> dict[str, Any]:
        return {
            "keyword_normalized": record.normalized_keyword,
            "media_id": request.media_id,
            "ranking_position": record.search_rank,
            "monthly_search_volume": record.search_volume,
            "estimated_traffic": record.traffic,
            "cpc": record.cpc,
            "competition_level": record.competition,
            "seo_difficulty": record.seo_difficulty,
            "landing_url": record.url,
            "source_file": request.file_name,
        }

    # ------------------------------------------------------------------
    # Traffic files
    # ------------------------------------------------------------------

    def _import_traffic(
        self,
        request: ImportRequest,
        *,
        datastore: ImportDatastore,
        reporter: ImportProgressReporter | None,
    ) -> ImportSummary:
        self._step(reporter, ImportStep.PARSE)
        parsed = self._normalizer.normalize(request.content, ImportType.TRAFFIC)
        records: list[TrafficRecord] = list(parsed.records)

        media_ids = datastore.media_ids_by_domain([record.domain for record in records])
        errors = list(parsed.errors)
        error_count = parsed.error_count
        rows: list[dict[str, Any]] = []
        for record in records:
            media_id = media_ids.get(record.domain)
            if media_id is None:
                error_count += 1
                if len(errors) < self._max_error_messages:
                    errors.append(f"Line {record.source_line}: no media registered for domain {record.domain}")
                continue
            rows.append(
                {
                    "media_id": media_id,
                    "period": record.period,
                    "monthly_visits": record.monthly_visits,
                    "source_file": request.file_name,
                }
            )

        rows, duplicate_count = deduplicate_rows(rows, TRAFFIC_TARGET.conflict_key)
        self._step(reporter, ImportStep.UPSERT, total_rows=len(rows) + error_count)
        self._progress(reporter, ImportStep.UPSERT, 0, error_count, errors)

        outcome = self._coordinator(datastore).upsert_rows(
            TRAFFIC_TARGET,
            rows,
            progress=self._chunk_progress(reporter, ImportStep.UPSERT, error_count, errors),
            should_cancel=self._cancel_check(reporter),
            deduplicate=False,
        )

        self._step(reporter, ImportStep.FINALIZE)
        return ImportSummary(
            success_count=outcome.success_count,
            error_count=error_count + outcome.error_count,
            total_keywords=len(records) - duplicate_count,
            intent_summary=empty_intent_summary(),
            errors=self._cap([*errors, *outcome.errors]),
            duplicate_count=duplicate_count,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _coordinator(self, datastore: ImportDatastore) -> BatchUpsertCoordinator:
        return BatchUpsertCoordinator(
            datastore,
            chunk_size=self._chunk_size,
            max_error_messages=self._max_error_messages,
        )

    def _cap(self, errors: list[str]) -> list[str]:
        return errors[: self._max_error_messages]

    @staticmethod
    def _cancel_check(reporter: ImportProgressReporter | None):
        return reporter.is_cancelled if reporter is not None else None

    @staticmethod
    def _step(reporter: ImportProgressReporter | None, step: str, *, total_rows: int | None = None) -> None:
        if reporter is not None:
            reporter.step(step, total_rows=total_rows)

    def _progress(
        self,
        reporter: ImportProgressReporter | None,
        step: str,
        success_count: int,
        error_count: int,
        errors: list[str],
    ) -> None:
        if reporter is not None:
            reporter.progress(
                step=step,
                success_count=success_count,
                error_count=error_count,
                errors=self._cap(list(errors)),
            )

    def _chunk_progress(
        self,
        reporter: ImportProgressReporter | None,
        step: str,
        base_error_count: int,
        base_errors: list[str],
    ):
        if reporter is None:
            return None

        def on_chunk(update: UpsertProgress) -> None:
            self._progress(
                reporter,
                step,
                update.success_count,
                base_error_count + update.error_count,
                [*base_errors, *update.errors],
            )

        return on_chunk

    def _record_completion(self, request: ImportRequest, summary: ImportSummary, duration_ms: float) -> None:
        logger.info(
            "Import finished type=%s file=%s success=%d errors=%d duplicates=%d",
            request.import_type,
            request.file_name,
            summary.success_count,
            summary.error_count,
            summary.duplicate_count,
        )
        tags = {"import_type": request.import_type}
        if self._metrics is not None:
            self._metrics.record("import.duration", duration_ms, tags)
            self._metrics.record("import.rows.success", summary.success_count, tags)
            self._metrics.record("import.rows.error", summary.error_count, tags)
            self._metrics.record("import.ai.fallback_batches", summary.fallback_batch_count, tags)
            self._metrics.record("import.classification.reused", summary.reused_count, tags)
        if self._structured_logger is not None:
            self._structured_logger.info(
                "Import completed",
                {
                    "action": "import",
                    "import_type": request.import_type,
                    "file_name": request.file_name,
                    "success_count": summary.success_count,
                    "error_count": summary.error_count,
                    "duration_ms": round(duration_ms, 2),
                },
            )
