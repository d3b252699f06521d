"""
app/services/batch_upsert_coordinator.py

Chunked, idempotent persistence of classified rows.

Each chunk is one "insert or update on conflict key" write. A failed chunk
adds its size to the error count and processing moves on to the next chunk;
one bad chunk never aborts the import.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.errors import ImportCancelledError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
DEFAULT_MAX_ERROR_MESSAGES = 5


@dataclass(frozen=True)
class UpsertTarget:
    """
    A table plus the column(s) its upsert resolves conflicts on.

    ``protected_columns`` keep their stored value on conflict whenever the
    existing row's ``protected_when`` flag is set.
    """

    table: str
    conflict_key: tuple[str, ...]
    protected_columns: tuple[str, ...] = ()
    protected_when: str | None = None


KEYWORDS_TARGET = UpsertTarget(
    "keywords",
    ("keyword_normalized",),
    protected_columns=(
        "intent",
        "intent_confidence",
        "intent_reason",
        "intent_updated_at",
        "classification_source",
    ),
    protected_when="is_verified",
)
MEDIA_KEYWORDS_TARGET = UpsertTarget("media_keywords", ("media_id", "keyword_id"))
TRAFFIC_TARGET = UpsertTarget("traffic_data", ("media_id", "period"))


class UpsertWriter(Protocol):
    def upsert(self, target: UpsertTarget, rows: Sequence[dict[str, Any]]) -> None:
        """
        Insert or update ``rows`` keyed by ``target.conflict_key``.

        Raises on failure; nothing from a failed call is persisted.
        """

    def lookup_ids(self, table: str, column: str, values: Sequence[Any]) -> dict[Any, Any]:
        """
        Map each found ``column`` value to its row id.
        """


@dataclass(frozen=True)
class UpsertProgress:
    chunk_index: int
    chunk_count: int
    success_count: int
    error_count: int
    errors: list[str]

    @property
    def processed(self) -> int:
        return self.success_count + self.error_count


@dataclass(frozen=True)
class UpsertOutcome:
    success_count: int
    error_count: int
    errors: list[str] = field(default_factory=list)
    category_counts: dict[str, int] = field(default_factory=dict)
    duplicate_count: int = 0

    @property
    def total_processed(self) -> int:
        return self.success_count + self.error_count


@dataclass(frozen=True)
class AssociationOutcome:
    linked_count: int
    failed_count: int
    unresolved_count: int
    warnings: list[str] = field(default_factory=list)


def deduplicate_rows(
    rows: Sequence[dict[str, Any]],
    conflict_key: Sequence[str],
) -> tuple[list[dict[str, Any]], int]:
    """
    Collapse rows sharing a conflict key. The last row wins and keeps the
    position of the first occurrence.
    """

    by_key: dict[tuple[Any, ...], dict[str, Any]] = {}
    for row in rows:
        by_key[tuple(row.get(column) for column in conflict_key)] = row
    deduped = list(by_key.values())
    return deduped, len(rows) - len(deduped)


def chunked(rows: Sequence[Any], size: int) -> list[Sequence[Any]]:
    step = max(1, size)
    return [rows[start : start + step] for start in range(0, len(rows), step)]


class BatchUpsertCoordinator:
    def __init__(
        self,
        writer: UpsertWriter,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_error_messages: int = DEFAULT_MAX_ERROR_MESSAGES,
    ) -> None:
        self._writer = writer
        self._chunk_size = max(1, chunk_size)
        self._max_error_messages = max(0, max_error_messages)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def upsert_rows(
        self,
        target: UpsertTarget,
        rows: Sequence[dict[str, Any]],
        *,
        category_of: Callable[[dict[str, Any]], str] | None = None,
        progress: Callable[[UpsertProgress], None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
        deduplicate: bool = True,
    ) -> UpsertOutcome:
        """
        Persist ``rows`` in consecutive chunks of ``chunk_size``.

        ``category_of`` buckets successfully written rows (for the per-intent
        breakdown). ``progress`` runs after every chunk, failed or not.
        Raises ImportCancelledError when ``should_cancel`` reports True
        before a chunk.
        """

        duplicate_count = 0
        if deduplicate:
            rows, duplicate_count = deduplicate_rows(rows, target.conflict_key)
            if duplicate_count:
                logger.info(
                    "Collapsed duplicate rows table=%s duplicates=%d",
                    target.table,
                    duplicate_count,
                )

        chunks = chunked(rows, self._chunk_size)
        success_count = 0
        error_count = 0
        errors: list[str] = []
        category_counts: dict[str, int] = {}

        for index, chunk in enumerate(chunks):
            if should_cancel is not None and should_cancel():
                raise ImportCancelledError(
                    f"Import cancelled before chunk {index + 1}/{len(chunks)} of {target.table}."
                )

            try:
                self._writer.upsert(target, list(chunk))
            except ImportCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                error_count += len(chunk)
                message = f"Chunk {index + 1}/{len(chunks)} ({target.table}): {exc}"
                if len(errors) < self._max_error_messages and message not in errors:
                    errors.append(message)
                logger.warning(
                    "Chunk upsert failed table=%s chunk=%d/%d rows=%d error=%s",
                    target.table,
                    index + 1,
                    len(chunks),
                    len(chunk),
                    exc,
                )
            else:
                success_count += len(chunk)
                if category_of is not None:
                    for row in chunk:
                        category = category_of(row)
                        category_counts[category] = category_counts.get(category, 0) + 1

            if progress is not None:
                progress(
                    UpsertProgress(
                        chunk_index=index,
                        chunk_count=len(chunks),
                        success_count=success_count,
                        error_count=error_count,
                        errors=list(errors),
                    )
                )

        logger.info(
            "Upsert finished table=%s success=%d errors=%d chunks=%d",
            target.table,
            success_count,
            error_count,
            len(chunks),
        )
        return UpsertOutcome(
            success_count=success_count,
            error_count=error_count,
            errors=errors,
            category_counts=category_counts,
            duplicate_count=duplicate_count,
        )

    def associate(
        self,
        target: UpsertTarget,
        rows: Sequence[dict[str, Any]],
        *,
        lookup_table: str,
        lookup_column: str,
        reference_field: str,
        id_field: str,
        should_cancel: Callable[[], bool] | None = None,
    ) -> AssociationOutcome:
        """
        Second pass linking just-written rows to a parent entity.

        Each row's ``reference_field`` is re-resolved to an id through
        ``lookup_table.lookup_column`` and stored under ``id_field``. Failures
        here are warnings only and never touch the primary counters.
        """

        references = list(dict.fromkeys(row[reference_field] for row in rows))
        resolved: dict[Any, Any] = {}
        warnings: list[str] = []

        for chunk in chunked(references, self._chunk_size):
            try:
                resolved.update(self._writer.lookup_ids(lookup_table, lookup_column, list(chunk)))
            except Exception as exc:  # noqa: BLE001
                self._add_warning(warnings, f"Lookup on {lookup_table} failed: {exc}")

        link_rows: list[dict[str, Any]] = []
        unresolved = 0
        for row in rows:
            resolved_id = resolved.get(row[reference_field])
            if resolved_id is None:
                unresolved += 1
                continue
            link = {key: value for key, value in row.items() if key != reference_field}
            link[id_field] = resolved_id
            link_rows.append(link)

        if unresolved:
            self._add_warning(warnings, f"{unresolved} rows could not be resolved in {lookup_table}")

        link_rows, _ = deduplicate_rows(link_rows, target.conflict_key)
        linked = 0
        failed = 0
        for index, chunk in enumerate(chunked(link_rows, self._chunk_size)):
            if should_cancel is not None and should_cancel():
                raise ImportCancelledError(f"Import cancelled during {target.table} association.")
            try:
                self._writer.upsert(target, list(chunk))
            except Exception as exc:  # noqa: BLE001
                failed += len(chunk)
                self._add_warning(warnings, f"Association chunk {index + 1} ({target.table}) failed: {exc}")
            else:
                linked += len(chunk)

        for message in warnings:
            logger.warning("Association warning table=%s: %s", target.table, message)

        return AssociationOutcome(
            linked_count=linked,
            failed_count=failed,
            unresolved_count=unresolved,
            warnings=warnings,
        )

    def _add_warning(self, warnings: list[str], message: str) -> None:
        if len(warnings) < self._max_error_messages:
            warnings.append(message)
