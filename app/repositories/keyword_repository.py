"""
app/repositories/keyword_repository.py

PostgreSQL persistence for imported keywords, media associations and
traffic figures.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.keyword_import import StoredClassification
from app.errors import DatastoreWriteError
from db.base import Base
from db.models.keyword import Keyword
from db.models.media import Media
from db.models.media_keyword import MediaKeyword
from db.models.traffic_data import TrafficData

if TYPE_CHECKING:
    from app.services.batch_upsert_coordinator import UpsertTarget

_MODELS: dict[str, type[Base]] = {
    Keyword.__tablename__: Keyword,
    Media.__tablename__: Media,
    MediaKeyword.__tablename__: MediaKeyword,
    TrafficData.__tablename__: TrafficData,
}

# Columns that keep the highest value seen across imports instead of the latest.
_GREATEST_COLUMNS: dict[str, frozenset[str]] = {
    Keyword.__tablename__: frozenset({"max_monthly_search_volume", "max_cpc"}),
}


def _model_for(table: str) -> Any:
    try:
        return _MODELS[table]
    except KeyError as exc:
        raise ValueError(f"Unknown table for upsert: {table}") from exc


class KeywordRepository:
    """
    Upsert writer and lookups backed by one SQLAlchemy session.

    Every write runs inside a SAVEPOINT so a failed chunk rolls back on its
    own and leaves the surrounding transaction usable.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, target: UpsertTarget, rows: Sequence[dict[str, Any]]) -> None:
        if not rows:
            return

        model = _model_for(target.table)
        stmt = insert(model).values(list(rows))
        greatest = _GREATEST_COLUMNS.get(target.table, frozenset())

        update_columns: dict[str, Any] = {}
        for column in rows[0]:
            if column in target.conflict_key or column == "id":
                continue
            if target.protected_when and column in target.protected_columns:
                update_columns[column] = case(
                    (getattr(model, target.protected_when).is_(True), getattr(model, column)),
                    else_=stmt.excluded[column],
                )
            elif column in greatest:
                update_columns[column] = func.greatest(
                    getattr(model, column),
                    stmt.excluded[column],
                )
            else:
                update_columns[column] = stmt.excluded[column]
        update_columns["updated_at"] = datetime.now(timezone.utc)

        stmt = stmt.on_conflict_do_update(
            index_elements=list(target.conflict_key),
            set_=update_columns,
        )

        try:
            with self._session.begin_nested():
                self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise DatastoreWriteError(
                f"Upsert into {target.table} failed",
                details={"table": target.table, "rows": len(rows), "original_error": str(getattr(exc, "orig", None) or exc)},
            ) from exc

    def lookup_ids(self, table: str, column: str, values: Sequence[Any]) -> dict[Any, Any]:
        if not values:
            return {}
        model = _model_for(table)
        lookup_column = getattr(model, column)
        stmt = select(lookup_column, model.id).where(lookup_column.in_(list(values)))
        return {value: row_id for value, row_id in self._session.execute(stmt).all()}

    def lookup_classifications(self, normalized_keywords: Sequence[str]) -> dict[str, StoredClassification]:
        if not normalized_keywords:
            return {}
        stmt = select(
            Keyword.keyword_normalized,
            Keyword.intent,
            Keyword.intent_confidence,
            Keyword.intent_reason,
            Keyword.classification_source,
            Keyword.is_verified,
        ).where(Keyword.keyword_normalized.in_(list(normalized_keywords)))

        # A failed read must not poison the transaction the upserts run in.
        with self._session.begin_nested():
            rows = self._session.execute(stmt).all()
        return {
            row.keyword_normalized: StoredClassification(
                intent=row.intent,
                confidence=row.intent_confidence,
                reason=row.intent_reason,
                source=row.classification_source,
                is_verified=bool(row.is_verified),
            )
            for row in rows
        }

    def media_exists(self, media_id: uuid.UUID) -> bool:
        stmt = select(Media.id).where(Media.id == media_id)
        return self._session.execute(stmt).scalar_one_or_none() is not None

    def media_ids_by_domain(self, domains: Sequence[str]) -> dict[str, uuid.UUID]:
        return self.lookup_ids(Media.__tablename__, "domain", list(dict.fromkeys(domains)))
