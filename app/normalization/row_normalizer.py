"""
app/normalization/row_normalizer.py

Decoding and row parsing for uploaded keyword and traffic files.

Steps: sniff the byte-order mark to pick a decoding, split into non-empty
lines, detect the delimiter from the header, parse each line honoring quoted
fields, map bilingual header aliases onto canonical fields and coerce numeric
values (``None`` on failure). A missing required column fails the whole file;
a malformed line is counted and skipped.
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Callable
from typing import Any

from app.domain.keyword_import import (
    ImportType,
    NormalizedFile,
    RowRecord,
    TrafficRecord,
    normalize_keyword,
)
from app.errors.exceptions import (
    InsufficientDataError,
    MissingRequiredColumnError,
    UnsupportedImportTypeError,
)

logger = logging.getLogger(__name__)

UTF16_LE_BOM = b"\xff\xfe"
UTF8_BOM = b"\xef\xbb\xbf"

DEFAULT_MAX_ERROR_MESSAGES = 5
DEFAULT_TRAFFIC_PERIOD = "monthly"

KEYWORD_COLUMN_ALIASES: dict[str, str] = {
    "キーワード": "keyword",
    "月間検索数": "search_volume",
    "cpc ($)": "cpc",
    "競合性": "competition",
    "seo難易度": "seo_difficulty",
    "検索順位": "search_rank",
    "推定流入数": "traffic",
    "url": "url",
    "keyword": "keyword",
    "search_volume": "search_volume",
    "cpc": "cpc",
    "competition": "competition",
    "seo_difficulty": "seo_difficulty",
    "search_rank": "search_rank",
    "estimated_traffic": "traffic",
    "traffic": "traffic",
}

TRAFFIC_COLUMN_ALIASES: dict[str, str] = {
    "domain": "domain",
    "ドメイン": "domain",
    "period": "period",
    "期間": "period",
    "monthly_visits": "monthly_visits",
    "月間訪問数": "monthly_visits",
}

_QUOTE_EDGES = re.compile(r"^[\"']|[\"']$")
_NON_INT_CHARS = re.compile(r"[^0-9.\-]")
_NON_FLOAT_CHARS = re.compile(r"[^0-9.]")


class MalformedLineError(ValueError):
    """Raised for one line that cannot be parsed."""


# ---------------------------------------------------------------------------
# Decoding and tokenizing
# ---------------------------------------------------------------------------


def decode_content(content: bytes) -> tuple[str, str]:
    """
    Decode raw bytes, choosing UTF-16LE for an ``FF FE`` mark and UTF-8
    otherwise. Any leading byte-order mark character is removed.
    """

    if content.startswith(UTF16_LE_BOM):
        text = content.decode("utf-16-le", errors="replace")
        encoding = "utf-16-le"
    elif content.startswith(UTF8_BOM):
        text = content[len(UTF8_BOM):].decode("utf-8", errors="replace")
        encoding = "utf-8"
    else:
        text = content.decode("utf-8", errors="replace")
        encoding = "utf-8"
    return text.lstrip("\ufeff"), encoding


def split_lines(text: str) -> list[str]:
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def detect_delimiter(header_line: str) -> str:
    return "\t" if "\t" in header_line else ","


def parse_line(line: str, delimiter: str) -> list[str]:
    """
    Split one line into fields. Quoted fields may contain the delimiter and
    doubled quotes (``""`` becomes ``"``).
    """

    try:
        rows = list(csv.reader([line], delimiter=delimiter, quotechar='"', doublequote=True, strict=True))
    except csv.Error as exc:
        raise MalformedLineError(str(exc)) from exc
    if not rows:
        return []
    return rows[0]


def clean_cell(value: str | None) -> str:
    if value is None:
        return ""
    return _QUOTE_EDGES.sub("", value.strip()).strip()


def map_headers(header_fields: list[str], aliases: dict[str, str]) -> dict[str, int]:
    """
    Return canonical field name -> column index. The first matching column wins.
    """

    indices: dict[str, int] = {}
    for index, raw_header in enumerate(header_fields):
        header = clean_cell(raw_header).lower()
        canonical = aliases.get(header)
        if canonical is not None and canonical not in indices:
            indices[canonical] = index
    return indices


# ---------------------------------------------------------------------------
# Numeric coercion
# ---------------------------------------------------------------------------


def parse_int(value: str | None) -> int | None:
    """
    Parse an integer from loosely formatted text (``"1,234"`` -> 1234).
    """

    cleaned = _NON_INT_CHARS.sub("", value or "")
    if not cleaned:
        return None
    try:
        return int(float(cleaned))
    except (ValueError, OverflowError):
        return None


def parse_cpc(value: str | None) -> float | None:
    """
    Parse a cost-per-click amount. Zero is treated as missing.
    """

    cleaned = _NON_FLOAT_CHARS.sub("", value or "")
    if not cleaned:
        return None
    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    return parsed or None


def normalize_domain(value: str) -> str:
    domain = value.strip().lower()
    domain = re.sub(r"^[a-z]+://", "", domain)
    if domain.startswith("www."):
        domain = domain[4:]
    return domain.split("/", 1)[0]


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class RowNormalizer:
    """
    Turns raw uploaded bytes into typed row records.
    """

    def __init__(self, *, max_error_messages: int = DEFAULT_MAX_ERROR_MESSAGES) -> None:
        self._max_error_messages = max(1, max_error_messages)

    def normalize(self, content: bytes, kind: str) -> NormalizedFile:
        if kind == ImportType.KEYWORDS:
            return self._normalize(content, KEYWORD_COLUMN_ALIASES, "keyword", self._build_keyword_record)
        if kind == ImportType.TRAFFIC:
            return self._normalize(content, TRAFFIC_COLUMN_ALIASES, "domain", self._build_traffic_record)
        raise UnsupportedImportTypeError(f"Unsupported import type: {kind}")

    def _normalize(
        self,
        content: bytes,
        aliases: dict[str, str],
        required_field: str,
        build: Callable[[list[str], dict[str, int], int], Any],
    ) -> NormalizedFile:
        text, encoding = decode_content(content)
        lines = split_lines(text)
        if len(lines) < 2:
            raise InsufficientDataError("File must contain a header row and at least one data row")

        delimiter = detect_delimiter(lines[0])
        try:
            header_fields = parse_line(lines[0], delimiter)
        except MalformedLineError as exc:
            raise InsufficientDataError(f"Header row could not be parsed: {exc}") from exc

        indices = map_headers(header_fields, aliases)
        if required_field not in indices:
            raise MissingRequiredColumnError(
                required_field,
                headers=[clean_cell(header).lower() for header in header_fields],
            )

        records: list[Any] = []
        errors: list[str] = []
        error_count = 0

        for line_number, line in enumerate(lines[1:], start=2):
            try:
                fields = parse_line(line, delimiter)
                record = build(fields, indices, line_number)
            except MalformedLineError as exc:
                error_count += 1
                if len(errors) < self._max_error_messages:
                    errors.append(f"Line {line_number}: {exc}")
                continue
            if record is not None:
                records.append(record)

        if error_count:
            logger.warning(
                "Row normalization skipped %d malformed line(s) of %d",
                error_count,
                len(lines) - 1,
            )

        return NormalizedFile(
            records=records,
            total_lines=len(lines) - 1,
            error_count=error_count,
            errors=errors,
            encoding=encoding,
            delimiter=delimiter,
            columns=[clean_cell(header) for header in header_fields],
        )

    @staticmethod
    def _field(fields: list[str], indices: dict[str, int], name: str) -> str | None:
        index = indices.get(name)
        if index is None or index >= len(fields):
            return None
        return fields[index]

    def _build_keyword_record(
        self,
        fields: list[str],
        indices: dict[str, int],
        line_number: int,
    ) -> RowRecord | None:
        keyword = clean_cell(self._field(fields, indices, "keyword"))
        if not keyword:
            return None

        url = clean_cell(self._field(fields, indices, "url"))
        return RowRecord(
            keyword=keyword,
            normalized_keyword=normalize_keyword(keyword),
            source_line=line_number,
            search_volume=parse_int(self._field(fields, indices, "search_volume")),
            cpc=parse_cpc(self._field(fields, indices, "cpc")),
            competition=parse_int(self._field(fields, indices, "competition")),
            seo_difficulty=parse_int(self._field(fields, indices, "seo_difficulty")),
            search_rank=parse_int(self._field(fields, indices, "search_rank")),
            traffic=parse_int(self._field(fields, indices, "traffic")),
            url=url or None,
        )

    def _build_traffic_record(
        self,
        fields: list[str],
        indices: dict[str, int],
        line_number: int,
    ) -> TrafficRecord | None:
        domain = normalize_domain(clean_cell(self._field(fields, indices, "domain")))
        if not domain:
            return None

        period = clean_cell(self._field(fields, indices, "period")) or DEFAULT_TRAFFIC_PERIOD
        return TrafficRecord(
            domain=domain,
            period=period,
            source_line=line_number,
            monthly_visits=parse_int(self._field(fields, indices, "monthly_visits")),
        )
