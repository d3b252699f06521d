"""
tests/test_row_normalizer.py

Pytest unit tests for file decoding and row normalization.
"""

from __future__ import annotations

import pytest

from app.domain.keyword_import import ImportType, RowRecord, TrafficRecord
from app.errors import InsufficientDataError, MissingRequiredColumnError, UnsupportedImportTypeError
from app.normalization.row_normalizer import (
    RowNormalizer,
    decode_content,
    detect_delimiter,
    parse_cpc,
    parse_int,
    parse_line,
)


@pytest.fixture()
def normalizer() -> RowNormalizer:
    return RowNormalizer(max_error_messages=5)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecodeContent:
    def test_utf16le_bom(self) -> None:
        raw = b"\xff\xfe" + "キーワード".encode("utf-16-le")
        text, encoding = decode_content(raw)
        assert text == "キーワード"
        assert encoding == "utf-16-le"

    def test_utf8_bom_is_stripped(self) -> None:
        text, encoding = decode_content(b"\xef\xbb\xbfkeyword")
        assert text == "keyword"
        assert encoding == "utf-8"

    def test_plain_utf8(self) -> None:
        text, _ = decode_content("看護師".encode("utf-8"))
        assert text == "看護師"


class TestTokenizing:
    def test_tab_header_selects_tab(self) -> None:
        assert detect_delimiter("keyword\tsearch_volume") == "\t"
        assert detect_delimiter("keyword,search_volume") == ","

    def test_quoted_fields_keep_delimiters_and_escaped_quotes(self) -> None:
        fields = parse_line('"nurse, part time","say ""hi""",10', ",")
        assert fields == ["nurse, part time", 'say "hi"', "10"]


class TestNumericCoercion:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1,234", 1234), ("12.7", 12), ("", None), ("n/a", None), (None, None)],
    )
    def test_parse_int(self, raw: str | None, expected: int | None) -> None:
        assert parse_int(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("$1.25", 1.25), ("0", None), ("", None), ("abc", None)],
    )
    def test_parse_cpc(self, raw: str, expected: float | None) -> None:
        assert parse_cpc(raw) == expected


# ---------------------------------------------------------------------------
# Keyword files
# ---------------------------------------------------------------------------


class TestKeywordFiles:
    def test_utf16le_tab_file_with_japanese_headers(self, normalizer: RowNormalizer) -> None:
        text = "キーワード\t月間検索数\n看護師 求人\t1200\n"
        raw = b"\xff\xfe" + text.encode("utf-16-le")

        result = normalizer.normalize(raw, ImportType.KEYWORDS)

        assert result.encoding == "utf-16-le"
        assert result.delimiter == "\t"
        assert len(result.records) == 1
        record = result.records[0]
        assert isinstance(record, RowRecord)
        assert record.keyword == "看護師 求人"
        assert record.search_volume == 1200
        assert record.source_line == 2

    def test_english_headers_and_normalized_keyword(self, normalizer: RowNormalizer) -> None:
        raw = (
            "Keyword,Search_Volume,CPC,Competition,SEO_Difficulty,Search_Rank,Traffic,URL\n"
            "  Nurse   Jobs ,\"2,400\",$1.50,40,35,3,120,https://example.com/jobs\n"
        ).encode("utf-8")

        record = normalizer.normalize(raw, ImportType.KEYWORDS).records[0]

        assert record.keyword == "Nurse   Jobs"
        assert record.normalized_keyword == "nurse jobs"
        assert record.search_volume == 2400
        assert record.cpc == pytest.approx(1.5)
        assert record.competition == 40
        assert record.seo_difficulty == 35
        assert record.search_rank == 3
        assert record.traffic == 120
        assert record.url == "https://example.com/jobs"

    def test_unparseable_numbers_become_none(self, normalizer: RowNormalizer) -> None:
        raw = "keyword,search_volume,cpc\nnurse,-,free\n".encode("utf-8")
        record = normalizer.normalize(raw, ImportType.KEYWORDS).records[0]
        assert record.search_volume is None
        assert record.cpc is None

    def test_missing_keyword_column_fails_whole_file(self, normalizer: RowNormalizer) -> None:
        raw = "term,search_volume\nnurse,10\n".encode("utf-8")
        with pytest.raises(MissingRequiredColumnError) as exc_info:
            normalizer.normalize(raw, ImportType.KEYWORDS)
        assert exc_info.value.code == "E-DATA-014"
        assert exc_info.value.column == "keyword"

    @pytest.mark.parametrize("raw", [b"", b"keyword\n", b"keyword\n\n   \n"])
    def test_fewer_than_two_lines(self, normalizer: RowNormalizer, raw: bytes) -> None:
        with pytest.raises(InsufficientDataError):
            normalizer.normalize(raw, ImportType.KEYWORDS)

    def test_malformed_lines_are_counted_and_skipped(self) -> None:
        lines = ["keyword,search_volume", "good one,10"]
        lines += [f'"bad"x{index},5' for index in range(7)]
        lines += ["good two,20"]
        raw = "\n".join(lines).encode("utf-8")

        result = RowNormalizer(max_error_messages=5).normalize(raw, ImportType.KEYWORDS)

        assert [record.keyword for record in result.records] == ["good one", "good two"]
        assert result.error_count == 7
        assert len(result.errors) == 5
        assert result.errors[0].startswith("Line 3:")

    def test_blank_keyword_rows_are_skipped(self, normalizer: RowNormalizer) -> None:
        raw = "keyword,search_volume\n,10\nnurse,5\n".encode("utf-8")
        result = normalizer.normalize(raw, ImportType.KEYWORDS)
        assert [record.keyword for record in result.records] == ["nurse"]
        assert result.error_count == 0


# ---------------------------------------------------------------------------
# Traffic files and dispatch
# ---------------------------------------------------------------------------


class TestTrafficFiles:
    def test_domains_are_normalized_and_period_defaults(self, normalizer: RowNormalizer) -> None:
        raw = "ドメイン,月間訪問数\nhttps://www.Example.com/jobs,\"1,000,000\"\n".encode("utf-8")

        record = normalizer.normalize(raw, ImportType.TRAFFIC).records[0]

        assert isinstance(record, TrafficRecord)
        assert record.domain == "example.com"
        assert record.period == "monthly"
        assert record.monthly_visits == 1_000_000

    def test_missing_domain_column(self, normalizer: RowNormalizer) -> None:
        with pytest.raises(MissingRequiredColumnError):
            normalizer.normalize(b"site,visits\na.com,1\n", ImportType.TRAFFIC)

    def test_unknown_kind(self, normalizer: RowNormalizer) -> None:
        with pytest.raises(UnsupportedImportTypeError):
            normalizer.normalize(b"keyword\nx\n", "backlinks")
