"""
classification/rules.py

Deterministic rule-based intent classifier.

Total function: every keyword gets a result with confidence in [0, 1] and no
call ever raises. Keywords the rules cannot settle are flagged ``needs_ai``
so the hybrid classifier can send them to the AI service.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from app.domain.keyword_import import (
    ClassificationResult,
    ClassificationSource,
    IntentCategory,
    QueryType,
    normalize_keyword,
)

HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.6
LOW_CONFIDENCE = 0.3

DEFAULT_MEDIA_BRAND_TERMS: tuple[str, ...] = (
    "indeed",
    "求人ボックス",
    "ジョブメドレー",
    "タイミー",
    "ハローワーク",
    "マイナビ",
    "リクナビ",
    "doda",
    "バイトル",
    "タウンワーク",
)

B2B_RECRUITING_MODIFIERS: tuple[str, ...] = (
    "費用",
    "管理",
    "担当",
    "ログイン",
    "辞退",
    "代行",
    "コスト",
    "単価",
    "掲載",
    "料金",
)

_B2B_PHRASES = re.compile(
    r"人材紹介手数料|求人倍率|処遇改善加算|介護報酬|開業資金|recruiting software|applicant tracking|hiring cost"
)
_DOCUMENT_OR_INTERVIEW = re.compile(r"履歴書|職務経歴書|志望動機|自己pr|本人希望|面接|resume|cover letter|interview")
_CAREER_KNOW_HOW = re.compile(r"\d+\s*(代|歳)から")
_DEFINITION_SUFFIX = re.compile(r"とは$|\bwhat is\b")
_TRANSACTIONAL = re.compile(
    r"求人|転職|募集|アルバイト|バイト|パート|正社員|派遣|内職|仕事探し|\bjobs?\b|\bhiring\b|\bcareers?\b"
)
_FACILITY_SUFFIX = re.compile(r"(病院|クリニック|歯科|医院|薬局|株式会社|法人|hospital|clinic)$")
_INFORMATIONAL = re.compile(
    r"年収|給料|給与|月給|時給|平均|相場|資格|方法|やり方|違い|意味|メリット|デメリット|how to|salary|\?|？"
)

_QUERY_TYPE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"ログイン|マイページ|会員登録|公式|login"), QueryType.GO),
    (re.compile(r"応募|登録|申し込み|申込|エントリー|面接|履歴書|職務経歴書|apply"), QueryType.DO),
    (re.compile(r"したい|しよう|始める|なりたい|なる方法"), QueryType.DO),
    (re.compile(r"おすすめ|オススメ|ランキング|比較|vs|選び方|選ぶ|人気|評判|口コミ|レビュー|best|review"), QueryType.BUY),
    (re.compile(r"どこがいい|どれがいい|どっちが|ベスト|トップ"), QueryType.BUY),
    (re.compile(r"とは|意味|方法|やり方|仕方|違い|メリット|デメリット"), QueryType.KNOW),
    (re.compile(r"\?|？|なぜ|なに|どう|いくら|何歳|何年"), QueryType.KNOW),
)


@dataclass(frozen=True)
class RuleDecision:
    """
    A rule result plus whether the AI service should be asked instead.
    """

    result: ClassificationResult
    needs_ai: bool


def classify_query_type(keyword: str) -> str:
    """
    Map a keyword onto the Do/Know/Go/Buy search query type. Defaults to Know.
    """

    normalized = normalize_keyword(keyword)
    if not normalized:
        return QueryType.KNOW
    for pattern, query_type in _QUERY_TYPE_RULES:
        if pattern.search(normalized):
            return query_type
    return QueryType.KNOW


class RuleBasedIntentClassifier:
    """
    Pattern and lexicon matching over normalized keywords.
    """

    def __init__(self, *, media_brand_terms: Iterable[str] | None = None) -> None:
        terms = {normalize_keyword(term) for term in DEFAULT_MEDIA_BRAND_TERMS}
        terms.update(normalize_keyword(term) for term in (media_brand_terms or ()) if term.strip())
        # Longest first so "求人ボックス" wins over any shorter overlapping term.
        self._media_brand_terms = tuple(sorted(terms, key=len, reverse=True))

    @property
    def media_brand_terms(self) -> tuple[str, ...]:
        return self._media_brand_terms

    def classify(self, keyword: str) -> ClassificationResult:
        return self.evaluate(keyword).result

    def classify_many(self, keywords: Iterable[str]) -> dict[str, ClassificationResult]:
        return {keyword: self.classify(keyword) for keyword in keywords}

    def evaluate(self, keyword: str) -> RuleDecision:
        k = normalize_keyword(keyword)
        if not k:
            return self._decide(IntentCategory.UNKNOWN, 0.0, "Empty keyword")

        if "採用" in k and any(modifier in k for modifier in B2B_RECRUITING_MODIFIERS):
            return self._decide(IntentCategory.B2B, HIGH_CONFIDENCE, "Recruiting term combined with an employer-side modifier")
        if _B2B_PHRASES.search(k):
            return self._decide(IntentCategory.B2B, HIGH_CONFIDENCE, "Employer-side recruiting vocabulary")

        brand = self._match_media_brand(k)
        if brand is not None and k == brand:
            return self._decide(IntentCategory.BRANDED_MEDIA, HIGH_CONFIDENCE, f"Exact media brand name: {brand}")

        if _DOCUMENT_OR_INTERVIEW.search(k):
            return self._decide(IntentCategory.INFORMATIONAL, HIGH_CONFIDENCE, "Application document or interview research")
        if _CAREER_KNOW_HOW.search(k):
            return self._decide(IntentCategory.INFORMATIONAL, MEDIUM_CONFIDENCE, "Age-based career know-how")
        if _DEFINITION_SUFFIX.search(k):
            return self._decide(IntentCategory.INFORMATIONAL, HIGH_CONFIDENCE, "Definition lookup")

        if _TRANSACTIONAL.search(k):
            return self._decide(IntentCategory.TRANSACTIONAL, HIGH_CONFIDENCE, "Job search or application vocabulary")

        if brand is not None:
            return self._decide(IntentCategory.BRANDED_MEDIA, MEDIUM_CONFIDENCE, f"Contains media brand name: {brand}")

        if _FACILITY_SUFFIX.search(k) and len(_FACILITY_SUFFIX.sub("", k).strip()) > 0:
            return self._decide(
                IntentCategory.BRANDED_AMBIGUOUS,
                LOW_CONFIDENCE,
                "Facility or company name that may be generic",
                needs_ai=True,
            )

        if _INFORMATIONAL.search(k):
            return self._decide(IntentCategory.INFORMATIONAL, MEDIUM_CONFIDENCE, "Working conditions or how-to research")

        return self._decide(IntentCategory.UNKNOWN, LOW_CONFIDENCE, "No rule matched", needs_ai=True)

    def _match_media_brand(self, normalized: str) -> str | None:
        for term in self._media_brand_terms:
            if term and term in normalized:
                return term
        return None

    @staticmethod
    def _decide(intent: str, confidence: float, reason: str, *, needs_ai: bool = False) -> RuleDecision:
        return RuleDecision(
            result=ClassificationResult(
                intent=intent,
                confidence=confidence,
                reason=reason,
                source=ClassificationSource.RULE,
            ),
            needs_ai=needs_ai,
        )
