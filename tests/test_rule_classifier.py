from __future__ import annotations

import unittest

from app.domain.keyword_import import ClassificationSource, IntentCategory, QueryType
from classification.rules import RuleBasedIntentClassifier, classify_query_type


class TestRuleBasedIntentClassifier(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = RuleBasedIntentClassifier(media_brand_terms=("ナースではたらこ",))

    def _intent(self, keyword: str) -> str:
        return self.classifier.classify(keyword).intent

    def test_exact_media_brand(self) -> None:
        result = self.classifier.classify("Indeed")
        self.assertEqual(result.intent, IntentCategory.BRANDED_MEDIA)
        self.assertEqual(result.confidence, 0.9)
        self.assertEqual(result.source, ClassificationSource.RULE)

    def test_configured_brand_terms_are_added(self) -> None:
        self.assertIn("ナースではたらこ", self.classifier.media_brand_terms)
        self.assertEqual(self._intent("ナースではたらこ"), IntentCategory.BRANDED_MEDIA)

    def test_brand_with_job_vocabulary_is_transactional(self) -> None:
        self.assertEqual(self._intent("Indeed 求人"), IntentCategory.TRANSACTIONAL)

    def test_brand_with_other_words_is_branded(self) -> None:
        result = self.classifier.classify("indeed ログイン")
        self.assertEqual(result.intent, IntentCategory.BRANDED_MEDIA)
        self.assertEqual(result.confidence, 0.6)

    def test_employer_side_vocabulary_is_b2b(self) -> None:
        self.assertEqual(self._intent("採用 費用"), IntentCategory.B2B)
        self.assertEqual(self._intent("人材紹介手数料 相場"), IntentCategory.B2B)

    def test_documents_and_interviews_are_informational(self) -> None:
        self.assertEqual(self._intent("履歴書 書き方"), IntentCategory.INFORMATIONAL)
        self.assertEqual(self._intent("自己PR 転職"), IntentCategory.INFORMATIONAL)

    def test_definition_and_age_know_how(self) -> None:
        self.assertEqual(self._intent("ケアマネとは"), IntentCategory.INFORMATIONAL)
        self.assertEqual(self._intent("50代からの転職"), IntentCategory.INFORMATIONAL)

    def test_job_search_is_transactional(self) -> None:
        self.assertEqual(self._intent("看護師 求人"), IntentCategory.TRANSACTIONAL)
        self.assertEqual(self._intent("python jobs"), IntentCategory.TRANSACTIONAL)

    def test_facility_names_need_ai(self) -> None:
        decision = self.classifier.evaluate("グリーン歯科")
        self.assertEqual(decision.result.intent, IntentCategory.BRANDED_AMBIGUOUS)
        self.assertTrue(decision.needs_ai)

    def test_unmatched_keyword_needs_ai(self) -> None:
        decision = self.classifier.evaluate("ケアマネ")
        self.assertEqual(decision.result.intent, IntentCategory.UNKNOWN)
        self.assertTrue(decision.needs_ai)

    def test_empty_keyword_never_raises(self) -> None:
        result = self.classifier.classify("   ")
        self.assertEqual(result.intent, IntentCategory.UNKNOWN)
        self.assertEqual(result.confidence, 0.0)

    def test_confidence_always_in_range(self) -> None:
        keywords = ["", "indeed", "看護師 年収", "病院", "採用 代行", "what is a nurse", "?", "12345"]
        for keyword, result in self.classifier.classify_many(keywords).items():
            with self.subTest(keyword=keyword):
                self.assertGreaterEqual(result.confidence, 0.0)
                self.assertLessEqual(result.confidence, 1.0)


class TestQueryType(unittest.TestCase):
    def test_query_types(self) -> None:
        self.assertEqual(classify_query_type("indeed ログイン"), QueryType.GO)
        self.assertEqual(classify_query_type("看護師 応募"), QueryType.DO)
        self.assertEqual(classify_query_type("転職サイト おすすめ"), QueryType.BUY)
        self.assertEqual(classify_query_type("看護師とは"), QueryType.KNOW)
        self.assertEqual(classify_query_type("看護師 求人"), QueryType.KNOW)


if __name__ == "__main__":
    unittest.main()
