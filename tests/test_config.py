#!/usr/bin/env python3
"""
Tests for configuration objects and the result models.
"""

import json
import os
import unittest
from decimal import Decimal
from unittest.mock import patch

from quote_ingest.config import CategorySynonymMap, ExchangeRateTable, Settings
from quote_ingest.models import ComponentCandidate, ExtractionResult, RawDocument, UnitPrice


class TestExchangeRateTable(unittest.TestCase):

    def test_defaults_are_decimals(self):
        rates = ExchangeRateTable()
        self.assertEqual(rates.usd_to_ils, Decimal("3.7"))
        self.assertIsInstance(rates.eur_to_usd, Decimal)

    def test_rates_must_be_positive(self):
        with self.assertRaises(ValueError):
            ExchangeRateTable(usd_to_ils=0)
        with self.assertRaises(ValueError):
            ExchangeRateTable.from_rates(3.6, -1)

    def test_from_rates_derives_eur_to_usd(self):
        rates = ExchangeRateTable.from_rates(3.6, 4.0)
        self.assertEqual(rates.eur_to_usd, Decimal("0.9"))
        self.assertEqual(rates.usd_to_ils, Decimal("3.6"))

    def test_read_only(self):
        rates = ExchangeRateTable()
        with self.assertRaises(Exception):
            rates.usd_to_ils = Decimal("5")

    @patch.dict(os.environ, {"QUOTE_INGEST_USD_TO_ILS": "3.5", "QUOTE_INGEST_EUR_TO_ILS": "3.85"})
    def test_from_env(self):
        rates = ExchangeRateTable.from_env()
        self.assertEqual(rates.usd_to_ils, Decimal("3.5"))
        self.assertEqual(rates.eur_to_ils, Decimal("3.85"))


class TestCategorySynonymMap(unittest.TestCase):

    def setUp(self):
        self.categories = CategorySynonymMap()

    def test_lookup(self):
        self.assertEqual(self.categories.lookup("  PLC "), "Controllers")
        self.assertEqual(self.categories.lookup("חיישן"), "Sensors")
        self.assertEqual(self.categories.lookup("Sensors"), "Sensors")
        self.assertIsNone(self.categories.lookup("Banana"))
        self.assertIn("servo", self.categories)

    def test_search_prefers_longest_phrase(self):
        self.assertEqual(self.categories.search("24V power supply 10A"), "Power Supplies")
        self.assertEqual(self.categories.search("Siemens PLC controller"), "Controllers")
        self.assertIsNone(self.categories.search("Widget"))

    def test_generic_words_do_not_categorize(self):
        for text in ("Limit switch", "Drive shaft", "Guide rail"):
            with self.subTest(text=text):
                self.assertIsNone(self.categories.search(text))
        self.assertEqual(self.categories.search("8-port Ethernet switch"), "Communication")
        self.assertEqual(self.categories.search("Servo drive 1.5kW"), "Motors")
        self.assertEqual(self.categories.search("DIN rail 35mm"), "Mechanical")

    def test_custom_map(self):
        categories = CategorySynonymMap({"Fasteners": ("bolt", "screw")}, default="Misc")
        self.assertEqual(categories.lookup("Screw"), "Fasteners")
        self.assertEqual(categories.default, "Misc")
        self.assertEqual(categories.canonical_labels, ("Fasteners",))


class TestSettings(unittest.TestCase):

    def test_validation(self):
        with self.assertRaises(ValueError):
            Settings(ai_timeout_seconds=0)
        with self.assertRaises(ValueError):
            Settings(ai_max_attempts=0)

    def test_max_file_size_bytes(self):
        self.assertEqual(Settings(max_file_size_mb=2).max_file_size_bytes, 2 * 1024 * 1024)

    @patch.dict(os.environ, {
        "QUOTE_INGEST_AI_FALLBACK": "yes",
        "QUOTE_INGEST_AI_MAX_ATTEMPTS": "5",
        "QUOTE_INGEST_AI_MODEL": "gpt-4o",
    })
    def test_from_env(self):
        settings = Settings.from_env()
        self.assertTrue(settings.ai_fallback)
        self.assertEqual(settings.ai_max_attempts, 5)
        self.assertEqual(settings.ai_model, "gpt-4o")


class TestModels(unittest.TestCase):

    def test_unit_price_currency(self):
        with self.assertRaises(ValueError):
            UnitPrice(Decimal("1"), "GBP")

    def test_raw_document_size(self):
        self.assertEqual(RawDocument(b"abc", "text/csv", "a.csv").size_bytes, 3)

    def test_result_serialization(self):
        candidate = ComponentCandidate(
            name="בקר Siemens",
            manufacturer_part_number="6ES7512",
            unit_price=UnitPrice(Decimal("2500"), "USD"),
            derived_prices={"NIS": Decimal("9250.00"), "EUR": Decimal("2312.50")},
            confidence=0.98,
        )
        result = ExtractionResult(success=True, candidates=[candidate], confidence=0.98)

        data = result.to_dict()
        self.assertNotIn("error", data)
        item = data["candidates"][0]
        self.assertEqual(item["manufacturerPartNumber"], "6ES7512")
        self.assertEqual(item["derivedPrices"], {"NIS": 9250.0, "EUR": 2312.5})
        self.assertEqual(data["metadata"]["isRTLDocument"], False)

        text = result.to_json()
        self.assertIn("בקר", text)
        self.assertEqual(json.loads(text)["confidence"], 0.98)

    def test_failure_envelope(self):
        result = ExtractionResult.failure("Unsupported file type")
        self.assertFalse(result.success)
        self.assertEqual(result.candidates, [])
        self.assertEqual(result.confidence, 0.0)
        self.assertEqual(result.to_dict()["error"], "Unsupported file type")


if __name__ == '__main__':
    unittest.main()
