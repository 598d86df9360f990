#!/usr/bin/env python3
"""
Tests for price, currency and category normalization.
"""

import unittest
from decimal import Decimal

from quote_ingest.config import CategorySynonymMap, ExchangeRateTable
from quote_ingest.models import ComponentCandidate, UnitPrice
from quote_ingest.normalizer import (
    assign_part_number,
    build_unit_price,
    clean_text,
    derive_prices,
    detect_currency,
    normalize_category,
    parse_price,
    parse_quantity,
    resolve_currency,
    score_candidate,
)


class TestParsePrice(unittest.TestCase):
    """Price parsing."""

    def test_symbols_and_thousands_separators(self):
        test_cases = [
            ("$2,500.00", Decimal("2500.00")),
            ("₪1,200", Decimal("1200")),
            ("99.90 €", Decimal("99.90")),
            ("USD 1500", Decimal("1500")),
            ('120 ש"ח', Decimal("120")),
            ("1.234,56 €", Decimal("1234.56")),
            ("12,50", Decimal("12.50")),
            (250, Decimal("250")),
            (19.5, Decimal("19.5")),
        ]
        for value, expected in test_cases:
            with self.subTest(value=value):
                self.assertEqual(parse_price(value), expected)

    def test_trailing_annotations_are_ignored(self):
        test_cases = [
            ("$2,500.00 ea", Decimal("2500.00")),
            ("2500 + VAT", Decimal("2500")),
            ('120 ש"ח ליח\'', Decimal("120")),
            ("$45.50/pc", Decimal("45.50")),
            ("1,200 NIS (excl. VAT)", Decimal("1200")),
            ("1.234,56 € (incl. VAT)", Decimal("1234.56")),
            ("1 200 ₪", Decimal("1200")),
        ]
        for value, expected in test_cases:
            with self.subTest(value=value):
                self.assertEqual(parse_price(value), expected)

    def test_non_positive_and_garbage_are_absent(self):
        for value in ("0", "$0.00", -5, "-12.50", "N/A", "", None, "call us"):
            with self.subTest(value=value):
                self.assertIsNone(parse_price(value))

    def test_build_unit_price_keeps_source_amount(self):
        price = build_unit_price("€99,90")
        self.assertEqual(price, UnitPrice(Decimal("99.90"), "EUR"))
        self.assertIsNone(build_unit_price("0"))


class TestCurrency(unittest.TestCase):
    """Currency detection and precedence."""

    def test_detect_currency(self):
        self.assertEqual(detect_currency("$5"), "USD")
        self.assertEqual(detect_currency("100 EUR"), "EUR")
        self.assertEqual(detect_currency("₪120"), "NIS")
        self.assertEqual(detect_currency('120 ש"ח'), "NIS")
        self.assertEqual(detect_currency("ILS 40"), "NIS")
        self.assertIsNone(detect_currency("1200"))
        self.assertIsNone(detect_currency(None))

    def test_symbol_beats_currency_column_beats_default(self):
        self.assertEqual(resolve_currency("$5", "EUR"), "USD")
        self.assertEqual(resolve_currency("1200", "EUR"), "EUR")
        self.assertEqual(resolve_currency("1200", 'ש"ח'), "NIS")
        self.assertEqual(resolve_currency("1200"), "USD")


class TestDerivePrices(unittest.TestCase):
    """Derived prices in the two other currencies."""

    def setUp(self):
        self.rates = ExchangeRateTable()

    def test_from_usd(self):
        derived = derive_prices(UnitPrice(Decimal("100"), "USD"), self.rates)
        self.assertEqual(derived, {"NIS": Decimal("370.00"), "EUR": Decimal("92.50")})

    def test_from_nis(self):
        derived = derive_prices(UnitPrice(Decimal("370"), "NIS"), self.rates)
        self.assertEqual(derived, {"USD": Decimal("100.00"), "EUR": Decimal("92.50")})

    def test_from_eur(self):
        derived = derive_prices(UnitPrice(Decimal("100"), "EUR"), self.rates)
        self.assertEqual(derived["NIS"], Decimal("400.00"))
        self.assertEqual(derived["USD"], Decimal("108.11"))

    def test_source_currency_never_derived(self):
        for currency in ("USD", "NIS", "EUR"):
            with self.subTest(currency=currency):
                derived = derive_prices(UnitPrice(Decimal("42.42"), currency), self.rates)
                self.assertNotIn(currency, derived)
                self.assertEqual(len(derived), 2)

    def test_recomputation_is_identical(self):
        price = UnitPrice(Decimal("1234.567"), "NIS")
        self.assertEqual(derive_prices(price, self.rates), derive_prices(price, self.rates))

    def test_no_price(self):
        self.assertEqual(derive_prices(None, self.rates), {})


class TestCategoriesAndPartNumbers(unittest.TestCase):
    """Category resolution and part-number identity."""

    def setUp(self):
        self.categories = CategorySynonymMap()

    def test_synonyms_resolve_to_canonical_label(self):
        test_cases = [
            ("PLC", "Controllers"),
            ("  plc ", "Controllers"),
            ("בקר", "Controllers"),
            ("Controllers", "Controllers"),
            ("Siemens PLC S7-1500", "Controllers"),
            ("חיישן", "Sensors"),
            ("Power Supply 24V", "Power Supplies"),
        ]
        for text, expected in test_cases:
            with self.subTest(text=text):
                self.assertEqual(normalize_category(text, self.categories), expected)

    def test_unmatched_gets_default(self):
        self.assertEqual(normalize_category("Widgets", self.categories), "Other")
        self.assertEqual(normalize_category("", self.categories), "Other")
        self.assertEqual(normalize_category(None, self.categories), "Other")

    def test_part_number_is_returned_unchanged(self):
        for value in ("VSBM25 SI", "2240.KD.00", "6es7512-1dk01", " A B ", None):
            with self.subTest(value=value):
                self.assertEqual(assign_part_number(value), value)


class TestConfidenceAndHelpers(unittest.TestCase):
    """Field-weighted confidence and small helpers."""

    def setUp(self):
        self.categories = CategorySynonymMap()

    def test_all_fields_present(self):
        candidate = ComponentCandidate(
            name="Siemens PLC",
            description="S7-1500 CPU",
            manufacturer="Siemens",
            manufacturer_part_number="6ES7512",
            category="Controllers",
            unit_price=UnitPrice(Decimal("2500"), "USD"),
            quantity=1,
        )
        self.assertEqual(score_candidate(candidate, self.categories), 1.0)
        self.assertEqual(score_candidate(candidate, self.categories, cap=0.9), 0.9)

    def test_name_only(self):
        candidate = ComponentCandidate(name="Something")
        self.assertAlmostEqual(score_candidate(candidate, self.categories), 0.3)

    def test_parse_quantity(self):
        self.assertEqual(parse_quantity("5 pcs"), 5)
        self.assertEqual(parse_quantity(3.0), 3)
        self.assertEqual(parse_quantity("1,000"), 1000)
        self.assertIsNone(parse_quantity("2.5"))
        self.assertIsNone(parse_quantity(0))
        self.assertIsNone(parse_quantity("n/a"))

    def test_clean_text(self):
        self.assertEqual(clean_text("  Siemens "), "Siemens")
        self.assertEqual(clean_text(12.0), "12")
        self.assertIsNone(clean_text("   "))
        self.assertIsNone(clean_text(float("nan")))


if __name__ == '__main__':
    unittest.main()
