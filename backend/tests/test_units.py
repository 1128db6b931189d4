"""
Unit conversion and money helpers.

Pure functions; no application or database needed.
"""

from decimal import Decimal

import pytest

from bangunpos.numbers import as_number, format_rupiah, quantize_money, to_decimal
from bangunpos.units import (
    conversion_rate_of,
    has_sufficient_stock,
    line_total,
    to_base_quantity,
    to_unit_quantity,
)
from bangunpos.validation import ValidationError

KG = {"name": "kg", "conversion_rate": "0.025"}
SAK = {"name": "sak", "conversion_rate": 1}


class TestConversion:

    def test_base_unit_is_identity(self):
        assert to_base_quantity(3, SAK) == Decimal("3")

    def test_kg_of_a_40kg_sack(self):
        """40 kg of a sack stocked per sak is one sack."""
        assert to_base_quantity(40, KG) == Decimal("1")
        assert to_base_quantity(4, KG) == Decimal("0.1")

    def test_back_to_unit_quantity(self):
        assert to_unit_quantity(Decimal("0.1"), KG) == Decimal("4")

    @pytest.mark.parametrize("quantity", ["1", "2.5", "17", "0.4"])
    def test_round_trip(self, quantity):
        q = Decimal(quantity)
        assert to_unit_quantity(to_base_quantity(q, KG), KG) == q

    def test_float_rate_does_not_leak_binary_noise(self):
        assert conversion_rate_of({"conversion_rate": 0.025}) == Decimal("0.025")

    def test_reads_rate_from_objects(self):
        class Snapshot:
            conversion_rate = Decimal("0.5")

        assert conversion_rate_of(Snapshot()) == Decimal("0.5")

    @pytest.mark.parametrize("rate", [0, -1, "abc", None])
    def test_invalid_rate_rejected(self, rate):
        with pytest.raises(ValidationError):
            conversion_rate_of({"conversion_rate": rate})


class TestSufficientStock:

    def test_exact_stock_is_enough(self):
        assert has_sufficient_stock(2, 2, SAK)

    def test_kg_against_sack_stock(self):
        assert has_sufficient_stock(1, 40, KG)
        assert not has_sufficient_stock(1, 41, KG)


class TestMoney:

    def test_line_total(self):
        assert line_total(2, 65000) == Decimal("130000")
        assert line_total(4, 1625) == Decimal("6500")

    def test_quantize_money_rounds_half_up(self):
        assert quantize_money("10.005") == Decimal("10.01")

    def test_as_number_projection(self):
        assert as_number(Decimal("130000.00")) == 130000
        assert isinstance(as_number(Decimal("130000.00")), int)
        assert as_number(Decimal("0.0250")) == 0.025
        assert as_number(None) is None

    @pytest.mark.parametrize("value", [True, None, "1e", float("nan"), [1]])
    def test_to_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_format_rupiah(self):
        assert format_rupiah(65000) == "Rp 65.000"
        assert format_rupiah(Decimal("1250000.40")) == "Rp 1.250.000"
        assert format_rupiah(-1500) == "-Rp 1.500"
