"""
Tests for the share price valuation.
"""
import math
from dataclasses import replace

import pytest

from services.valuation import ValuationError, compute_share_price, derive_valuation, total_shares


class TestComputeSharePrice:

    def test_reference_price_gives_base_share_price(self, defaults):
        assert compute_share_price(defaults, 28.50) == pytest.approx(1.824)

    def test_doubled_spot_price(self, defaults):
        # total shares = 717500 / 1.824
        expected = (575000 + 5000 * 57.00) * 1.824 / 717500
        assert compute_share_price(defaults, 57.00) == pytest.approx(expected)
        assert compute_share_price(defaults, 57.00) == pytest.approx(2.1863, abs=1e-3)

    def test_total_shares(self, defaults):
        assert total_shares(defaults) == pytest.approx(717500 / 1.824)

    @pytest.mark.parametrize("reference", [0.5, 10.0, 28.5, 99.0])
    def test_reference_identity_holds_for_any_reference(self, defaults, reference):
        params = replace(defaults, reference_unit_price=reference, base_share_price=2.5)
        assert compute_share_price(params, reference) == pytest.approx(2.5)

    def test_monotonic_in_spot_price(self, defaults):
        prices = [compute_share_price(defaults, spot) for spot in (10, 20, 28.5, 30, 45, 90)]
        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)

    def test_constant_without_commodity(self, defaults):
        params = replace(defaults, commodity_units=0.0)
        for spot in (1.0, 28.5, 500.0):
            assert compute_share_price(params, spot) == pytest.approx(1.824)

    @pytest.mark.parametrize("base_share_price", [0.0, -1.0])
    def test_degenerate_base_share_price_raises(self, defaults, base_share_price):
        with pytest.raises(ValuationError):
            compute_share_price(replace(defaults, base_share_price=base_share_price), 30.0)

    def test_valuation_error_is_zero_division(self):
        assert issubclass(ValuationError, ZeroDivisionError)


class TestDeriveValuation:

    def test_falls_back_to_base_share_price(self, defaults):
        params = replace(defaults, base_share_price=0.0)
        valuation = derive_valuation(params, 30.0, "memory", 1.0)
        assert valuation.current_share_price == 0.0
        assert math.isfinite(valuation.current_share_price)

    def test_zero_share_count_falls_back(self, defaults):
        params = replace(defaults, base_fund_value=0.0, commodity_units=0.0)
        valuation = derive_valuation(params, 30.0, "memory", 1.0)
        assert valuation.current_share_price == 1.824

    def test_json_payload(self, defaults):
        body = derive_valuation(defaults, 28.50, "upstream", 1700000000.5).to_json()
        assert body["success"] is True
        assert body["sharePrice"] == pytest.approx(1.824)
        assert body["basePrice"] == 1.824
        assert body["silverPrice"] == 28.50
        assert body["currency"] == "EUR"
        assert body["timestamp"] == 1700000000500
        assert body["source"] == "calculated_from_upstream"
