"""
Share price valuation.

The share count is pinned by the reference state (manual unit price and
manual share price). Only the live spot price moves the share price, so a
spot tick never changes how many shares exist.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict

from services.store import FundParameters

logger = logging.getLogger(__name__)


class ValuationError(ZeroDivisionError):
    pass


@dataclass(frozen=True)
class DerivedValuation:
    current_share_price: float
    base_price: float
    spot_price_used: float
    source: str
    timestamp: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "success": True,
            "sharePrice": self.current_share_price,
            "basePrice": self.base_price,
            "silverPrice": self.spot_price_used,
            "currency": "EUR",
            "timestamp": int(self.timestamp * 1000),
            "source": f"calculated_from_{self.source}",
        }


def total_shares(params: FundParameters) -> float:
    if params.base_share_price <= 0:
        raise ValuationError(f"base share price must be positive, got {params.base_share_price}")
    return params.reference_total_value / params.base_share_price


def compute_share_price(params: FundParameters, live_spot_price: float) -> float:
    shares = total_shares(params)
    if shares <= 0:
        raise ValuationError(f"derived share count must be positive, got {shares}")
    live_total = params.base_fund_value + params.commodity_units * live_spot_price
    return live_total / shares


def derive_valuation(params: FundParameters, live_spot_price: float, source: str, now: float) -> DerivedValuation:
    """compute_share_price, falling back to the base share price when the result is unusable."""
    try:
        price = compute_share_price(params, live_spot_price)
    except ValuationError as e:
        logger.warning(f"Degenerate fund parameters, using base share price: {e}")
        price = params.base_share_price
    if not math.isfinite(price):
        logger.warning(f"Non-finite share price {price}, using base share price")
        price = params.base_share_price
    return DerivedValuation(
        current_share_price=price,
        base_price=params.base_share_price,
        spot_price_used=live_spot_price,
        source=source,
        timestamp=now,
    )
