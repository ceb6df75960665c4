"""
Shared parameter store.

Holds the singleton fund-parameter row, the durable spot-price cache and
the fund asset history.
Every store call returns a Result; FundParameterService turns failures
into the in-memory default parameters so visitors never see a store error.
"""
from __future__ import annotations

import logging
import math
import sqlite3
import time
from dataclasses import asdict, dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from utils.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

SINGLETON_ID = 1

# request body key -> FundParameters attribute
PARAMETER_FIELDS = {
    "baseFundValue": "base_fund_value",
    "commodityUnits": "commodity_units",
    "referenceUnitPrice": "reference_unit_price",
    "baseSharePrice": "base_share_price",
}
REQUIRED_FIELDS = ("baseFundValue", "commodityUnits", "referenceUnitPrice")


class InvalidParameters(ValueError):
    """Admin input that cannot be stored. ``details`` maps field -> problem."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class FundParameters:
    base_fund_value: float
    commodity_units: float
    reference_unit_price: float
    base_share_price: float
    last_updated: float  # epoch seconds

    @property
    def reference_total_value(self) -> float:
        return self.base_fund_value + self.commodity_units * self.reference_unit_price

    def to_json(self) -> Dict[str, Any]:
        return {
            "baseFundValue": self.base_fund_value,
            "commodityUnits": self.commodity_units,
            "referenceUnitPrice": self.reference_unit_price,
            "baseSharePrice": self.base_share_price,
            "lastUpdated": datetime.fromtimestamp(self.last_updated, tz=timezone.utc).isoformat(),
        }


@dataclass(frozen=True)
class PriceCacheEntry:
    price: float
    fetched_at: float  # epoch seconds

    def is_fresh(self, now: float, interval: float) -> bool:
        return now - self.fetched_at < interval


@dataclass(frozen=True)
class FundAsset:
    date: str  # YYYY-MM-DD
    total_assets: float  # EUR

    def to_json(self) -> Dict[str, Any]:
        return {"date": self.date, "totalAssets": self.total_assets / 1000}


# total fund assets (EUR) used when the store has no history
FALLBACK_FUND_ASSETS = [
    FundAsset("2015-01-05", 89700.0),
    FundAsset("2015-12-31", 91500.0),
    FundAsset("2016-12-31", 93450.0),
    FundAsset("2017-12-31", 95400.0),
    FundAsset("2018-12-31", 97350.0),
    FundAsset("2019-12-31", 99300.0),
    FundAsset("2020-12-31", 100000.0),
    FundAsset("2021-12-31", 220000.0),
    FundAsset("2022-12-31", 328000.0),
    FundAsset("2023-12-31", 435000.0),
    FundAsset("2024-12-31", 575000.0),
    FundAsset("2025-12-01", 718000.0),
]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(float(value))
    except (OverflowError, ValueError):
        return False


def parse_parameter_update(payload: Any) -> Dict[str, float]:
    """
    Validate an admin POST body and return a partial update keyed by
    FundParameters attribute names. Raises InvalidParameters.
    """
    if not isinstance(payload, dict):
        raise InvalidParameters("Request body must be a JSON object")

    details: Dict[str, str] = {}
    for key in REQUIRED_FIELDS:
        if key not in payload:
            details[key] = "required"
        elif not _is_number(payload[key]):
            details[key] = "must be a finite number"
    if payload.get("baseSharePrice") is not None and not _is_number(payload["baseSharePrice"]):
        details["baseSharePrice"] = "must be a finite number"
    if details:
        raise InvalidParameters("Invalid parameters", details)

    update = {
        attr: float(payload[key])
        for key, attr in PARAMETER_FIELDS.items()
        if payload.get(key) is not None
    }
    if update["commodity_units"] < 0:
        details["commodityUnits"] = "must not be negative"
    if update["reference_unit_price"] < 0:
        details["referenceUnitPrice"] = "must not be negative"
    if "base_share_price" in update and update["base_share_price"] <= 0:
        details["baseSharePrice"] = "must be greater than zero"
    if details:
        raise InvalidParameters("Invalid parameters", details)
    return update


def parse_asset_update(payload: Any) -> FundAsset:
    """Validate a fund-assets POST body (`{date, totalAssets}`). Raises InvalidParameters."""
    if not isinstance(payload, dict):
        raise InvalidParameters("Request body must be a JSON object")

    details: Dict[str, str] = {}
    raw_date = payload.get("date")
    try:
        day = date.fromisoformat(raw_date) if isinstance(raw_date, str) else None
    except ValueError:
        day = None
    if day is None:
        details["date"] = "must be a YYYY-MM-DD date"
    total = payload.get("totalAssets")
    if not _is_number(total):
        details["totalAssets"] = "must be a finite number"
    elif total < 0:
        details["totalAssets"] = "must not be negative"
    if details:
        raise InvalidParameters("Invalid date or totalAssets value", details)
    return FundAsset(day.isoformat(), float(total))


def check_invariants(params: FundParameters) -> None:
    """Raise InvalidParameters if params would give a non-positive share count."""
    if params.base_share_price <= 0:
        raise InvalidParameters("Invalid parameters", {"baseSharePrice": "must be greater than zero"})
    if params.reference_total_value <= 0:
        raise InvalidParameters(
            "Invalid parameters",
            {"baseFundValue": "reference fund value must be greater than zero"},
        )


@runtime_checkable
class ParameterStore(Protocol):
    def read(self) -> Result[FundParameters]: ...

    def write(self, partial: Dict[str, float]) -> Result[FundParameters]: ...

    def read_price(self, key: str) -> Result[PriceCacheEntry]: ...

    def write_price(self, key: str, entry: PriceCacheEntry) -> Result[PriceCacheEntry]: ...

    def read_assets(self) -> Result[List[FundAsset]]: ...

    def write_asset(self, asset: FundAsset) -> Result[FundAsset]: ...


class NotConfiguredStore:
    """Store used when no database is configured."""

    configured = False

    def _err(self):
        return Err(ErrorKind.NOT_CONFIGURED, "parameter store not configured")

    def read(self):
        return self._err()

    def write(self, partial):
        return self._err()

    def read_price(self, key):
        return self._err()

    def write_price(self, key, entry):
        return self._err()

    def read_assets(self):
        return self._err()

    def write_asset(self, asset):
        return self._err()


class SQLiteParameterStore:
    """
    SQLite-backed store. One connection per call so the store can be shared
    by request threads.
    """

    configured = True

    def __init__(self, path: str, defaults: FundParameters, clock: Callable[[], float] = time.time):
        self.path = path
        self.defaults = defaults
        self.clock = clock
        self.init_db()

    def _db(self):
        conn = sqlite3.connect(self.path)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def init_db(self):
        """Create tables if they don't exist."""
        conn = self._db()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS fund_parameters (
                    id                   INTEGER PRIMARY KEY,
                    base_fund_value      REAL NOT NULL,
                    commodity_units      REAL NOT NULL,
                    reference_unit_price REAL NOT NULL,
                    base_share_price     REAL NOT NULL,
                    last_updated         REAL NOT NULL
                );
                CREATE TABLE IF NOT EXISTS price_cache (
                    key        TEXT PRIMARY KEY,
                    price      REAL NOT NULL,
                    fetched_at REAL NOT NULL
                );
                CREATE TABLE IF NOT EXISTS fund_assets (
                    date         TEXT PRIMARY KEY,
                    total_assets REAL NOT NULL
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def _select(self, conn) -> Optional[FundParameters]:
        row = conn.execute(
            "SELECT base_fund_value, commodity_units, reference_unit_price, base_share_price, last_updated "
            "FROM fund_parameters WHERE id = ?",
            (SINGLETON_ID,),
        ).fetchone()
        return FundParameters(*row) if row else None

    def read(self) -> Result[FundParameters]:
        try:
            conn = self._db()
            try:
                params = self._select(conn)
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        if params is None:
            return Err(ErrorKind.NOT_CONFIGURED, "fund parameters have not been saved yet")
        return Ok(params)

    def write(self, partial: Dict[str, float]) -> Result[FundParameters]:
        try:
            conn = self._db()
            try:
                # hold the write lock from read to upsert so concurrent writers stamp in order
                conn.execute("BEGIN IMMEDIATE")
                current = self._select(conn)
                base = current or self.defaults
                stamp = self.clock()
                if current is not None and stamp <= current.last_updated:
                    stamp = current.last_updated + 1e-6
                merged = replace(base, **partial, last_updated=stamp)
                row = asdict(merged)
                conn.execute(
                    """
                    INSERT INTO fund_parameters
                        (id, base_fund_value, commodity_units, reference_unit_price, base_share_price, last_updated)
                    VALUES (:id, :base_fund_value, :commodity_units, :reference_unit_price, :base_share_price, :last_updated)
                    ON CONFLICT(id) DO UPDATE SET
                        base_fund_value = excluded.base_fund_value,
                        commodity_units = excluded.commodity_units,
                        reference_unit_price = excluded.reference_unit_price,
                        base_share_price = excluded.base_share_price,
                        last_updated = excluded.last_updated
                    """,
                    {"id": SINGLETON_ID, **row},
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        return Ok(merged)

    def read_price(self, key: str) -> Result[PriceCacheEntry]:
        try:
            conn = self._db()
            try:
                row = conn.execute("SELECT price, fetched_at FROM price_cache WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        if row is None:
            return Err(ErrorKind.NOT_CONFIGURED, f"no cached price for {key}")
        return Ok(PriceCacheEntry(*row))

    def write_price(self, key: str, entry: PriceCacheEntry) -> Result[PriceCacheEntry]:
        try:
            conn = self._db()
            try:
                conn.execute(
                    "INSERT INTO price_cache (key, price, fetched_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET price = excluded.price, fetched_at = excluded.fetched_at",
                    (key, entry.price, entry.fetched_at),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        return Ok(entry)

    def read_assets(self) -> Result[List[FundAsset]]:
        try:
            conn = self._db()
            try:
                rows = conn.execute("SELECT date, total_assets FROM fund_assets ORDER BY date").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        return Ok([FundAsset(*row) for row in rows])

    def write_asset(self, asset: FundAsset) -> Result[FundAsset]:
        try:
            conn = self._db()
            try:
                conn.execute(
                    "INSERT INTO fund_assets (date, total_assets) VALUES (?, ?) "
                    "ON CONFLICT(date) DO UPDATE SET total_assets = excluded.total_assets",
                    (asset.date, asset.total_assets),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return Err(ErrorKind.STORE_UNAVAILABLE, str(e))
        return Ok(asset)


class FundParameterService:
    """
    Reads and writes fund parameters through a store, degrading to
    in-memory defaults whenever the store is unavailable.
    """

    def __init__(self, store: ParameterStore, defaults: FundParameters, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self._fallback = defaults

    def get(self):
        """Returns (FundParameters, source) where source is 'store' or 'default'."""
        result = self.store.read()
        if result.ok:
            return result.value, "store"
        if result.kind != ErrorKind.NOT_CONFIGURED:
            logger.warning(f"Parameter store read failed, using defaults: {result}")
        return self._fallback, "default"

    def update(self, payload: Any) -> Result[FundParameters]:
        """
        Validate and persist an admin update. Raises InvalidParameters for bad
        input; returns Err only when a configured store fails to write.
        """
        partial = parse_parameter_update(payload)
        current, _ = self.get()
        check_invariants(replace(current, **partial))

        if not getattr(self.store, "configured", True):
            stamp = max(self.clock(), self._fallback.last_updated + 1e-6)
            self._fallback = replace(self._fallback, **partial, last_updated=stamp)
            logger.info("Fund parameters updated in fallback storage (store not configured)")
            return Ok(self._fallback)

        result = self.store.write(partial)
        if not result.ok:
            logger.error(f"Failed to update fund parameters: {result}")
        else:
            logger.info(f"Fund parameters updated: {result.value.to_json()}")
        return result


class FundAssetService:
    """Fund asset history, falling back to a fixed series when the store has none."""

    def __init__(self, store: ParameterStore, fallback: List[FundAsset] = FALLBACK_FUND_ASSETS):
        self.store = store
        self.fallback = list(fallback)

    def history(self):
        """Returns (assets ordered by date, source) where source is 'store' or 'default'."""
        result = self.store.read_assets()
        if result.ok and result.value:
            return result.value, "store"
        if not result.ok and result.kind != ErrorKind.NOT_CONFIGURED:
            logger.warning(f"Fund assets read failed, using fallback series: {result}")
        return self.fallback, "default"

    def add(self, payload: Any) -> Result[FundAsset]:
        asset = parse_asset_update(payload)
        result = self.store.write_asset(asset)
        if not result.ok:
            logger.error(f"Failed to update fund assets: {result}")
        return result
