import pytest

from config import Settings
from fakes import FakeClock
from services.store import FundParameters, SQLiteParameterStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def defaults(clock):
    return FundParameters(
        base_fund_value=575000.0,
        commodity_units=5000.0,
        reference_unit_price=28.50,
        base_share_price=1.824,
        last_updated=clock(),
    )


@pytest.fixture
def sqlite_store(tmp_path, defaults, clock):
    return SQLiteParameterStore(str(tmp_path / "fund.db"), defaults, clock=clock)


@pytest.fixture
def settings():
    return Settings(_env_file=None, price_refresh_jitter=0.0, database_path="", silver_api_key="")
