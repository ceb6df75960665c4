"""Test doubles shared by the unit and API tests."""
from app import build_services, create_app
from utils.result import Err, ErrorKind, Ok


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeUpstream:
    """Returns queued prices in order, repeating the last one; None means failure."""

    def __init__(self, *prices):
        self.prices = list(prices)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if len(self.prices) > 1:
            price = self.prices.pop(0)
        else:
            price = self.prices[0] if self.prices else None
        if price is None:
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, "down")
        return Ok(price)


class BrokenStore:
    """Configured store whose every call fails."""

    configured = True

    def _err(self):
        return Err(ErrorKind.STORE_UNAVAILABLE, "disk I/O error")

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


def make_client(settings, store=None, upstream=None, clock=None, admin=False):
    services = build_services(settings, store=store, upstream=upstream, clock=clock or FakeClock())
    app = create_app(settings, services=services)
    app.config["TESTING"] = True
    client = app.test_client()
    if admin:
        client.set_cookie(settings.admin_cookie_name, "session-token")
    return client, services
