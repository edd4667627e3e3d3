# backend/tests/conftest.py
import asyncio, os, sys, pathlib, pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

BACKEND_DIR = pathlib.Path(__file__).resolve().parents[1]   # .../backend

# Make `from pos_dashboard.*` importable
sys.path.insert(0, str(BACKEND_DIR))

# Never reach a real upstream from tests
os.environ.setdefault("UPSTREAM_API_BASE_URL", "http://upstream.invalid/api")

from pos_dashboard.errors import DefinitiveUpstreamError, TransientNetworkError  # noqa: E402
from pos_dashboard.schemas.records import CashRegister, Product, Sale, User  # noqa: E402

SOURCE_MODELS = {
    "sales": Sale,
    "users": User,
    "products": Product,
    "cashRegisters": CashRegister,
}


def iso(dt: datetime) -> str:
    return dt.isoformat()


def today_ts() -> datetime:
    """A moment earlier today (UTC) that is safely before any request issued afterwards."""
    now = datetime.now(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return max(now - timedelta(seconds=1), midnight)


class FakeUpstream:
    """In-memory upstream. Set `data[source]` to raw rows, or `fail[source]` to an exception."""

    def __init__(self):
        self.data = {name: [] for name in SOURCE_MODELS}
        self.fail = {}
        self.calls = []
        self.token_error = None

    def _answer(self, source):
        self.calls.append(source)
        if source in self.fail:
            raise self.fail[source]
        model = SOURCE_MODELS[source]
        return [model.model_validate(row) for row in self.data[source]]

    def get_sales(self, filters=None):
        return self._answer("sales")

    def get_users(self, filters=None):
        return self._answer("users")

    def get_products(self, filters=None):
        return self._answer("products")

    def get_cash_registers(self, filters=None):
        return self._answer("cashRegisters")

    def health_check(self):
        self.calls.append("health")
        if "health" in self.fail:
            raise self.fail["health"]

    def get_current_user(self, token):
        if self.token_error is not None:
            raise self.token_error
        return User(id="u-1", name="Ana", email="ana@example.com", active=True)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class RecordingSleep:
    """Records requested delays instead of waiting; blocks for good after `block_after` calls."""

    def __init__(self, block_after=None):
        self.delays = []
        self.block_after = block_after

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.block_after is not None and len(self.delays) >= self.block_after:
            await asyncio.Event().wait()
        await asyncio.sleep(0)


@pytest.fixture()
def upstream():
    return FakeUpstream()


@pytest.fixture()
def client(upstream):
    from pos_dashboard.main import app
    from pos_dashboard.api.deps import get_upstream
    from pos_dashboard.services.sync_state import SyncState

    app.state.sync_state = SyncState()
    app.dependency_overrides[get_upstream] = lambda: upstream
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sleeper():
    return RecordingSleep()


@pytest.fixture()
def transient():
    return TransientNetworkError("connection refused")


@pytest.fixture()
def definitive():
    return DefinitiveUpstreamError("HTTP 500", status=500)
