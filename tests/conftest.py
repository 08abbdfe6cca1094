import asyncio
import os
import tempfile

# Configure the app for tests before anything imports the settings
_TEST_DIR = tempfile.mkdtemp(prefix="cargo-tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["PARCEL_EXPIRATION_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.api.deps import get_broadcaster, get_cache, get_performance_monitor  # noqa: E402
from app.core.database import get_db, init_models, make_engine, make_sessionmaker  # noqa: E402
from app.main import app  # noqa: E402
from app.services.cache_service import CacheService, InProcessRemoteCache  # noqa: E402
from app.services.notification_service import ConnectionManager, NotificationBroadcaster  # noqa: E402
from app.services.performance_monitor import PerformanceMonitor  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    # NullPool: TestClient may run requests on different event loops
    test_engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(init_models(test_engine))
    yield test_engine
    asyncio.run(test_engine.dispose())


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def cache():
    return CacheService(remote=InProcessRemoteCache(), default_ttl=600, sliding_expiration=120)


@pytest.fixture
def broadcaster():
    return NotificationBroadcaster(ConnectionManager(), maxsize=100)


@pytest.fixture
def monitor():
    return PerformanceMonitor()


@pytest.fixture
def override_db(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_db, cache, broadcaster, monitor):
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_performance_monitor] = lambda: monitor
    return TestClient(app)


@pytest.fixture
def live_client(override_db, cache):
    """Client with the app lifespan running (notification dispatcher started)."""
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client
