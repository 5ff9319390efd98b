"""
PriceWatch Test Configuration
Pytest fixtures and test utilities
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, List, Optional, Tuple, Union

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.config import settings
from pricewatch.database import build_engine, create_tables, get_db
from pricewatch.main import app
from pricewatch.models import Base, PriceAlert
from pricewatch.services.alert_store import SqlAlertStore, TrackedItem
from pricewatch.services.price_fetcher import ScraperRegistry, browser_headers
from pricewatch.services.scheduler import ReconciliationWorker


# Test database
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = build_engine(TEST_DATABASE_URL)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    create_tables(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db: Session) -> SqlAlertStore:
    return SqlAlertStore(TestingSessionLocal)


@pytest.fixture
def read_alert(db: Session):
    """Read an alert through a fresh session so no cached state leaks in"""
    def _read(alert_id: str) -> PriceAlert:
        session = TestingSessionLocal()
        try:
            return session.query(PriceAlert).filter(PriceAlert.id == alert_id).one()
        finally:
            session.close()

    return _read


@pytest.fixture
def add_alert(db: Session):
    """Factory creating persisted alerts; later calls sort as newer"""
    base_time = datetime(2026, 1, 1, tzinfo=timezone.utc)
    created: List[PriceAlert] = []

    def _add(
        url: str,
        platform: str,
        target_price: float,
        last_price: Optional[float] = None,
        user_email: str = "shopper@example.com",
        is_active: bool = True,
    ) -> PriceAlert:
        alert = PriceAlert(
            url=url,
            platform=platform,
            target_price=target_price,
            last_price=last_price,
            user_email=user_email,
            is_active=is_active,
            created_at=base_time + timedelta(minutes=len(created)),
        )
        db.add(alert)
        db.commit()
        db.refresh(alert)
        created.append(alert)
        return alert

    return _add


# ============ Canned pages ============

Entry = Union[Tuple[int, str], Exception]


class PageServer:
    """Serves canned HTML per URL through httpx.MockTransport"""

    def __init__(self):
        self.pages: Dict[str, Entry] = {}
        self.requests: List[httpx.Request] = []

    def set(self, url: str, body: str, status: int = 200):
        self.pages[url] = (status, body)

    def fail(self, url: str):
        self.pages[url] = httpx.ConnectError("connection refused")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.pages.get(str(request.url))
        if entry is None:
            return httpx.Response(404, text="<html><body>Not found</body></html>")
        if isinstance(entry, Exception):
            raise entry
        status, body = entry
        return httpx.Response(status, text=body, headers={"content-type": "text/html"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            headers=browser_headers(settings),
            follow_redirects=True,
        )


@pytest.fixture
def page_server() -> PageServer:
    return PageServer()


@pytest.fixture
def registry(page_server: PageServer) -> ScraperRegistry:
    return ScraperRegistry.build(client=page_server.client())


class RecordingNotifier:
    def __init__(self):
        self.calls: List[dict] = []

    async def on_price_drop(self, item_id, url, current_price, target_price, recipient, platform=None):
        self.calls.append({
            "item_id": item_id,
            "url": url,
            "current_price": current_price,
            "target_price": target_price,
            "recipient": recipient,
            "platform": platform,
        })


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def worker(store, registry, notifier, sleeps) -> ReconciliationWorker:
    async def fake_sleep(seconds: float):
        sleeps.append(seconds)

    return ReconciliationWorker(
        store=store,
        registry=registry,
        notifier=notifier,
        item_delay=2.0,
        sleep=fake_sleep,
    )


class MemoryAlertStore:
    """In-memory store with switchable failures"""

    def __init__(self, items: List[TrackedItem]):
        self.items = list(items)
        self.writes: List[Tuple[str, float, datetime]] = []
        self.fail_list = False
        self.reject_ids: set = set()
        self.raise_ids: set = set()

    def list_active(self) -> List[TrackedItem]:
        if self.fail_list:
            raise RuntimeError("database unavailable")
        return list(self.items)

    def update_price(self, alert_id: str, price: float, checked_at: datetime) -> bool:
        if alert_id in self.raise_ids:
            raise RuntimeError("write timeout")
        if alert_id in self.reject_ids:
            return False
        self.writes.append((alert_id, price, checked_at))
        return True


@pytest.fixture
def memory_store_factory():
    return MemoryAlertStore


@pytest.fixture
def client(db: Session, worker: ReconciliationWorker) -> Generator[TestClient, None, None]:
    """Create test client with database override; lifespan is not run"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.worker = worker

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    del app.state.worker
