# ruff: noqa: E402
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import anyio
import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

# Set testing environment flags before importing the app or settings
os.environ["APP_ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./tests/test.db")
os.environ.setdefault("USE_JSON_LOGS", "0")

import app.models.registry  # noqa: F401 - populate metadata
from app.core.config import settings
from app.core.database import Base, get_db
from app.main import app
from app.modules.notifications.common import language_cache
from app.modules.notifications.models import PushToken
from app.modules.notifications.push import PushGateway, get_push_gateway
from app.modules.studio.models import (
    Booking,
    BookingStatus,
    StudioClass,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    UserSubscription,
)
from app.oauth2 import create_access_token
from fastapi.testclient import TestClient

GATEWAY_URL = "https://push.test/--/api/v2/push/send"


class AttrDict(dict):
    """Dict with attribute-style access for fixtures."""

    def __getattr__(self, item: str) -> Any:
        try:
            return self[item]
        except KeyError as exc:
            raise AttributeError(item) from exc


# Align settings with test environment even if loaded before env vars
object.__setattr__(settings, "environment", "test")

test_db_url = os.environ["TEST_DATABASE_URL"]

# Safety: never run tests against a non-test Postgres database.
parsed_url = make_url(test_db_url)
if parsed_url.drivername.startswith("postgresql") and not (
    parsed_url.database or ""
).endswith("_test"):
    raise RuntimeError(
        f"Refusing to run tests against non-test database '{parsed_url.database}'. "
        "Set TEST_DATABASE_URL to a dedicated *_test database."
    )


def _init_test_engine():
    engine_kwargs = {"echo": False}
    if parsed_url.drivername.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(test_db_url, **engine_kwargs)


engine = _init_test_engine()
Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _truncate_all() -> None:
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


# Autouse cleanup to keep DB isolated across all tests, including those that
# do not explicitly request the session fixture.
@pytest.fixture(autouse=True, scope="function")
def _clean_db_between_tests():
    _truncate_all()
    language_cache.clear()
    yield
    language_cache.clear()


@pytest.fixture
def session_factory():
    """Open extra sessions, as a second worker would."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def session():
    """Fresh database session per test."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------- push gateway
class PushGatewayStub:
    """In-memory push gateway: records every request and answers with tickets.

    ``tickets`` maps a token to the ticket returned for it (default ``ok``).
    ``unreachable`` tokens make the whole request fail at transport level and
    ``fail_status`` makes every request fail with that HTTP status.
    """

    def __init__(self):
        self.requests: List[Any] = []
        self.tickets: Dict[str, Dict[str, Any]] = {}
        self.unreachable: set = set()
        self.fail_status: Optional[int] = None
        self.sleeps: List[float] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        messages = payload if isinstance(payload, list) else [payload]
        if any(message["to"] in self.unreachable for message in messages):
            raise httpx.ConnectError("gateway unreachable", request=request)
        if self.fail_status:
            return httpx.Response(self.fail_status, json={"errors": [{"code": "INTERNAL"}]})
        tickets = [
            self.tickets.get(message["to"], {"status": "ok", "id": f"ticket-{message['to']}"})
            for message in messages
        ]
        return httpx.Response(200, json={"data": tickets if isinstance(payload, list) else tickets[0]})

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    def reject(self, token: str, error: str = "DeviceNotRegistered") -> None:
        self.tickets[token] = {
            "status": "error",
            "message": f'"{token}" is not a registered push notification recipient',
            "details": {"error": error},
        }

    @property
    def sent_tokens(self) -> List[str]:
        tokens: List[str] = []
        for payload in self.requests:
            messages = payload if isinstance(payload, list) else [payload]
            tokens.extend(message["to"] for message in messages)
        return tokens


@pytest.fixture
def push_stub():
    return PushGatewayStub()


@pytest.fixture
def push_gateway(push_stub):
    client = httpx.AsyncClient(transport=httpx.MockTransport(push_stub.handler))
    gateway = PushGateway(
        client,
        url=GATEWAY_URL,
        batch_size=100,
        batch_delay=0.1,
        sleep=push_stub.sleep,
    )
    yield gateway
    anyio.run(gateway.aclose)


@pytest.fixture(scope="function")
def client(session, push_gateway):
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: push_gateway
    with TestClient(app) as test_client:
        try:
            yield test_client
        finally:
            app.dependency_overrides.clear()


# ---------------------------------------------------------------- studio data
_counter = {"value": 0}


def _next() -> int:
    _counter["value"] += 1
    return _counter["value"]


@pytest.fixture
def make_user(session):
    def _make_user(
        *,
        name: Optional[str] = None,
        role: UserRole = UserRole.CLIENT,
        language: Optional[str] = "en",
        push_token: Optional[str] = None,
        tokens: Optional[List[str]] = None,
    ) -> User:
        seq = _next()
        user = User(
            email=f"user{seq}@studio.test",
            name=name or f"User {seq}",
            role=role.value,
            language_preference=language,
            push_token=push_token,
        )
        session.add(user)
        session.commit()
        for token in tokens or []:
            session.add(PushToken(user_id=user.id, token=token, is_active=True))
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_class(session):
    def _make_class(
        *,
        name: str = "Reformer Flow",
        start_time: Optional[datetime] = None,
        instructor: Optional[User] = None,
        bookings: Optional[List[User]] = None,
    ) -> StudioClass:
        studio_class = StudioClass(
            name=name,
            instructor_id=instructor.id if instructor else None,
            start_time=start_time or datetime.now(timezone.utc) + timedelta(days=1),
        )
        session.add(studio_class)
        session.commit()
        for member in bookings or []:
            session.add(
                Booking(
                    class_id=studio_class.id,
                    user_id=member.id,
                    status=BookingStatus.CONFIRMED.value,
                )
            )
        session.commit()
        session.refresh(studio_class)
        return studio_class

    return _make_class


@pytest.fixture
def make_subscription(session):
    def _make_subscription(
        user: User,
        *,
        end_date: datetime,
        plan_name: str = "Monthly Unlimited",
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> UserSubscription:
        plan = SubscriptionPlan(name=plan_name, duration_days=30)
        session.add(plan)
        session.commit()
        subscription = UserSubscription(
            user_id=user.id,
            plan_id=plan.id,
            start_date=end_date - timedelta(days=30),
            end_date=end_date,
            status=status.value,
        )
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return subscription

    return _make_subscription


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'user_id': user.id})}"}


@pytest.fixture
def test_user(make_user):
    return make_user(name="Ana Client", tokens=["ExponentPushToken[ana-phone]"])


@pytest.fixture
def staff_user(make_user):
    return make_user(name="Rita Reception", role=UserRole.RECEPTION)


@pytest.fixture
def test_user_token_headers(test_user):
    return auth_headers(test_user)


@pytest.fixture
def staff_token_headers(staff_user):
    return auth_headers(staff_user)
