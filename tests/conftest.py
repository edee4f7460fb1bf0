import hashlib
import hmac
import os
from datetime import timedelta

# Environment must be in place before the app module reads it
os.environ.setdefault("BOT_TOKEN", "123456789:TEST-bot-token-for-automation-only")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret-0123456789-abcdefghijkl")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789-abcdefghijk")
os.environ.setdefault("LOGFIRE_CONSOLE", "false")

import httpx  # noqa: E402
import pytest  # noqa: E402
from beanie import init_beanie  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from main import DOCUMENT_MODELS, app  # noqa: E402
from models.helpers import UserRole, to_timestamp, utc_now  # noqa: E402
from models.users import User  # noqa: E402
from security.bruteforce import BruteForceGuard  # noqa: E402
from security.sessions import SessionStore  # noqa: E402
from security.tokens import TokenIssuer  # noqa: E402
from services.auth import AuthService, get_auth_service  # noqa: E402

BOT_TOKEN = os.environ["BOT_TOKEN"]
ACCESS_SECRET = os.environ["JWT_ACCESS_SECRET"]
REFRESH_SECRET = os.environ["JWT_REFRESH_SECRET"]

ADMIN_ID = 999999999


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def sign_telegram_data(data: dict, bot_token: str = BOT_TOKEN) -> dict:
    """Sign widget data the way Telegram does."""
    check_string = "\n".join(f"{key}={data[key]}" for key in sorted(data))
    secret_key = hashlib.sha256(bot_token.encode()).digest()
    signature = hmac.new(secret_key, check_string.encode(), hashlib.sha256).hexdigest()
    return {**data, "hash": signature}


@pytest.fixture
def clock():
    return FakeClock(utc_now().replace(microsecond=0))


@pytest.fixture
def telegram_auth(clock):
    """Factory for correctly signed login widget data."""

    def _make(user_id=ADMIN_ID, auth_date=None, bot_token=BOT_TOKEN, **fields):
        data = {
            "id": user_id,
            "first_name": "Test",
            "username": "testuser",
            "auth_date": auth_date if auth_date is not None else to_timestamp(clock()),
            **fields,
        }
        return sign_telegram_data(data, bot_token)

    return _make


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["dashboard_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def token_issuer(clock):
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=clock)


@pytest.fixture
def session_store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def guard(clock):
    return BruteForceGuard(clock=clock)


@pytest.fixture
def auth_service(db, clock, token_issuer, session_store, guard):
    return AuthService(
        bot_token=BOT_TOKEN,
        token_issuer=token_issuer,
        session_store=session_store,
        guard=guard,
        clock=clock,
    )


@pytest.fixture
async def admin_user(db):
    user = User(telegram_id=str(ADMIN_ID), alias="AdminTest", role=UserRole.ADMIN)
    await user.insert()
    return user


@pytest.fixture
async def client(auth_service):
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()
