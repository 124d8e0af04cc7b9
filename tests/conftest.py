"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional
from urllib.parse import urlencode

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from miniapp_chess.auth.session import Session as UserSession
from miniapp_chess.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

BOT_TOKEN = "123456:TEST-bot-token"
AUTH_DATE = 1_700_000_000


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


# --- SIGNED INIT DATA ---
def sign_init_data(
    fields: dict[str, str], bot_token: str = BOT_TOKEN, hash_value: Optional[str] = None
) -> str:
    """Build init data the way the host platform does (written out by hand, independent of the code under test)."""
    check_string = "\n".join(f"{key}={value}" for key, value in sorted(fields.items()))
    secret = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    signature = hmac.new(secret, check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode({**fields, "hash": hash_value or signature})


def user_fields(
    user_id: int = 42,
    username: Optional[str] = "magnus",
    auth_date: int = AUTH_DATE,
    **extra: str,
) -> dict[str, str]:
    user: dict[str, Any] = {"id": user_id, "first_name": "Test"}
    if username is not None:
        user["username"] = username
    return {
        "auth_date": str(auth_date),
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "user": json.dumps(user),
        **extra,
    }


@pytest.fixture
def init_data() -> Callable[..., str]:
    """Call the inner function with the user fields you need, get back signed init data"""

    def _init_data(
        user_id: int = 42,
        username: Optional[str] = "magnus",
        auth_date: int = AUTH_DATE,
        bot_token: str = BOT_TOKEN,
    ) -> str:
        return sign_init_data(user_fields(user_id, username, auth_date), bot_token)

    return _init_data


def make_session(user_id: int, username: Optional[str] = None, verified: bool = True) -> UserSession:
    return UserSession(
        user_id=user_id,
        username=username,
        verified=verified,
        issued_at=datetime.fromtimestamp(AUTH_DATE, tz=timezone.utc),
    )


@pytest.fixture
def white_session() -> UserSession:
    return make_session(1001, "white_player")


@pytest.fixture
def black_session() -> UserSession:
    return make_session(2002, "black_player")
