"""Shared fixtures: an in-memory database, a cast of users, and one event."""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent dir to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from poolbet.database import init_db
from poolbet.services.event_service import create_event
from poolbet.services.user_service import create_user

# Fixed clock: the fixture event's stake deadline is T0 + 2h and its proof
# deadline T0 + 26h.
T0 = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
STAKING = T0 + timedelta(hours=1)
CREATOR_WINDOW = T0 + timedelta(hours=3)
PUBLIC_WINDOW = T0 + timedelta(hours=27)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def users(db):
    return {
        "creator": create_user(db, "creator", "creator@example.com"),
        "alice": create_user(db, "alice", "alice@example.com", initial_balance=1000.0),
        "bob": create_user(db, "bob", "bob@example.com", initial_balance=1000.0),
        "carol": create_user(db, "carol", "carol@example.com", initial_balance=1000.0),
        "curator": create_user(db, "curator", "curator@example.com", role="curator"),
        "admin": create_user(db, "admin", "admin@example.com", role="admin"),
    }


def make_event(db, creator_id, options=("A", "B"), now=T0, **overrides):
    fields = {
        "title": "Who wins the 2030 championship final?",
        "description": "Two finalists meet on neutral ground; the result is final after extra time.",
        "category": "sports",
        "stake_deadline": now + timedelta(hours=2),
        "resolution_due_by": now + timedelta(days=3),
        "outcome_options": list(options),
    }
    fields.update(overrides)
    return create_event(db, creator_id, now=now, **fields)


@pytest.fixture
def event(db, users):
    return make_event(db, users["creator"].id)
