"""
Pytest configuration and shared fixtures.

The HTTP tests run against DATABASE_URL (a throwaway SQLite file unless
the environment says otherwise). Store and service tests run against an
in-memory SQLite database with a single shared connection.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_social_media.db")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Clear settings cache before any app imports to ensure test env vars are used
from socialmedia.config import get_settings
get_settings.cache_clear()

from socialmedia import models  # noqa: F401  registers tables on Base.metadata
from socialmedia.schemas import Account
from socialmedia.services import AccountService, MessageService
from socialmedia.storage import AccountStore, Base, MessageStore, enable_sqlite_foreign_keys


@pytest.fixture
def db():
    """Fresh in-memory database session for each test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def account_store(db):
    return AccountStore(db)


@pytest.fixture
def message_store(db):
    return MessageStore(db)


@pytest.fixture
def account_service(account_store):
    return AccountService(account_store)


@pytest.fixture
def message_service(message_store, account_service):
    return MessageService(message_store, account_service)


@pytest.fixture
def alice(account_service) -> Account:
    """A registered account: alice / pass1."""
    return account_service.create_account(Account(username="alice", password="pass1"))
