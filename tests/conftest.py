"""Pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from collections.abc import Callable
from dataclasses import replace
from typing import Any

os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ISSUER", "test-issuer")

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from order_sync.infrastructure.db import models  # noqa: F401
from order_sync.infrastructure.db.base import Base
from order_sync.shared.config import Settings, load_settings

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def settings() -> Settings:
    return replace(
        load_settings(),
        app_env="local",
        jwt_secret="test-secret",
        jwt_issuer="test-issuer",
        appmax_webhook_secret=WEBHOOK_SECRET,
        conversions_provider="fake",
    )


@pytest.fixture
def engine():
    # one shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def fetch(session_factory) -> Callable[..., list[Any]]:
    """Read committed rows through a fresh session."""

    def _fetch(model, *where) -> list[Any]:
        with session_factory() as s:
            with s.begin():
                stmt = select(model)
                if where:
                    stmt = stmt.where(*where)
                return list(s.execute(stmt).scalars())

    return _fetch


@pytest.fixture
def signed(settings: Settings) -> Callable[..., tuple[bytes, dict[str, str]]]:
    def _signed(
        payload: Any, timestamp: str | None = None, prefix: str = "sha256="
    ) -> tuple[bytes, dict[str, str]]:
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        digest = hmac.new(WEBHOOK_SECRET.encode(), raw, hashlib.sha256).hexdigest()
        headers = {settings.appmax_signature_header: f"{prefix}{digest}"}
        if timestamp is not None:
            headers[settings.appmax_timestamp_header] = timestamp
        return raw, headers

    return _signed
