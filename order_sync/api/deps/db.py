from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from order_sync.infrastructure.db.session import session_scope


def get_db(_: Request) -> Generator[Session, None, None]:
    # session_scope yields and closes session
    with session_scope() as session:
        yield session
