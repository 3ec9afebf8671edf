from __future__ import annotations

from typing import Any

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_or_update(
    session: Session,
    table: Table,
    values: dict[str, Any],
    conflict_columns: list[str],
):
    """Build an INSERT .. ON CONFLICT DO UPDATE for the session's dialect.

    Every column present in ``values`` except the conflict key is overwritten
    on conflict, so the newest write wins. The statement returns the row id.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"upsert not supported for dialect {dialect!r}") from None

    stmt = insert(table).values(**values)
    update_cols = {
        name: stmt.excluded[name] for name in values if name not in conflict_columns
    }
    return stmt.on_conflict_do_update(
        index_elements=conflict_columns, set_=update_cols
    ).returning(table.c.id)
