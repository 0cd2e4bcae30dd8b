from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ColumnUpgrade(NamedTuple):
    table: str
    column: str
    ddl: str
    default: str | None = None


# Columns added after the first schema; create_all never alters existing tables.
UPGRADES = (
    ColumnUpgrade("users", "family_id", "VARCHAR(36)"),
    ColumnUpgrade("transactions", "subcategory", "VARCHAR(120)"),
    ColumnUpgrade("transactions", "recurrence", "VARCHAR(7)", "'none'"),
    ColumnUpgrade("transactions", "is_fixed", "BOOLEAN", "FALSE"),
    ColumnUpgrade("transactions", "due_date", "DATE"),
)


def _existing_columns(engine: Engine, table: str) -> set[str] | None:
    try:
        return {column["name"] for column in inspect(engine).get_columns(table)}
    except SQLAlchemyError as exc:
        logger.error("Failed to inspect %s table: %s", table, exc)
        return None


def _add_column(engine: Engine, upgrade: ColumnUpgrade) -> None:
    logger.info("Adding %s column to %s table.", upgrade.column, upgrade.table)
    add_column_sql = f"ALTER TABLE {upgrade.table} ADD COLUMN {upgrade.column} {upgrade.ddl}"

    try:
        with engine.begin() as connection:
            if upgrade.default is None:
                connection.execute(text(add_column_sql))
            elif engine.dialect.name.lower() == "sqlite":
                connection.execute(text(f"{add_column_sql} NOT NULL DEFAULT {upgrade.default}"))
            else:
                connection.execute(text(add_column_sql))
                connection.execute(
                    text(f"UPDATE {upgrade.table} SET {upgrade.column} = {upgrade.default} WHERE {upgrade.column} IS NULL")
                )
                connection.execute(
                    text(f"ALTER TABLE {upgrade.table} ALTER COLUMN {upgrade.column} SET DEFAULT {upgrade.default}")
                )
                connection.execute(text(f"ALTER TABLE {upgrade.table} ALTER COLUMN {upgrade.column} SET NOT NULL"))
    except SQLAlchemyError as exc:
        logger.error("Failed to add %s column to %s: %s", upgrade.column, upgrade.table, exc)


def run_migrations(engine: Engine) -> list[str]:
    """Execute lightweight, idempotent migrations on application start.

    Returns the ``table.column`` names that were missing.
    """
    applied: list[str] = []
    columns_by_table: dict[str, set[str] | None] = {}
    for upgrade in UPGRADES:
        if upgrade.table not in columns_by_table:
            columns_by_table[upgrade.table] = _existing_columns(engine, upgrade.table)
        columns = columns_by_table[upgrade.table]
        if columns is None or upgrade.column in columns:
            continue
        _add_column(engine, upgrade)
        applied.append(f"{upgrade.table}.{upgrade.column}")
    return applied
