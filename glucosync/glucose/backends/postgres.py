"""Postgres-backed care-plan store.

Tables::

    care_tasks    — one row per logical task id (UNIQUE task_id)
    care_outcomes — one row per recorded outcome; values stored as JSONB,
                    external_id UNIQUE so a copied sample is stored at most once

Native ``asyncpg`` failures are translated into the sync error taxonomy:
a unique violation on ``care_tasks`` becomes ``TaskAlreadyExists``, any
other ``PostgresError`` becomes ``StoreError``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Mapping

import asyncpg

from glucosync.glucose.base import (
    CarePlanBackend,
    DailySchedule,
    Outcome,
    OutcomeValue,
    Task,
    as_utc,
)
from glucosync.glucose.errors import StoreError, TaskAlreadyExists
from glucosync.services.postgres import get_connection

logger = logging.getLogger("glucosync.backends.postgres")

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS care_tasks (
        task_uuid       UUID PRIMARY KEY,
        task_id         TEXT NOT NULL UNIQUE,
        title           TEXT NOT NULL,
        instructions    TEXT,
        schedule_start  TIMESTAMPTZ NOT NULL,
        schedule_hour   SMALLINT NOT NULL,
        schedule_minute SMALLINT NOT NULL,
        schedule_text   TEXT,
        effective_date  TIMESTAMPTZ NOT NULL,
        created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS care_outcomes (
        outcome_uuid     UUID PRIMARY KEY,
        task_uuid        UUID NOT NULL REFERENCES care_tasks (task_uuid),
        occurrence_index INTEGER NOT NULL CHECK (occurrence_index >= 0),
        outcome_values   JSONB NOT NULL,
        created_at       TIMESTAMPTZ NOT NULL,
        external_id      TEXT UNIQUE
    )
    """,
    "CREATE INDEX IF NOT EXISTS care_outcomes_created_at_idx ON care_outcomes (created_at)",
)

_OUTCOME_COLUMNS = [
    "outcome_uuid",
    "task_uuid",
    "occurrence_index",
    "outcome_values",
    "created_at",
    "external_id",
]


def build_insert_query(
    table: str,
    columns: list[str],
    conflict_columns: list[str] | None = None,
) -> str:
    """Build a parameterized INSERT, optionally ``ON CONFLICT ... DO NOTHING``.

    The statement always ends in ``RETURNING *``; when a conflict suppresses
    the insert no row is returned.

    Args:
        table:            Target table name.
        columns:          Columns to insert, in parameter order.
        conflict_columns: Columns of the UNIQUE constraint to ignore conflicts on.

    Returns:
        SQL string using ``$1..$n`` placeholders.
    """
    placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
    col_list = ", ".join(columns)
    query = f"INSERT INTO {table} ({col_list}) VALUES ({placeholders})"
    if conflict_columns:
        query += f" ON CONFLICT ({', '.join(conflict_columns)}) DO NOTHING"
    return query + " RETURNING *"


def _row_to_task(row: Mapping[str, Any]) -> Task:
    return Task(
        id=row["task_id"],
        uuid=row["task_uuid"],
        title=row["title"],
        instructions=row["instructions"],
        schedule=DailySchedule(
            start=row["schedule_start"],
            hour=row["schedule_hour"],
            minute=row["schedule_minute"],
            text=row["schedule_text"],
        ),
        effective_date=as_utc(row["effective_date"]),
    )


def _row_to_outcome(row: Mapping[str, Any]) -> Outcome:
    raw_values = row["outcome_values"]
    if isinstance(raw_values, str):
        raw_values = json.loads(raw_values)
    return Outcome(
        uuid=row["outcome_uuid"],
        task_uuid=row["task_uuid"],
        occurrence_index=row["occurrence_index"],
        values=tuple(
            OutcomeValue(value=float(v["value"]), unit=v["unit"]) for v in raw_values or []
        ),
        created_at=as_utc(row["created_at"]),
        external_id=row["external_id"],
    )


class PostgresCarePlanBackend(CarePlanBackend):
    """Care-plan store on Postgres via an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        """Create the tables and indexes if they do not exist."""
        try:
            async with get_connection(self._pool) as conn:
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        except asyncpg.PostgresError as exc:
            raise StoreError(f"Could not create care-plan schema: {exc}") from exc
        logger.info("Care-plan schema ready")

    async def add_task(self, task: Task) -> Task:
        query = build_insert_query(
            "care_tasks",
            [
                "task_uuid",
                "task_id",
                "title",
                "instructions",
                "schedule_start",
                "schedule_hour",
                "schedule_minute",
                "schedule_text",
                "effective_date",
            ],
        )
        try:
            async with get_connection(self._pool) as conn:
                row = await conn.fetchrow(
                    query,
                    task.uuid,
                    task.id,
                    task.title,
                    task.instructions,
                    task.schedule.start,
                    task.schedule.hour,
                    task.schedule.minute,
                    task.schedule.text,
                    task.effective_date,
                )
        except asyncpg.UniqueViolationError as exc:
            raise TaskAlreadyExists(task.id) from exc
        except asyncpg.PostgresError as exc:
            raise StoreError(f"Could not add task {task.id!r}: {exc}") from exc
        return _row_to_task(row)

    async def fetch_tasks(self, ids: list[str], at: datetime) -> list[Task]:
        try:
            async with get_connection(self._pool) as conn:
                rows = await conn.fetch(
                    "SELECT * FROM care_tasks "
                    "WHERE task_id = ANY($1::text[]) AND effective_date <= $2 "
                    "ORDER BY effective_date DESC",
                    list(ids),
                    as_utc(at),
                )
        except asyncpg.PostgresError as exc:
            raise StoreError(f"Could not query tasks {ids!r}: {exc}") from exc
        return [_row_to_task(r) for r in rows]

    async def add_outcome(self, outcome: Outcome) -> Outcome:
        query = build_insert_query(
            "care_outcomes", _OUTCOME_COLUMNS, conflict_columns=["external_id"]
        )
        values_json = json.dumps([{"value": v.value, "unit": v.unit} for v in outcome.values])
        try:
            async with get_connection(self._pool) as conn:
                row = await conn.fetchrow(
                    query,
                    outcome.uuid,
                    outcome.task_uuid,
                    outcome.occurrence_index,
                    values_json,
                    outcome.created_at,
                    outcome.external_id,
                )
                if row is None:
                    # Conflict on external_id: the sample was already copied.
                    row = await conn.fetchrow(
                        "SELECT * FROM care_outcomes WHERE external_id = $1",
                        outcome.external_id,
                    )
        except asyncpg.PostgresError as exc:
            raise StoreError(f"Could not add outcome {outcome.uuid}: {exc}") from exc
        if row is None:
            raise StoreError(f"Outcome {outcome.uuid} was not stored")
        return _row_to_outcome(row)

    async def fetch_outcomes(self, start: datetime, end: datetime) -> list[Outcome]:
        try:
            async with get_connection(self._pool) as conn:
                rows = await conn.fetch(
                    "SELECT * FROM care_outcomes "
                    "WHERE created_at >= $1 AND created_at <= $2 "
                    "ORDER BY created_at",
                    as_utc(start),
                    as_utc(end),
                )
        except asyncpg.PostgresError as exc:
            raise StoreError(f"Could not query outcomes: {exc}") from exc
        return [_row_to_outcome(r) for r in rows]

