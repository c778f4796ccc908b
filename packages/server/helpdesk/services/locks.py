"""
Provisioning lock: one row per (tenant, company, operation) in
``provisioning_locks``.

Acquiring inserts the row with ON CONFLICT DO NOTHING. A caller that loses
polls until the holder releases the row, marks it completed, or goes stale.
A completed row doubles as the record that a template was fully applied, so
later callers return early instead of re-running the work.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from helpdesk.core.config import Settings
from helpdesk.core.database import tenant_transaction, upsert
from helpdesk.core.errors import ProvisioningTimeoutError
from helpdesk.models import ProvisioningLock
from helpdesk.models.base import utcnow
from helpdesk_shared.schemas.common import LockOperation

log = structlog.get_logger()


class LockOutcome(str, Enum):
    ACQUIRED = "acquired"
    TAKEN_OVER = "taken_over"
    ALREADY_COMPLETED = "already_completed"


@dataclass
class LockHandle:
    outcome: LockOutcome
    completed: bool = False

    @property
    def acquired(self) -> bool:
        return self.outcome is not LockOutcome.ALREADY_COMPLETED

    def mark_completed(self) -> None:
        """Keep the row as a completion record instead of deleting it on exit."""
        self.completed = True


def _key(table: sa.Table, tenant_id: uuid.UUID, company_id: uuid.UUID, operation: LockOperation) -> list:
    return [
        table.c.tenant_id == tenant_id,
        table.c.company_id == company_id,
        table.c.operation == operation.value,
    ]


async def _try_acquire(
    engine: AsyncEngine,
    schema: str,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    operation: LockOperation,
    holder: str,
    stale_after: timedelta,
    reacquire_completed: bool,
) -> LockOutcome | None:
    """One acquisition attempt. None means somebody else holds the lock."""
    table = ProvisioningLock.__table__
    key = _key(table, tenant_id, company_id, operation)
    now = utcnow()

    async with tenant_transaction(engine, schema) as conn:
        stmt = (
            upsert(conn, table)
            .values(
                tenant_id=tenant_id,
                company_id=company_id,
                operation=operation.value,
                holder=holder,
                acquired_at=now,
            )
            .on_conflict_do_nothing()
            .returning(table.c.holder)
        )
        if (await conn.execute(stmt)).first() is not None:
            return LockOutcome.ACQUIRED

        row = (await conn.execute(sa.select(table.c.completed_at).where(*key))).first()
        if row is None:
            # Released between the insert and the select
            return None

        if row.completed_at is not None:
            if not reacquire_completed:
                return LockOutcome.ALREADY_COMPLETED
            claimed = await conn.execute(
                sa.update(table)
                .where(*key, table.c.completed_at.is_not(None))
                .values(holder=holder, acquired_at=now, completed_at=None)
            )
            return LockOutcome.ACQUIRED if claimed.rowcount == 1 else None

        taken = await conn.execute(
            sa.update(table)
            .where(*key, table.c.completed_at.is_(None), table.c.acquired_at < now - stale_after)
            .values(holder=holder, acquired_at=now)
        )
        return LockOutcome.TAKEN_OVER if taken.rowcount == 1 else None


async def _release(
    engine: AsyncEngine,
    schema: str,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    operation: LockOperation,
    completed: bool,
) -> None:
    table = ProvisioningLock.__table__
    key = _key(table, tenant_id, company_id, operation)
    try:
        async with tenant_transaction(engine, schema) as conn:
            if completed:
                await conn.execute(sa.update(table).where(*key).values(completed_at=utcnow()))
            else:
                await conn.execute(sa.delete(table).where(*key))
    except SQLAlchemyError as exc:
        # The row goes stale and is taken over by the next caller.
        log.error("lock.release_failed", operation=operation.value, error=str(exc))


@asynccontextmanager
async def provisioning_lock(
    engine: AsyncEngine,
    schema: str,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    operation: LockOperation,
    holder: str,
    settings: Settings,
    *,
    reacquire_completed: bool = False,
) -> AsyncIterator[LockHandle]:
    """Hold the provisioning lock for the duration of the block.

    Yields a handle whose ``outcome`` tells the caller what happened. When it
    is ``ALREADY_COMPLETED`` the lock was not taken and the caller must not
    write. On exit the row is kept as a completion record if the holder called
    ``mark_completed``, and deleted otherwise.

    Raises ``ProvisioningTimeoutError`` if the lock stays held by someone else
    for longer than ``settings.lock_wait_seconds``.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.lock_wait_seconds
    stale_after = timedelta(seconds=settings.lock_stale_seconds)

    while True:
        outcome = await _try_acquire(
            engine, schema, tenant_id, company_id, operation, holder, stale_after, reacquire_completed
        )
        if outcome is not None:
            break
        if loop.time() >= deadline:
            raise ProvisioningTimeoutError(
                f"Timed out after {settings.lock_wait_seconds}s waiting for {operation.value} lock "
                f"on company {company_id}"
            )
        log.debug("lock.waiting", operation=operation.value)
        await asyncio.sleep(settings.lock_poll_interval_seconds)

    if outcome is LockOutcome.TAKEN_OVER:
        log.warning("lock.stale_taken_over", operation=operation.value)
    handle = LockHandle(outcome=outcome)
    if not handle.acquired:
        log.info("lock.already_completed", operation=operation.value)
        yield handle
        return

    try:
        yield handle
    finally:
        await _release(engine, schema, tenant_id, company_id, operation, handle.completed)
