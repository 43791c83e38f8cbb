"""
SAP Server — Durable Store
Append/query access to prompt events, snapshots and payments.
Every database or driver failure surfaces as StoreError.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from sap_server.core.records import (
    GlobalSnapshot,
    PaymentRecord,
    SourceTag,
    TrackedEvent,
    as_utc,
)
from sap_server.models import GlobalStats, PromptTracking, UserPayment

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The durable store could not be read or written."""


class StatsRepository:
    """Repository over the prompt_tracking, global_stats and user_payments tables.

    Rows are only ever inserted; nothing here updates or deletes.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(str(e)) from e

    # ── Prompt events ────────────────────────────────────────────────────
    async def insert_prompt(self, event: TrackedEvent) -> None:
        async with self._session() as session:
            session.add(PromptTracking(
                prompt=event.prompt,
                model=event.model,
                tokens=event.tokens,
                energy=event.energy,
                co2=event.co2,
                user_id=event.user_id,
                source=event.source.value if event.source else None,
                created_at=event.created_at,
            ))
            await session.commit()

    async def recent_prompts(self, user_id: Optional[str] = None, limit: int = 100) -> List[TrackedEvent]:
        """Read the prompt audit log, newest first, optionally for one user."""
        query = select(PromptTracking)
        if user_id is not None:
            query = query.where(PromptTracking.user_id == user_id)
        query = query.order_by(PromptTracking.created_at.desc(), PromptTracking.id.desc()).limit(limit)

        async with self._session() as session:
            result = await session.execute(query)
            rows = result.scalars().all()

        return [
            TrackedEvent(
                prompt=row.prompt,
                model=row.model,
                tokens=row.tokens,
                energy=row.energy,
                co2=row.co2,
                user_id=row.user_id,
                source=SourceTag(row.source) if row.source else None,
                created_at=as_utc(row.created_at),
            )
            for row in rows
        ]

    # ── Snapshots ────────────────────────────────────────────────────────
    async def insert_snapshot(self, snapshot: GlobalSnapshot) -> None:
        async with self._session() as session:
            session.add(GlobalStats(
                total_prompts=snapshot.total_prompts,
                total_energy=snapshot.total_energy,
                total_co2=snapshot.total_co2,
                created_at=snapshot.last_updated,
            ))
            await session.commit()

    async def latest_snapshot(self) -> Optional[GlobalSnapshot]:
        """Get the most recently persisted snapshot, or None for an empty table."""
        query = (
            select(GlobalStats)
            .order_by(GlobalStats.created_at.desc(), GlobalStats.total_prompts.desc())
            .limit(1)
        )
        async with self._session() as session:
            result = await session.execute(query)
            row = result.scalar_one_or_none()

        if row is None:
            return None
        return GlobalSnapshot(
            total_prompts=row.total_prompts or 0,
            total_energy=row.total_energy or 0.0,
            total_co2=row.total_co2 or 0.0,
            last_updated=as_utc(row.created_at),
        )

    # ── Payments ─────────────────────────────────────────────────────────
    async def insert_payment(self, record: PaymentRecord) -> PaymentRecord:
        async with self._session() as session:
            row = UserPayment(
                user_id=record.user_id,
                type=record.type,
                amount=record.amount,
                stripe_session_id=record.external_ref,
                created_at=record.created_at,
            )
            session.add(row)
            await session.commit()
            payment_id = row.id

        logger.info(f"Recorded {record.type} payment for user {record.user_id}")
        return PaymentRecord(
            user_id=record.user_id,
            type=record.type,
            amount=record.amount,
            external_ref=record.external_ref,
            created_at=record.created_at,
            id=payment_id,
        )

    async def payments_for(self, user_id: str) -> List[PaymentRecord]:
        """Get all payments for a user, newest first."""
        query = (
            select(UserPayment)
            .where(UserPayment.user_id == user_id)
            .order_by(UserPayment.created_at.desc(), UserPayment.id.desc())
        )
        async with self._session() as session:
            result = await session.execute(query)
            rows = result.scalars().all()

        return [
            PaymentRecord(
                user_id=row.user_id,
                type=row.type,
                amount=row.amount,
                external_ref=row.stripe_session_id,
                created_at=as_utc(row.created_at),
                id=row.id,
            )
            for row in rows
        ]
