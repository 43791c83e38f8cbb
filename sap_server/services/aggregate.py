"""
SAP Server — Aggregate Store
Owns the process-wide running totals. Increments are serialized with an
asyncio lock; durable writes are best-effort and never roll back the
in-memory totals.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sap_server.core.records import GlobalSnapshot, TrackedEvent, utcnow
from sap_server.services.repository import StatsRepository, StoreError
from sap_server.utils.carbon import ImpactEstimate

logger = logging.getLogger(__name__)

SOURCE_DURABLE = "durable"
SOURCE_MEMORY = "memory"


@dataclass(frozen=True)
class SnapshotRead:
    """A snapshot together with where it came from."""
    snapshot: GlobalSnapshot
    source: str

    @property
    def degraded(self) -> bool:
        return self.source == SOURCE_MEMORY


class AggregateStore:
    """Global prompt/energy/CO2 totals backed by an optional durable store."""

    def __init__(self, repository: Optional[StatsRepository] = None):
        self.repository = repository
        self._snapshot = GlobalSnapshot()
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> GlobalSnapshot:
        """The in-memory totals, without touching storage."""
        return self._snapshot

    async def load(self) -> GlobalSnapshot:
        """Seed the in-memory totals from the latest durable snapshot."""
        if self.repository is None:
            return self._snapshot
        try:
            durable = await self.repository.latest_snapshot()
        except StoreError as e:
            logger.warning(f"Could not load durable snapshot, starting from zero: {e}")
            return self._snapshot

        if durable is not None:
            async with self._lock:
                self._snapshot = durable
            logger.info(f"Loaded durable snapshot: {durable.total_prompts} prompts")
        return self._snapshot

    async def apply_delta(self, estimate: ImpactEstimate, event: Optional[TrackedEvent] = None) -> GlobalSnapshot:
        """Count one prompt and return the resulting snapshot.

        The raw event (if given) and the new snapshot are then written to the
        durable store. Write failures are logged and the in-memory totals
        stay advanced.
        """
        async with self._lock:
            self._snapshot = self._snapshot.advance(estimate.energy_kwh, estimate.co2_kg, utcnow())
            snapshot = self._snapshot

        if self.repository is not None:
            if event is not None:
                try:
                    await self.repository.insert_prompt(event)
                except StoreError as e:
                    logger.error(f"Failed to persist tracked prompt: {e}")
            try:
                await self.repository.insert_snapshot(snapshot)
            except StoreError as e:
                logger.error(f"Failed to persist global stats: {e}")

        return snapshot

    async def read_snapshot(self) -> SnapshotRead:
        """Read the latest durable snapshot, falling back to in-memory totals."""
        if self.repository is None:
            return SnapshotRead(self._snapshot, SOURCE_MEMORY)

        try:
            durable = await self.repository.latest_snapshot()
        except StoreError as e:
            logger.warning(f"Serving in-memory stats, durable read failed: {e}")
            return SnapshotRead(self._snapshot, SOURCE_MEMORY)

        if durable is None:
            return SnapshotRead(self._snapshot, SOURCE_MEMORY)

        async with self._lock:
            # Never move the counter backwards when a durable write was lost.
            if durable.total_prompts >= self._snapshot.total_prompts:
                self._snapshot = durable
        return SnapshotRead(durable, SOURCE_DURABLE)

    async def current_snapshot(self) -> GlobalSnapshot:
        read = await self.read_snapshot()
        return read.snapshot
