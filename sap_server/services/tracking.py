"""
SAP Server — Tracking Service
Turns one reported prompt into a tracked event and applies it to the
global totals.
"""
import logging
from typing import Optional

from sap_server.core.records import PROMPT_MAX_CHARS, GlobalSnapshot, SourceTag, TrackedEvent, utcnow
from sap_server.services.aggregate import AggregateStore
from sap_server.utils.carbon import estimate_impact

logger = logging.getLogger(__name__)


def truncate_prompt(prompt: Optional[str]) -> str:
    return (prompt or "")[:PROMPT_MAX_CHARS]


async def track_prompt(
    store: AggregateStore,
    prompt: Optional[str],
    model: str,
    tokens: int,
    energy: Optional[float] = None,
    co2: Optional[float] = None,
    user_id: Optional[str] = None,
    source: Optional[SourceTag] = None,
) -> GlobalSnapshot:
    """Estimate the prompt's impact, record it, and return the new totals.

    The estimate is computed from ``tokens`` only; truncating the stored
    prompt text never changes it.
    """
    estimate = estimate_impact(tokens, energy, co2)
    event = TrackedEvent(
        prompt=truncate_prompt(prompt),
        model=model,
        tokens=tokens,
        energy=estimate.energy_kwh,
        co2=estimate.co2_kg,
        user_id=user_id,
        source=source,
        created_at=utcnow(),
    )
    snapshot = await store.apply_delta(estimate, event)
    logger.debug(f"Tracked prompt for user {user_id}: {tokens} tokens, {estimate.energy_kwh} kWh")
    return snapshot
