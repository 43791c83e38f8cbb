"""
SAP Server — Pydantic Schemas
Request/response models. Field names are snake_case in Python and
camelCase on the wire.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sap_server.core.records import GlobalSnapshot, PaymentRecord, PaymentType, SourceTag


# ── Stats ────────────────────────────────────────────────────────────────────
class StatsResponse(BaseModel):
    total_prompts: int = Field(alias="totalPrompts")
    total_energy: float = Field(alias="totalEnergy", description="kWh")
    total_co2: float = Field(alias="totalCO2", description="kg CO2")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    class Config:
        populate_by_name = True

    @classmethod
    def from_snapshot(cls, snapshot: GlobalSnapshot) -> "StatsResponse":
        return cls(
            total_prompts=snapshot.total_prompts,
            total_energy=snapshot.total_energy,
            total_co2=snapshot.total_co2,
            last_updated=snapshot.last_updated,
        )


# ── Tracking ─────────────────────────────────────────────────────────────────
class TrackRequest(BaseModel):
    prompt: str = Field(default="", description="Prompt text; stored truncated to 1000 chars")
    model: str = Field(default="unknown")
    tokens: int = Field(default=0, ge=0, description="Token count used for the estimate")
    energy: Optional[float] = Field(default=None, ge=0, description="Explicit energy in kWh")
    co2: Optional[float] = Field(default=None, ge=0, description="Explicit CO2 in kg")
    user_id: Optional[str] = Field(default=None, alias="userId")
    source: Optional[SourceTag] = None

    class Config:
        populate_by_name = True


class TrackResponse(BaseModel):
    success: bool = True
    stats: StatsResponse


# ── Generation ───────────────────────────────────────────────────────────────
class GenerateRequest(BaseModel):
    prompt: str
    model: str = "openai/gpt-3.5-turbo"
    user_id: Optional[str] = Field(default=None, alias="userId")

    class Config:
        populate_by_name = True


class GenerateResponse(BaseModel):
    response: str
    usage: Optional[dict] = None


# ── Users ────────────────────────────────────────────────────────────────────
class PaymentResponse(BaseModel):
    id: Optional[int]
    user_id: str
    type: str
    amount: float
    stripe_session_id: Optional[str]
    created_at: datetime

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            type=record.type,
            amount=record.amount,
            stripe_session_id=record.external_ref,
            created_at=record.created_at,
        )


class UserStatusResponse(BaseModel):
    has_stamp: bool = Field(alias="hasStamp")
    has_membership: bool = Field(alias="hasMembership")
    credits: float
    payments: List[PaymentResponse] = []

    class Config:
        populate_by_name = True


# ── Billing ──────────────────────────────────────────────────────────────────
class CheckoutSessionRequest(BaseModel):
    price_id: str = Field(alias="priceId")
    user_id: str = Field(alias="userId")
    type: PaymentType

    class Config:
        populate_by_name = True


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")

    class Config:
        populate_by_name = True
