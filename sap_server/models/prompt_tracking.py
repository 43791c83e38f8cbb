"""
SAP Server — PromptTracking Model
Append-only audit log of every tracked prompt.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, Float

from sap_server.core.database import Base


class PromptTracking(Base):
    __tablename__ = "prompt_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prompt = Column(Text, nullable=False, default="")  # truncated to 1000 chars
    model = Column(String(255), nullable=True)
    tokens = Column(Integer, default=0, nullable=False)
    energy = Column(Float, default=0.0, nullable=False)  # kWh
    co2 = Column(Float, default=0.0, nullable=False)  # kg
    user_id = Column(String(255), nullable=True, index=True)
    source = Column(String(50), nullable=True)  # form_submission, button_click, input_change
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<PromptTracking(id={self.id}, model='{self.model}', tokens={self.tokens})>"
