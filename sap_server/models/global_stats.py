"""
SAP Server — GlobalStats Model
One row per applied prompt; the newest row is the durable snapshot.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime, Float

from sap_server.core.database import Base


class GlobalStats(Base):
    __tablename__ = "global_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    total_prompts = Column(Integer, default=0, nullable=False)
    total_energy = Column(Float, default=0.0, nullable=False)  # kWh
    total_co2 = Column(Float, default=0.0, nullable=False)  # kg
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return f"<GlobalStats(id={self.id}, prompts={self.total_prompts})>"
