"""
SAP Server — UserPayment Model
Completed Stripe checkouts. Append-only.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Float

from sap_server.core.database import Base


class UserPayment(Base):
    __tablename__ = "user_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(50), nullable=False)  # stamp, membership, credits
    amount = Column(Float, default=0.0, nullable=False)
    stripe_session_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<UserPayment(id={self.id}, user_id='{self.user_id}', type='{self.type}')>"
