"""SQLAlchemy models for payment intents."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class PaymentIntent(Base):
    """
    One STK push attempt.

    Created after the provider accepts the push, finalized once the provider
    reports a result. Rows are never deleted; they double as the audit record
    of every attempt.
    """

    __tablename__ = "payment_intents"

    id = Column(String(12), primary_key=True, default=_new_id)
    reference = Column(String(100), nullable=False, unique=True, index=True)
    provider = Column(String(20), nullable=True)
    provider_transaction_id = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="pending")
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    phone_number = Column(String(20), nullable=False)
    description = Column(String(200), nullable=True)

    # Final provider result
    mpesa_receipt_number = Column(String(50), nullable=True)
    result_code = Column(String(20), nullable=True)
    result_desc = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    events = relationship("PaymentEvent", back_populates="intent", lazy="raise")


class PaymentEvent(Base):
    """
    Immutable audit trail entry.

    Append-only; never modified.
    """

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    intent_id = Column(String(12), ForeignKey("payment_intents.id"), nullable=True, index=True)
    reference = Column(String(100), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

    intent = relationship("PaymentIntent", back_populates="events")
