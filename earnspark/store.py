"""
Payment record store.

Wraps the intent and audit tables behind a few coarse operations. Every
database failure surfaces as StoreError so callers can degrade gracefully:
the provider, not this store, is the source of truth for whether money moved.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from earnspark.audit.logger import log_event
from earnspark.database import build_engine, build_sessionmaker, init_db
from earnspark.models.enums import AuditAction, PaymentStatus
from earnspark.models.payment import PaymentEvent, PaymentIntent

logger = logging.getLogger("earnspark.store")


class StoreError(Exception):
    """The payment record store could not complete an operation."""


@dataclass
class NewIntent:
    reference: str
    provider: str
    provider_transaction_id: str
    amount: float
    phone_number: str
    description: str


class PaymentStore:
    def __init__(self, engine: AsyncEngine, sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._engine = engine
        self._sessionmaker = sessionmaker or build_sessionmaker(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "PaymentStore":
        return cls(build_engine(database_url))

    async def init(self) -> None:
        await init_db(self._engine)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def create_intent(self, new: NewIntent) -> PaymentIntent:
        """Insert a pending intent and its `intent_created` audit entry."""
        try:
            async with self._sessionmaker() as session:
                intent = PaymentIntent(
                    reference=new.reference,
                    provider=new.provider,
                    provider_transaction_id=new.provider_transaction_id,
                    status=PaymentStatus.PENDING.value,
                    amount=new.amount,
                    phone_number=new.phone_number,
                    description=new.description,
                )
                session.add(intent)
                await session.flush()
                log_event(session, AuditAction.INTENT_CREATED, intent_id=intent.id, reference=intent.reference, details={
                    "provider": new.provider,
                    "transaction_id": new.provider_transaction_id,
                    "amount": new.amount,
                })
                await session.commit()
                return intent
        except SQLAlchemyError as e:
            raise StoreError(f"Could not record payment intent {new.reference}: {e}") from e

    async def find_intent(self, key: str) -> Optional[PaymentIntent]:
        """Look up an intent by its reference or the provider's transaction id."""
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(PaymentIntent)
                    .where(or_(PaymentIntent.reference == key, PaymentIntent.provider_transaction_id == key))
                    .order_by(PaymentIntent.created_at.desc())
                    .limit(1)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not look up payment {key}: {e}") from e

    async def finalize_intent(
        self,
        intent_id: str,
        status: PaymentStatus,
        receipt_number: Optional[str],
        result_code: Optional[str],
        result_desc: Optional[str],
        reference: Optional[str] = None,
    ) -> bool:
        """
        Move a pending intent to a terminal status.

        Only rows still pending are touched, so a finalized intent keeps its
        first terminal status. Returns True if this call performed the
        transition.
        """
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize intent {intent_id} as {status.value}")

        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    update(PaymentIntent)
                    .where(PaymentIntent.id == intent_id, PaymentIntent.status == PaymentStatus.PENDING.value)
                    .values(
                        status=status.value,
                        mpesa_receipt_number=receipt_number,
                        result_code=result_code,
                        result_desc=result_desc,
                        updated_at=datetime.now(timezone.utc),
                    )
                )
                transitioned = result.rowcount == 1
                if transitioned:
                    log_event(session, AuditAction.STATUS_FINALIZED, intent_id=intent_id, reference=reference, details={
                        "status": status.value,
                        "result_code": result_code,
                        "receipt": receipt_number,
                    })
                await session.commit()
                return transitioned
        except SQLAlchemyError as e:
            raise StoreError(f"Could not finalize payment intent {intent_id}: {e}") from e

    async def audit_trail(self, intent_id: str) -> list[PaymentEvent]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(PaymentEvent)
                    .where(PaymentEvent.intent_id == intent_id)
                    .order_by(PaymentEvent.timestamp.asc(), PaymentEvent.id.asc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Could not load audit trail for {intent_id}: {e}") from e
