"""
Transfer Store
System of record for transfers, their idempotency keys and state history.

Every write runs inside one transaction: either all rows of a create/append
are committed or none are.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, get_args

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ..logging_config import get_logger
from ..schemas import AuditRecord, StateHistoryEntry, Transfer, TransferState
from .models import QuoteSnapshot, TransferIdempotency, TransferRecord, TransferStateHistory
from .session import Base, create_engine, create_session_factory

logger = get_logger("railagent.store")

VALID_STATES = set(get_args(TransferState))


class StoreError(Exception):
    pass


class DuplicateIdempotencyKeyError(StoreError):
    def __init__(self, idempotency_key: str, transfer_id: str):
        super().__init__(f"Idempotency key {idempotency_key!r} already maps to transfer {transfer_id}")
        self.idempotency_key = idempotency_key
        self.transfer_id = transfer_id


class DuplicateTransferIdError(StoreError):
    def __init__(self, transfer_id: str):
        super().__init__(f"Transfer {transfer_id} already exists")
        self.transfer_id = transfer_id


class TransferNotFoundError(StoreError):
    def __init__(self, transfer_id: str):
        super().__init__(f"Transfer {transfer_id} not found")
        self.transfer_id = transfer_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TransferStore:
    """
    Async SQLAlchemy transfer store.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: Optional[str] = None, echo: bool = False) -> "TransferStore":
        return cls(create_engine(database_url, echo=echo))

    async def init_models(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def _insert_history(
        self,
        session: AsyncSession,
        transfer_id: str,
        status: str,
        tx_hash: Optional[str],
        timestamp: datetime,
    ) -> None:
        session.add(TransferStateHistory(
            transfer_id=transfer_id,
            status=status,
            tx_hash=tx_hash,
            timestamp=timestamp,
        ))
        await session.flush()

    async def create_transfer(
        self,
        *,
        id: str,
        quote_id: str,
        recipient: str,
        amount: Decimal,
        from_token: str,
        to_token: str,
        provider_name: str,
        provider_mode: str,
        tx_hash: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        """
        Insert the transfer row, its first ``submitted`` history row and, when
        a key is given, the key mapping, all in one transaction.

        Raises DuplicateIdempotencyKeyError if the key already belongs to a
        transfer, DuplicateTransferIdError if the id is already stored (another
        key or none); any other database error propagates after rollback.
        """
        now = _utcnow()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(TransferRecord(
                        id=id,
                        quote_id=quote_id,
                        recipient=recipient,
                        amount=Decimal(amount),
                        from_token=from_token,
                        to_token=to_token,
                        provider_name=provider_name,
                        provider_mode=provider_mode,
                        status="submitted",
                        tx_hash=tx_hash,
                        created_at=now,
                        updated_at=now,
                    ))
                    await session.flush()

                    await self._insert_history(session, id, "submitted", tx_hash, now)

                    if idempotency_key:
                        session.add(TransferIdempotency(
                            idempotency_key=idempotency_key,
                            transfer_id=id,
                            created_at=now,
                        ))
                        await session.flush()
        except IntegrityError as e:
            if idempotency_key:
                existing = await self._transfer_id_for_key(idempotency_key)
                if existing is not None:
                    logger.warning("Rejected duplicate idempotency key=%s (owner=%s, attempted=%s)",
                                   idempotency_key, existing, id)
                    raise DuplicateIdempotencyKeyError(idempotency_key, existing) from e
            if await self.get_transfer(id) is not None:
                logger.warning("Rejected transfer id=%s: id already taken", id)
                raise DuplicateTransferIdError(id) from e
            logger.exception("create_transfer failed for id=%s", id)
            raise
        except Exception:
            logger.exception("create_transfer failed for id=%s; rolled back", id)
            raise

        logger.info("Created transfer id=%s quote_id=%s %s->%s amount=%s mode=%s",
                    id, quote_id, from_token, to_token, amount, provider_mode)
        return await self._reload(id)

    async def append_status(self, transfer_id: str, status: str, tx_hash: Optional[str] = None) -> Transfer:
        """
        Move a transfer to ``status`` and append the matching history row in
        one transaction. A missing ``tx_hash`` keeps the current one.
        """
        if status not in VALID_STATES:
            raise ValueError(f"Unknown transfer status: {status!r}")

        now = _utcnow()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    stmt = select(TransferRecord).where(TransferRecord.id == transfer_id).with_for_update()
                    row = (await session.execute(stmt)).scalars().first()
                    if row is None:
                        raise TransferNotFoundError(transfer_id)

                    row.status = status
                    if tx_hash is not None:
                        row.tx_hash = tx_hash
                    row.updated_at = now
                    await session.flush()

                    await self._insert_history(session, transfer_id, status, tx_hash, now)
        except TransferNotFoundError:
            raise
        except Exception:
            logger.exception("append_status failed for id=%s status=%s; rolled back", transfer_id, status)
            raise

        logger.info("Transfer id=%s -> %s", transfer_id, status)
        return await self._reload(transfer_id)

    async def save_quote_snapshot(
        self,
        *,
        quote_id: str,
        from_token: str,
        to_token: str,
        amount: Decimal,
        payload: Dict[str, Any],
        provider_mode: str,
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(QuoteSnapshot(
                    quote_id=quote_id,
                    from_token=from_token,
                    to_token=to_token,
                    amount=Decimal(amount),
                    payload=payload,
                    provider_mode=provider_mode,
                    created_at=_utcnow(),
                ))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _transfer_id_for_key(self, idempotency_key: str) -> Optional[str]:
        async with self._session_factory() as session:
            stmt = select(TransferIdempotency.transfer_id).where(
                TransferIdempotency.idempotency_key == idempotency_key
            )
            return (await session.execute(stmt)).scalars().first()

    async def _reload(self, transfer_id: str) -> Transfer:
        transfer = await self.get_transfer(transfer_id)
        if transfer is None:
            raise StoreError(f"Transfer {transfer_id} missing after commit")
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[Transfer]:
        async with self._session_factory() as session:
            row = (await session.execute(
                select(TransferRecord).where(TransferRecord.id == transfer_id)
            )).scalars().first()
            if row is None:
                return None

            history = (await session.execute(
                select(TransferStateHistory)
                .where(TransferStateHistory.transfer_id == transfer_id)
                .order_by(TransferStateHistory.id.asc())
            )).scalars().all()

            key = (await session.execute(
                select(TransferIdempotency.idempotency_key).where(TransferIdempotency.transfer_id == transfer_id)
            )).scalars().first()

        return Transfer(
            id=row.id,
            quote_id=row.quote_id,
            recipient=row.recipient,
            amount=row.amount,
            from_token=row.from_token,
            to_token=row.to_token,
            provider_name=row.provider_name,
            provider_mode=row.provider_mode,
            status=row.status,
            tx_hash=row.tx_hash,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            idempotency_key=key,
            state_history=[
                StateHistoryEntry(status=h.status, timestamp=_as_utc(h.timestamp), tx_hash=h.tx_hash)
                for h in history
            ],
        )

    async def get_transfer_by_idempotency_key(self, idempotency_key: str) -> Optional[Transfer]:
        transfer_id = await self._transfer_id_for_key(idempotency_key)
        if transfer_id is None:
            return None
        return await self.get_transfer(transfer_id)

    async def get_quote_snapshot(self, quote_id: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            snap = await session.get(QuoteSnapshot, quote_id)
            if snap is None:
                return None
            return {
                "quoteId": snap.quote_id,
                "fromToken": snap.from_token,
                "toToken": snap.to_token,
                "amount": snap.amount,
                "payload": snap.payload,
                "providerMode": snap.provider_mode,
                "createdAt": _as_utc(snap.created_at),
            }

    async def list_audit(self, limit: int = 50) -> List[AuditRecord]:
        """
        Newest-first audit listing, at most ``limit`` rows.
        """
        if limit <= 0:
            return []
        async with self._session_factory() as session:
            stmt = (
                select(TransferRecord)
                .order_by(TransferRecord.created_at.desc(), TransferRecord.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()

        return [
            AuditRecord(
                id=r.id,
                quote_id=r.quote_id,
                from_token=r.from_token,
                to_token=r.to_token,
                amount=r.amount,
                status=r.status,
                provider_mode=r.provider_mode,
                tx_hash=r.tx_hash,
                created_at=_as_utc(r.created_at),
                updated_at=_as_utc(r.updated_at),
            )
            for r in rows
        ]
