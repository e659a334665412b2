from sqlalchemy import DECIMAL, JSON, TIMESTAMP, Column, ForeignKey, Index, Integer, String

from .session import Base


class QuoteSnapshot(Base):
    __tablename__ = "quote_snapshots"

    quote_id = Column(String(64), primary_key=True)
    from_token = Column(String(16), nullable=False)
    to_token = Column(String(16), nullable=False)
    amount = Column(DECIMAL(20, 8), nullable=False)
    payload = Column(JSON, nullable=False)
    provider_mode = Column(String(8), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)


class TransferRecord(Base):
    __tablename__ = "transfers"

    id = Column(String(64), primary_key=True)
    quote_id = Column(String(64), nullable=False)
    recipient = Column(String(255), nullable=False)
    amount = Column(DECIMAL(20, 8), nullable=False)
    from_token = Column(String(16), nullable=False)
    to_token = Column(String(16), nullable=False)
    provider_name = Column(String(64), nullable=False)
    provider_mode = Column(String(8), nullable=False)
    status = Column(String(16), nullable=False)
    tx_hash = Column(String(80))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (Index("idx_transfers_created_at", "created_at"),)


class TransferIdempotency(Base):
    __tablename__ = "transfer_idempotency"

    # Primary key makes a key claimable by one transfer only
    idempotency_key = Column(String(255), primary_key=True)
    transfer_id = Column(String(64), ForeignKey("transfers.id"), nullable=False, unique=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)


class TransferStateHistory(Base):
    __tablename__ = "transfer_state_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transfer_id = Column(String(64), ForeignKey("transfers.id"), nullable=False)
    status = Column(String(16), nullable=False)
    tx_hash = Column(String(80))
    timestamp = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (Index("idx_history_transfer_id", "transfer_id", "id"),)
