from .store import (
    DuplicateIdempotencyKeyError,
    DuplicateTransferIdError,
    StoreError,
    TransferNotFoundError,
    TransferStore,
)

__all__ = [
    "DuplicateIdempotencyKeyError",
    "DuplicateTransferIdError",
    "StoreError",
    "TransferNotFoundError",
    "TransferStore",
]
