"""Domain layer - pure business logic with zero framework dependencies."""

from trade_escrow.domain.deal import DealView
from trade_escrow.domain.enums import (
    DealStatus,
    EventType,
    Role,
    SignatureBit,
)
from trade_escrow.domain.exceptions import (
    AlreadySettledError,
    DealNotFoundError,
    DuplicateDealError,
    EscrowError,
    InsufficientFundsError,
    InvalidDealIdError,
    InvalidDealTermsError,
    MissingAuthorizationError,
    OutOfOrderError,
    PayoutTransferError,
    UnauthorizedError,
)
from trade_escrow.domain.fees import (
    ARBITER_FEE_PERCENT,
    PayoutSplit,
    compute_fee,
    split_payout,
    total_locked,
)
from trade_escrow.domain.state_machine import (
    DealAuthorizationMachine,
    status_from_mask,
)
from trade_escrow.domain.transfer_protocol import TransferReceipt, ValueTransfer

__all__ = [
    "DealView",
    "DealStatus",
    "EventType",
    "Role",
    "SignatureBit",
    "AlreadySettledError",
    "DealNotFoundError",
    "DuplicateDealError",
    "EscrowError",
    "InsufficientFundsError",
    "InvalidDealIdError",
    "InvalidDealTermsError",
    "MissingAuthorizationError",
    "OutOfOrderError",
    "PayoutTransferError",
    "UnauthorizedError",
    "ARBITER_FEE_PERCENT",
    "PayoutSplit",
    "compute_fee",
    "split_payout",
    "total_locked",
    "DealAuthorizationMachine",
    "status_from_mask",
    "TransferReceipt",
    "ValueTransfer",
]
