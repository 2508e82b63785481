"""Domain exceptions for Trade Escrow.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
None of them are retried internally; retrying is the caller's decision.
"""


class EscrowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Deal Errors ---


class DealNotFoundError(EscrowError):
    """Raised when an operation targets an identifier with no deal."""

    def __init__(self, deal_id: str) -> None:
        super().__init__(
            message=f"Deal not found: {deal_id}",
            code="DEAL_NOT_FOUND",
        )
        self.deal_id = deal_id


class DuplicateDealError(EscrowError):
    """Raised when locking an identifier that already holds a live deal or receipt."""

    def __init__(self, deal_id: str) -> None:
        super().__init__(
            message=f"Deal already exists: {deal_id}",
            code="DUPLICATE_DEAL",
        )
        self.deal_id = deal_id


class InvalidDealIdError(EscrowError):
    """Raised when a deal identifier is not a 32-byte value."""

    def __init__(self, value: object) -> None:
        super().__init__(
            message=f"Invalid deal identifier: {value!r} (expected 32 bytes / 64 hex chars)",
            code="INVALID_DEAL_ID",
        )


class InvalidDealTermsError(EscrowError):
    """Raised when lock parameters are malformed (negative amounts, shared identities)."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_DEAL_TERMS")


# --- Authorization Errors ---


class UnauthorizedError(EscrowError):
    """Raised when the caller is not the identity bound to the required role."""

    def __init__(self, deal_id: str, role: str, caller: str) -> None:
        super().__init__(
            message=f"Caller {caller} is not the {role} of deal {deal_id}",
            code="UNAUTHORIZED",
        )
        self.deal_id = deal_id
        self.role = role
        self.caller = caller


class OutOfOrderError(EscrowError):
    """Raised when a role signs before the roles it depends on.

    Example: the carrier signs before the producer.
    """

    def __init__(self, deal_id: str, reason: str) -> None:
        super().__init__(
            message=f"Out of order on deal {deal_id}: {reason}",
            code="OUT_OF_ORDER",
        )
        self.deal_id = deal_id
        self.reason = reason


class MissingAuthorizationError(EscrowError):
    """Raised when finalize is attempted before all three roles have signed."""

    def __init__(self, deal_id: str, signature_mask: int) -> None:
        super().__init__(
            message=(
                f"Deal {deal_id} is not fully authorized "
                f"(signature mask {signature_mask:03b}, need 111)"
            ),
            code="MISSING_AUTHORIZATION",
        )
        self.deal_id = deal_id
        self.signature_mask = signature_mask


class AlreadySettledError(EscrowError):
    """Raised when a deal has already been paid out."""

    def __init__(self, deal_id: str) -> None:
        super().__init__(
            message=f"Deal already settled: {deal_id}",
            code="ALREADY_SETTLED",
        )
        self.deal_id = deal_id


# --- Value Transfer Errors ---


class InsufficientFundsError(EscrowError):
    """Raised when pulling the locked total from the buyer fails."""

    def __init__(self, buyer: str, required: int) -> None:
        super().__init__(
            message=f"Insufficient funds: {buyer} could not transfer {required} into escrow",
            code="INSUFFICIENT_FUNDS",
        )
        self.buyer = buyer
        self.required = required


class PayoutTransferError(EscrowError):
    """Raised when an outbound payout transfer fails after the deal was zeroed.

    The ledger is not rolled back: the deal stays settled and the value is
    stuck with the collaborator until an operator intervenes.
    """

    def __init__(
        self,
        deal_id: str,
        recipient: str,
        amount: int,
        completed: list | None = None,
    ) -> None:
        super().__init__(
            message=f"Payout of {amount} to {recipient} failed for settled deal {deal_id}",
            code="PAYOUT_TRANSFER_FAILED",
        )
        self.deal_id = deal_id
        self.recipient = recipient
        self.amount = amount
        self.completed = completed or []
