"""Deal Authorization State Machine Guard.

Uses python-statemachine to enforce the signing order at the domain level.
The persisted truth is the deal's signature mask; the machine is rebuilt
from it for each operation and an illegal step (e.g. the carrier signing
before the producer) raises TransitionNotAllowed.

Transition table:
    LOCKED              -> PRODUCER_SIGNED     (producer_signs)
    PRODUCER_SIGNED     -> IN_TRANSIT          (carrier_signs)
    IN_TRANSIT          -> RELEASE_AUTHORIZED  (buyer_signs)
    RELEASE_AUTHORIZED  -> SETTLED             (arbiter_finalizes)

Mask mapping (bit 0 buyer, bit 1 producer, bit 2 carrier):
    000 -> LOCKED, 010 -> PRODUCER_SIGNED, 110 -> IN_TRANSIT,
    111 -> RELEASE_AUTHORIZED (or SETTLED once the arbiter acknowledged).
"""

from __future__ import annotations

from statemachine import State, StateMachine

from trade_escrow.domain.enums import DealStatus, SignatureBit

_MASK_STATUS = {
    0: DealStatus.LOCKED,
    int(SignatureBit.PRODUCER): DealStatus.PRODUCER_SIGNED,
    int(SignatureBit.PRODUCER | SignatureBit.CARRIER): DealStatus.IN_TRANSIT,
    int(SignatureBit.ALL): DealStatus.RELEASE_AUTHORIZED,
}

VALID_MASKS = frozenset(_MASK_STATUS)


def status_from_mask(signature_mask: int, acknowledged: bool = False) -> DealStatus:
    """Map a persisted signature mask to its lifecycle status.

    Raises:
        ValueError: If the mask could not have been produced by ordered signing.
    """
    status = _MASK_STATUS.get(signature_mask)
    if status is None:
        raise ValueError(f"Signature mask {signature_mask:#05b} violates signing order")
    if acknowledged:
        if status is not DealStatus.RELEASE_AUTHORIZED:
            raise ValueError("Arbiter acknowledgement requires a fully signed deal")
        return DealStatus.SETTLED
    return status


class DealAuthorizationMachine(StateMachine):
    """State machine that guards the ordered signing of a deal.

    Usage:
        sm = DealAuthorizationMachine(current_status="PRODUCER_SIGNED")
        sm.carrier_signs()  # transitions to IN_TRANSIT
        sm.current_state    # State('IN_TRANSIT', ...)
    """

    # --- States ---
    LOCKED = State("LOCKED", initial=True)
    PRODUCER_SIGNED = State("PRODUCER_SIGNED")
    IN_TRANSIT = State("IN_TRANSIT")
    RELEASE_AUTHORIZED = State("RELEASE_AUTHORIZED")
    SETTLED = State("SETTLED", final=True)

    # --- Events / Transitions ---
    producer_signs = LOCKED.to(PRODUCER_SIGNED)
    carrier_signs = PRODUCER_SIGNED.to(IN_TRANSIT)
    buyer_signs = IN_TRANSIT.to(RELEASE_AUTHORIZED)
    arbiter_finalizes = RELEASE_AUTHORIZED.to(SETTLED)

    def __init__(self, current_status: str = "LOCKED") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current DealStatus value (e.g., "IN_TRANSIT").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=str(current_status))

    @classmethod
    def from_mask(
        cls, signature_mask: int, acknowledged: bool = False
    ) -> DealAuthorizationMachine:
        """Build a machine positioned at the state a persisted deal is in."""
        return cls(current_status=status_from_mask(signature_mask, acknowledged).value)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches DealStatus enum)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.name for event in self.allowed_events]
