"""Error taxonomy for the escrow engine.

Every failure the engine can surface is one of the classes below. They
subclass ValueError so callers that only care about "the input or state
was rejected" can catch the whole family at once; the service facade
converts them into ServiceResult failures carrying the stable ``code``.

No error is retried inside the engine. The caller corrects the input,
waits for a deadline, or gives up.
"""

from __future__ import annotations


class EscrowError(ValueError):
    """Base class for every rejection raised by the engine."""
    code = "escrow_error"


class Unauthorized(EscrowError):
    """The caller does not hold the capability the operation requires."""
    code = "unauthorized"


class InvalidStateTransition(EscrowError):
    """The order is not in a state that permits the requested operation."""
    code = "invalid_state_transition"


class InvalidArgument(EscrowError):
    """Out-of-range amount, identifier, percentage or window."""
    code = "invalid_argument"


class UnknownApp(InvalidArgument):
    code = "unknown_app"


class UnknownOrder(InvalidArgument):
    code = "unknown_order"


class DeadlineNotReached(EscrowError):
    """A timeout-gated path was attempted before its deadline passed."""
    code = "deadline_not_reached"


class DeadlineExpired(EscrowError):
    """A window-gated path was attempted after its window closed."""
    code = "deadline_expired"


class TransferFailed(EscrowError):
    """The asset rail refused to move value. Nothing was moved."""
    code = "transfer_failed"
